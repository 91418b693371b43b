from __future__ import annotations

import math
from typing import Optional

from .layout import ChannelLayout
from .nms import NMSBackend, NMSConfig
from .postprocess import YoloDecoder
from .types import PoseResult


def _pose_decoder(
    num_classes: int,
    num_keypoints: int,
    visibility: bool,
    max_output_size: Optional[int],
    iou_threshold: float,
    score_threshold: float,
    backend: Optional[NMSBackend],
) -> YoloDecoder:
    return YoloDecoder(
        ChannelLayout.pose(num_classes, num_keypoints, visibility=visibility),
        NMSConfig(max_output_size=max_output_size, iou_threshold=iou_threshold, score_threshold=score_threshold),
        backend=backend,
    )


def decode_pose(
    output,
    num_classes: int,
    num_keypoints: int,
    *,
    visibility: bool = True,
    max_output_size: Optional[int] = None,
    iou_threshold: float = 0.5,
    score_threshold: float = -math.inf,
    backend: Optional[NMSBackend] = None,
) -> PoseResult:
    """
    Decode a pose output shaped (batch, 4 + num_classes + num_keypoints * 3, slots),
    e.g. 1x56x8400 for 1 class and 17 keypoints.

    With `visibility=False` each keypoint is only (x, y) and its visibility is 1.0.
    Keypoint channels never affect the box score.
    """

    decoder = _pose_decoder(
        num_classes, num_keypoints, visibility, max_output_size, iou_threshold, score_threshold, backend
    )
    return decoder.decode(output)


async def decode_pose_async(
    output,
    num_classes: int,
    num_keypoints: int,
    *,
    visibility: bool = True,
    max_output_size: Optional[int] = None,
    iou_threshold: float = 0.5,
    score_threshold: float = -math.inf,
    backend: Optional[NMSBackend] = None,
) -> PoseResult:
    """
    Async version of `decode_pose`.
    """

    decoder = _pose_decoder(
        num_classes, num_keypoints, visibility, max_output_size, iou_threshold, score_threshold, backend
    )
    return await decoder.decode_async(output)
