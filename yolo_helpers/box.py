from __future__ import annotations

import math
from typing import Optional

from .layout import ChannelLayout
from .nms import NMSBackend, NMSConfig
from .postprocess import YoloDecoder
from .types import BoxResult


def _box_decoder(
    num_classes: int,
    max_output_size: Optional[int],
    iou_threshold: float,
    score_threshold: float,
    backend: Optional[NMSBackend],
) -> YoloDecoder:
    return YoloDecoder(
        ChannelLayout.detect(num_classes),
        NMSConfig(max_output_size=max_output_size, iou_threshold=iou_threshold, score_threshold=score_threshold),
        backend=backend,
    )


def decode_box(
    output,
    num_classes: int,
    *,
    max_output_size: Optional[int] = None,
    iou_threshold: float = 0.5,
    score_threshold: float = -math.inf,
    backend: Optional[NMSBackend] = None,
) -> BoxResult:
    """
    Decode a detect output shaped (batch, 4 + num_classes, slots), e.g. 1x84x8400.

    Features per slot: x, y, width, height (pixels, center form), then one already
    normalized confidence per class.

    Args:
        max_output_size: number of boxes to keep with NMS; None returns every slot in order
        iou_threshold: overlap above which a lower-scoring box is suppressed
        score_threshold: boxes must score strictly above this to be kept
    """

    decoder = _box_decoder(num_classes, max_output_size, iou_threshold, score_threshold, backend)
    return decoder.decode(output)


async def decode_box_async(
    output,
    num_classes: int,
    *,
    max_output_size: Optional[int] = None,
    iou_threshold: float = 0.5,
    score_threshold: float = -math.inf,
    backend: Optional[NMSBackend] = None,
) -> BoxResult:
    """
    Async version of `decode_box`; suspends only while NMS runs.
    """

    decoder = _box_decoder(num_classes, max_output_size, iou_threshold, score_threshold, backend)
    return await decoder.decode_async(output)
