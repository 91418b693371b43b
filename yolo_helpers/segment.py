from __future__ import annotations

import math
from typing import Optional, Sequence, Tuple

import numpy as np

from .errors import ShapeError
from .layout import DEFAULT_MASK_CHANNELS, ChannelLayout
from .nms import NMSBackend, NMSConfig
from .postprocess import YoloDecoder
from .types import BoundingBoxWithMaskCoefficients, SegmentResult


def _resolve_mask_shape(
    mask_shape: Optional[Tuple[int, int]],
    input_shape: Optional[Tuple[int, int]],
) -> Tuple[int, int]:
    # Prototype masks are a quarter of the model input on each side, e.g. 160x160 for 640x640.
    if mask_shape is not None:
        return mask_shape
    if input_shape is not None:
        width, height = input_shape
        return width // 4, height // 4
    raise ValueError("missing mask_shape or input_shape")


def _segment_decoder(
    num_classes: int,
    num_mask_channels: int,
    mask_shape: Optional[Tuple[int, int]],
    input_shape: Optional[Tuple[int, int]],
    max_output_size: Optional[int],
    iou_threshold: float,
    score_threshold: float,
    backend: Optional[NMSBackend],
) -> YoloDecoder:
    return YoloDecoder(
        ChannelLayout.segment(num_classes, num_mask_channels),
        NMSConfig(max_output_size=max_output_size, iou_threshold=iou_threshold, score_threshold=score_threshold),
        backend=backend,
        mask_shape=_resolve_mask_shape(mask_shape, input_shape),
    )


def decode_segment(
    output_boxes,
    output_masks,
    num_classes: int,
    *,
    num_mask_channels: int = DEFAULT_MASK_CHANNELS,
    mask_shape: Optional[Tuple[int, int]] = None,
    input_shape: Optional[Tuple[int, int]] = None,
    max_output_size: Optional[int] = None,
    iou_threshold: float = 0.5,
    score_threshold: float = -math.inf,
    backend: Optional[NMSBackend] = None,
) -> SegmentResult:
    """
    Decode a segment model's two outputs.

    Args:
        output_boxes: (batch, 4 + num_classes + num_mask_channels, slots), e.g. 1x116x8400
        output_masks: prototype masks (batch, mask_height, mask_width, num_mask_channels),
            e.g. 1x160x160x32
        mask_shape: (width, height) the prototypes must have
        input_shape: model input (width, height); implies mask_shape = input_shape / 4

    One of `mask_shape` or `input_shape` is required, otherwise ValueError is raised
    before the outputs are looked at.

    Each batch yields a `SegmentBatch` holding the boxes with their mask coefficients and
    the batch's prototype masks. Per-box masks are not built here: call `combine_mask()`
    for the boxes that need one.
    """

    decoder = _segment_decoder(
        num_classes,
        num_mask_channels,
        mask_shape,
        input_shape,
        max_output_size,
        iou_threshold,
        score_threshold,
        backend,
    )
    return decoder.decode(output_boxes, output_masks)


async def decode_segment_async(
    output_boxes,
    output_masks,
    num_classes: int,
    *,
    num_mask_channels: int = DEFAULT_MASK_CHANNELS,
    mask_shape: Optional[Tuple[int, int]] = None,
    input_shape: Optional[Tuple[int, int]] = None,
    max_output_size: Optional[int] = None,
    iou_threshold: float = 0.5,
    score_threshold: float = -math.inf,
    backend: Optional[NMSBackend] = None,
) -> SegmentResult:
    """
    Async version of `decode_segment`.
    """

    decoder = _segment_decoder(
        num_classes,
        num_mask_channels,
        mask_shape,
        input_shape,
        max_output_size,
        iou_threshold,
        score_threshold,
        backend,
    )
    return await decoder.decode_async(output_boxes, output_masks)


def sigmoid(x: np.ndarray) -> np.ndarray:
    with np.errstate(over="ignore"):
        return 1.0 / (1.0 + np.exp(-x))


def composite_mask(coefficients: Sequence[float], masks) -> np.ndarray:
    """
    final mask = sigmoid(sum_i coefficients[i] * masks[..., i])

    Args:
        coefficients: one box's mask coefficients, length num_mask_channels
        masks: prototype masks (mask_height, mask_width, num_mask_channels)

    Returns:
        (mask_height, mask_width) float array of per-pixel probabilities in (0, 1)
    """

    protos = np.asarray(masks, dtype=np.float64)
    coeffs = np.asarray(coefficients, dtype=np.float64)
    if protos.ndim != 3:
        raise ShapeError(f"masks must be (mask_height, mask_width, channels), got shape {protos.shape}")
    if coeffs.ndim != 1:
        raise ShapeError(f"coefficients must be a flat vector, got shape {coeffs.shape}")
    if protos.shape[2] != coeffs.shape[0]:
        raise ShapeError(f"expect {protos.shape[2]} mask coefficients, but got {coeffs.shape[0]}")

    raw = np.tensordot(protos, coeffs, axes=([2], [0]))
    return sigmoid(raw)


def combine_mask(bounding_box: BoundingBoxWithMaskCoefficients, masks) -> np.ndarray:
    return composite_mask(bounding_box.mask_coefficients, masks)
