from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple

import numpy as np


@dataclass(frozen=True)
class BoundingBox:
    """
    Detected box in center form, in pixel units of the model input (not normalized).
    """

    x: float
    y: float
    width: float
    height: float
    class_index: int
    confidence: float
    all_confidences: Tuple[float, ...]

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        half_w = self.width / 2
        half_h = self.height / 2
        return self.x - half_w, self.y - half_h, self.x + half_w, self.y + half_h


@dataclass(frozen=True)
class Keypoint:
    x: float
    y: float
    # 1.0 when the model layout has no visibility channel
    visibility: float = 1.0


@dataclass(frozen=True)
class BoundingBoxWithKeypoints(BoundingBox):
    keypoints: Tuple[Keypoint, ...] = ()


@dataclass(frozen=True)
class BoundingBoxWithMaskCoefficients(BoundingBox):
    mask_coefficients: Tuple[float, ...] = ()


@dataclass(frozen=True, eq=False)
class SegmentBatch:
    """
    One batch of a segmentation result.

    `masks` is the batch's prototype tensor (mask_height, mask_width, num_mask_channels),
    not yet combined per box. Use `combine_mask()` for the boxes you need.
    """

    bounding_boxes: List[BoundingBoxWithMaskCoefficients]
    masks: np.ndarray


@dataclass(frozen=True)
class ClassifyResult:
    class_index: int
    confidence: float
    all_confidences: Tuple[float, ...]


BoxResult = List[List[BoundingBox]]
PoseResult = List[List[BoundingBoxWithKeypoints]]
SegmentResult = List[SegmentBatch]
