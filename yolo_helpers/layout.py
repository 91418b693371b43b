from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from .errors import ShapeError


logger = logging.getLogger(__name__)

TASKS = ("detect", "pose", "segment", "classify")

# x, y, width, height
BOX_CHANNELS = 4
DEFAULT_MASK_CHANNELS = 32


@dataclass(frozen=True)
class ChannelLayout:
    """
    Meaning of the feature axis of a raw YOLO output for one task.

    - detect:   [x, y, w, h, class_scores...]
    - pose:     [x, y, w, h, class_scores..., (kx, ky[, kv]) * num_keypoints]
    - segment:  [x, y, w, h, class_scores..., mask_coefficients...]
    - classify: [class_scores...] (one vector per batch, no slots)
    """

    task: str
    num_classes: int
    num_keypoints: int = 0
    visibility: bool = True
    num_mask_channels: int = 0

    def __post_init__(self) -> None:
        if self.task not in TASKS:
            raise ValueError(f"task must be one of {TASKS}, got {self.task!r}")
        if self.num_classes < 1:
            raise ValueError("num_classes must be >= 1")
        if self.num_keypoints < 0:
            raise ValueError("num_keypoints must be >= 0")
        if self.num_mask_channels < 0:
            raise ValueError("num_mask_channels must be >= 0")
        if self.task == "pose" and self.num_keypoints < 1:
            raise ValueError("pose layout needs num_keypoints >= 1")
        if self.task != "pose" and self.num_keypoints:
            raise ValueError(f"num_keypoints is only valid for pose, not {self.task!r}")
        if self.task == "segment" and self.num_mask_channels < 1:
            raise ValueError("segment layout needs num_mask_channels >= 1")
        if self.task != "segment" and self.num_mask_channels:
            raise ValueError(f"num_mask_channels is only valid for segment, not {self.task!r}")

    @classmethod
    def detect(cls, num_classes: int) -> "ChannelLayout":
        return cls(task="detect", num_classes=num_classes)

    @classmethod
    def pose(cls, num_classes: int, num_keypoints: int, visibility: bool = True) -> "ChannelLayout":
        return cls(task="pose", num_classes=num_classes, num_keypoints=num_keypoints, visibility=visibility)

    @classmethod
    def segment(cls, num_classes: int, num_mask_channels: int = DEFAULT_MASK_CHANNELS) -> "ChannelLayout":
        return cls(task="segment", num_classes=num_classes, num_mask_channels=num_mask_channels)

    @classmethod
    def classify(cls, num_classes: int) -> "ChannelLayout":
        return cls(task="classify", num_classes=num_classes)

    @property
    def has_boxes(self) -> bool:
        return self.task != "classify"

    @property
    def class_offset(self) -> int:
        return BOX_CHANNELS if self.has_boxes else 0

    @property
    def keypoint_offset(self) -> int:
        return self.class_offset + self.num_classes

    @property
    def keypoint_stride(self) -> int:
        return 3 if self.visibility else 2

    @property
    def mask_offset(self) -> int:
        return self.class_offset + self.num_classes

    @property
    def length(self) -> int:
        n = self.class_offset + self.num_classes
        if self.task == "pose":
            n += self.num_keypoints * self.keypoint_stride
        elif self.task == "segment":
            n += self.num_mask_channels
        return n


def num_output_boxes(width: int, height: int) -> int:
    """
    Number of candidate slots a YOLOv8-style head emits for an input size
    (strides 8, 16 and 32), e.g. 8400 for 640x640.

    Sides that are not a multiple of 32 are rounded up, as the exporter does.
    """

    if width % 32 != 0:
        width += 32 - (width % 32)
        logger.warning("width is not a multiple of 32, adjusted to %d", width)
    if height % 32 != 0:
        height += 32 - (height % 32)
        logger.warning("height is not a multiple of 32, adjusted to %d", height)
    return sum((width // s) * (height // s) for s in (8, 16, 32))


def check_output_shape(
    output,
    layout: ChannelLayout,
    input_shape: Optional[Tuple[int, int]] = None,
) -> None:
    """
    Strict structural check of a full raw output, stricter than the decoders.

    Unlike the decoders this rejects an empty first batch, and when `input_shape`
    (width, height) is given, every channel row must hold `num_output_boxes()` slots.
    """

    try:
        p = np.asarray(output, dtype=np.float64)
    except ValueError as e:
        raise ShapeError(f"output must be a rectangular numeric array: {e}") from e

    expected_ndim = 3 if layout.has_boxes else 2
    if p.ndim != expected_ndim:
        raise ShapeError(f"output must be a {expected_ndim}D array, got shape {p.shape}")
    if p.shape[0] == 0 or p.shape[1] == 0:
        raise ShapeError(f"output has no batch data, got shape {p.shape}")
    if p.shape[1] != layout.length:
        raise ShapeError(f"data[batch].length must be {layout.length}, got shape {p.shape}")

    if input_shape is not None and layout.has_boxes:
        width, height = input_shape
        slots = num_output_boxes(width, height)
        if p.shape[2] != slots:
            raise ShapeError(f"data[batch][channel].length must be {slots}, got shape {p.shape}")
