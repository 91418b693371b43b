from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .layout import BOX_CHANNELS


@dataclass(frozen=True)
class Rect:
    left: float
    top: float
    right: float
    bottom: float


def has_overlap(a: Rect, b: Rect) -> bool:
    # Touching edges count as overlap.
    return not (a.right < b.left or a.left > b.right or a.bottom < b.top or a.top > b.bottom)


def xywh_to_xyxy(xywh: np.ndarray) -> np.ndarray:
    """
    Convert (..., 4) center-form boxes [x, y, w, h] to corner form [x1, y1, x2, y2].
    """

    xywh = np.asarray(xywh, dtype=np.float64)
    cx, cy, w, h = xywh[..., 0], xywh[..., 1], xywh[..., 2], xywh[..., 3]
    return np.stack([cx - w / 2, cy - h / 2, cx + w / 2, cy + h / 2], axis=-1)


def box_iou(box: np.ndarray, others: np.ndarray) -> np.ndarray:
    """
    IoU of one xyxy box against (M, 4) xyxy boxes.

    Corners are normalized first, so flipped boxes are handled. A zero-area box has
    IoU 0 against anything, itself included.
    """

    box = np.asarray(box, dtype=np.float64)
    others = np.asarray(others, dtype=np.float64).reshape(-1, 4)

    ax1, ax2 = min(box[0], box[2]), max(box[0], box[2])
    ay1, ay2 = min(box[1], box[3]), max(box[1], box[3])
    bx1 = np.minimum(others[:, 0], others[:, 2])
    bx2 = np.maximum(others[:, 0], others[:, 2])
    by1 = np.minimum(others[:, 1], others[:, 3])
    by2 = np.maximum(others[:, 1], others[:, 3])

    area_a = (ax2 - ax1) * (ay2 - ay1)
    area_b = (bx2 - bx1) * (by2 - by1)

    w = np.maximum(0.0, np.minimum(ax2, bx2) - np.maximum(ax1, bx1))
    h = np.maximum(0.0, np.minimum(ay2, by2) - np.maximum(ay1, by1))
    inter = w * h
    union = area_a + area_b - inter

    iou = np.zeros(others.shape[0], dtype=np.float64)
    valid = (area_a > 0) & (area_b > 0) & (union > 0)
    iou[valid] = inter[valid] / union[valid]
    return iou


def score_candidates(batch: np.ndarray, num_classes: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Decode one batch (channels, slots) into xyxy boxes, best score and best class per slot.

    Only the `num_classes` channels after the box geometry are scored; keypoint or
    mask-coefficient channels after them are ignored. On an exact tie the lowest
    class index wins.
    """

    boxes = xywh_to_xyxy(batch[0:BOX_CHANNELS, :].T)
    class_scores = batch[BOX_CHANNELS : BOX_CHANNELS + num_classes, :]
    # np.argmax returns the first occurrence of the maximum
    class_ids = np.argmax(class_scores, axis=0)
    scores = class_scores[class_ids, np.arange(class_scores.shape[1])]
    return boxes, scores, class_ids
