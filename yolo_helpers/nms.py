from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .geometry import box_iou


@dataclass(frozen=True)
class NMSConfig:
    """
    - max_output_size: cap on kept boxes. None (or 0) skips NMS and keeps every slot
      in its original order.
    - iou_threshold: boxes overlapping a kept box by more than this are dropped.
    - score_threshold: only boxes scoring strictly above this are considered.
    """

    max_output_size: Optional[int] = None
    iou_threshold: float = 0.5
    score_threshold: float = -math.inf

    def __post_init__(self) -> None:
        if self.max_output_size is not None and self.max_output_size < 0:
            raise ValueError("max_output_size must be >= 0")
        if not 0.0 <= self.iou_threshold <= 1.0:
            raise ValueError("iou_threshold must be in [0, 1]")

    @property
    def enabled(self) -> bool:
        return bool(self.max_output_size)


def nms(boxes: np.ndarray, scores: np.ndarray, cfg: NMSConfig) -> np.ndarray:
    """
    Greedy NumPy NMS. Expects boxes shape (N,4) in xyxy and scores shape (N,).
    Returns the kept slot indices in selection order (highest score first).
    """

    boxes = np.asarray(boxes, dtype=np.float64).reshape(-1, 4)
    scores = np.asarray(scores, dtype=np.float64).reshape(-1)
    if boxes.shape[0] != scores.shape[0]:
        raise ValueError(f"boxes and scores disagree: {boxes.shape} vs {scores.shape}")

    limit = cfg.max_output_size if cfg.max_output_size is not None else boxes.shape[0]
    if boxes.size == 0 or limit == 0:
        return np.empty((0,), dtype=np.int64)

    # stable sort: equal scores are visited in slot order
    order = np.argsort(-scores, kind="stable")
    order = order[scores[order] > cfg.score_threshold]
    keep = []

    while order.size > 0 and len(keep) < limit:
        i = order[0]
        keep.append(i)

        iou = box_iou(boxes[i], boxes[order[1:]])
        order = order[1:][iou <= cfg.iou_threshold]

    return np.array(keep, dtype=np.int64)


def select_box_indices(boxes: np.ndarray, scores: np.ndarray, cfg: NMSConfig) -> np.ndarray:
    if not cfg.enabled:
        return np.arange(np.asarray(scores).shape[0], dtype=np.int64)
    return nms(boxes, scores, cfg)


class NMSBackend:
    """
    Selection step of the decode pipeline.

    `select` blocks; `select_async` is the only place a decode call suspends.
    Subclasses may offload to an accelerator but must return the same indices.
    """

    def select(self, boxes: np.ndarray, scores: np.ndarray, cfg: NMSConfig) -> np.ndarray:
        raise NotImplementedError

    async def select_async(self, boxes: np.ndarray, scores: np.ndarray, cfg: NMSConfig) -> np.ndarray:
        return self.select(boxes, scores, cfg)


class NumpyNMS(NMSBackend):
    def select(self, boxes: np.ndarray, scores: np.ndarray, cfg: NMSConfig) -> np.ndarray:
        return select_box_indices(boxes, scores, cfg)

    async def select_async(self, boxes: np.ndarray, scores: np.ndarray, cfg: NMSConfig) -> np.ndarray:
        if not cfg.enabled:
            return select_box_indices(boxes, scores, cfg)
        return await asyncio.to_thread(select_box_indices, boxes, scores, cfg)


DEFAULT_NMS_BACKEND = NumpyNMS()
