from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .errors import ShapeError
from .geometry import score_candidates
from .layout import BOX_CHANNELS, ChannelLayout
from .nms import DEFAULT_NMS_BACKEND, NMSBackend, NMSConfig
from .types import (
    BoundingBox,
    BoundingBoxWithKeypoints,
    BoundingBoxWithMaskCoefficients,
    ClassifyResult,
    Keypoint,
    SegmentBatch,
)


@dataclass(frozen=True)
class _Candidates:
    batch: np.ndarray  # (channels, slots)
    boxes: np.ndarray  # (slots, 4) xyxy
    scores: np.ndarray  # (slots,)


@dataclass(frozen=True)
class _Prepared:
    masks: Optional[np.ndarray]
    candidates: List[_Candidates]


def _first_batch_is_empty(output) -> bool:
    """
    True when the output carries no data: no batches, or a first batch with zero channels.

    Models that emit no rows hand back this shape, and it decodes to an empty result
    instead of a shape error. Anything else that is malformed still fails validation.
    """

    if isinstance(output, np.ndarray):
        if output.ndim == 0:
            return False
        if output.shape[0] == 0:
            return True
        return output.ndim >= 2 and output.shape[1] == 0
    try:
        if len(output) == 0:
            return True
        return len(output[0]) == 0
    except TypeError:
        return False


def _as_array(data, ndim: int, name: str) -> np.ndarray:
    try:
        p = np.asarray(data, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise ShapeError(f"{name} must be a rectangular numeric array: {e}") from e
    if p.ndim != ndim:
        raise ShapeError(f"{name} must be a {ndim}D array, got shape {p.shape}")
    return p


class YoloDecoder:
    """
    Decode raw YOLO outputs for one task, described by a `ChannelLayout`.

    Pipeline per call: validate everything -> score every slot -> select slots
    (NMS, or all slots in order) -> build result objects from the raw channels.
    Only the selection step goes through the `NMSBackend`, so `decode` and
    `decode_async` share everything else and return identical results.

    The decoder keeps no state between calls; one instance can serve concurrent calls.
    """

    def __init__(
        self,
        layout: ChannelLayout,
        nms_cfg: NMSConfig = NMSConfig(),
        *,
        backend: Optional[NMSBackend] = None,
        mask_shape: Optional[Tuple[int, int]] = None,
    ):
        if mask_shape is not None and layout.task != "segment":
            raise ValueError("mask_shape is only valid for the segment task")
        self.layout = layout
        self.nms_cfg = nms_cfg
        self.backend = backend or DEFAULT_NMS_BACKEND
        # (mask_width, mask_height) expected for the prototype tensor
        self.mask_shape = mask_shape

    def decode(self, output, masks=None) -> list:
        if self.layout.task == "classify":
            return self._decode_classify(output)

        prepared = self._prepare(output, masks)
        if prepared is None:
            return []
        indices = [self.backend.select(c.boxes, c.scores, self.nms_cfg) for c in prepared.candidates]
        return self._assemble(prepared, indices)

    async def decode_async(self, output, masks=None) -> list:
        if self.layout.task == "classify":
            return self._decode_classify(output)

        prepared = self._prepare(output, masks)
        if prepared is None:
            return []
        indices = []
        for c in prepared.candidates:
            indices.append(await self.backend.select_async(c.boxes, c.scores, self.nms_cfg))
        return self._assemble(prepared, indices)

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #
    def _prepare(self, output, masks) -> Optional[_Prepared]:
        layout = self.layout

        if _first_batch_is_empty(output):
            return None

        p = _as_array(output, 3, "output")
        if p.shape[1] != layout.length:
            raise ShapeError(f"data[batch].length must be {layout.length}, got shape {p.shape}")

        m = None
        if layout.task == "segment":
            m = self._validate_masks(masks, batch_size=p.shape[0])
        elif masks is not None:
            raise ValueError(f"masks are only accepted by the segment task, not {layout.task!r}")

        candidates = []
        for batch in p:
            boxes, scores, _ = score_candidates(batch, layout.num_classes)
            candidates.append(_Candidates(batch=batch, boxes=boxes, scores=scores))
        return _Prepared(masks=m, candidates=candidates)

    def _validate_masks(self, masks, batch_size: int) -> np.ndarray:
        if masks is None:
            raise ShapeError("segment task needs the prototype mask output")
        m = _as_array(masks, 4, "masks")
        if self.mask_shape is not None:
            mask_w, mask_h = self.mask_shape
            if m.shape[1] != mask_h:
                raise ShapeError(f"masks_data[0].length must be {mask_h}, got shape {m.shape}")
            if m.shape[2] != mask_w:
                raise ShapeError(f"masks_data[0][0].length must be {mask_w}, got shape {m.shape}")
        if m.shape[3] != self.layout.num_mask_channels:
            raise ShapeError(
                f"masks_data[0][0][0].length must be {self.layout.num_mask_channels}, got shape {m.shape}"
            )
        if m.shape[0] != batch_size:
            raise ShapeError(
                f"boxes_data and masks_data must have the same batch count ({batch_size} vs {m.shape[0]})"
            )
        return m

    def _assemble(self, prepared: _Prepared, indices: Sequence[np.ndarray]) -> list:
        result = []
        for b, (cand, keep) in enumerate(zip(prepared.candidates, indices)):
            boxes = [self._materialize(cand.batch, int(i)) for i in keep]
            if self.layout.task == "segment":
                result.append(SegmentBatch(bounding_boxes=boxes, masks=prepared.masks[b].copy()))
            else:
                result.append(boxes)
        return result

    def _materialize(self, batch: np.ndarray, slot: int) -> BoundingBox:
        layout = self.layout
        column = batch[:, slot]

        x, y, width, height = (float(v) for v in column[0:BOX_CHANNELS])
        all_confidences = column[BOX_CHANNELS : BOX_CHANNELS + layout.num_classes]
        class_index = int(np.argmax(all_confidences))
        fields = dict(
            x=x,
            y=y,
            width=width,
            height=height,
            class_index=class_index,
            confidence=float(all_confidences[class_index]),
            all_confidences=tuple(float(v) for v in all_confidences),
        )

        if layout.task == "pose":
            start = layout.keypoint_offset
            block = column[start : start + layout.num_keypoints * layout.keypoint_stride]
            block = block.reshape(layout.num_keypoints, layout.keypoint_stride)
            keypoints = tuple(
                Keypoint(x=float(k[0]), y=float(k[1]), visibility=float(k[2]) if layout.visibility else 1.0)
                for k in block
            )
            return BoundingBoxWithKeypoints(keypoints=keypoints, **fields)

        if layout.task == "segment":
            start = layout.mask_offset
            coefficients = column[start : start + layout.num_mask_channels]
            return BoundingBoxWithMaskCoefficients(
                mask_coefficients=tuple(float(v) for v in coefficients), **fields
            )

        return BoundingBox(**fields)

    def _decode_classify(self, output) -> List[ClassifyResult]:
        if _first_batch_is_empty(output):
            return []

        p = _as_array(output, 2, "output")
        if p.shape[1] != self.layout.num_classes:
            raise ShapeError(f"data[batch].length must be {self.layout.num_classes}, got shape {p.shape}")

        result = []
        for all_confidences in p:
            class_index = int(np.argmax(all_confidences))
            result.append(
                ClassifyResult(
                    class_index=class_index,
                    confidence=float(all_confidences[class_index]),
                    all_confidences=tuple(float(v) for v in all_confidences),
                )
            )
        return result
