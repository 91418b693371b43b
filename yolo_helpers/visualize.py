from __future__ import annotations

from typing import Dict, Iterable, Optional, Tuple

import numpy as np

from .geometry import Rect, has_overlap
from .types import BoundingBox, BoundingBoxWithKeypoints


# Small deterministic palette (BGR), then a seeded RNG for larger ids.
_PALETTE = [
    (255, 56, 56),
    (255, 157, 151),
    (255, 112, 31),
    (255, 178, 29),
    (207, 210, 49),
    (72, 249, 10),
    (146, 204, 23),
    (61, 219, 134),
    (26, 147, 52),
    (0, 212, 187),
    (44, 153, 168),
    (0, 194, 255),
    (52, 69, 147),
    (100, 115, 255),
    (0, 24, 236),
    (132, 56, 255),
    (82, 0, 133),
    (203, 56, 255),
    (255, 149, 200),
    (255, 55, 199),
]


def color_for_class(class_index: int) -> Tuple[int, int, int]:
    if 0 <= class_index < len(_PALETTE):
        return _PALETTE[class_index]
    rng = np.random.default_rng(int(class_index))
    bgr = rng.integers(0, 256, size=3, dtype=np.uint8)
    return int(bgr[0]), int(bgr[1]), int(bgr[2])


def _require_cv2():
    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for drawing. Install with `pip install opencv-python`.") from e
    return cv2


def _check_image(image_bgr: np.ndarray) -> None:
    if image_bgr is None or not hasattr(image_bgr, "shape"):
        raise TypeError("image_bgr must be a NumPy array (BGR).")
    if image_bgr.ndim != 3 or image_bgr.shape[2] != 3:
        raise ValueError(f"Expected image shape (H, W, 3), got {getattr(image_bgr, 'shape', None)}")


def draw_detections(
    image_bgr: np.ndarray,
    boxes: Iterable[BoundingBox],
    *,
    class_names: Optional[Dict[int, str]] = None,
    show_score: bool = True,
    box_thickness: int = 1,
    font_scale: float = 0.5,
    font_thickness: int = 1,
    keypoint_radius: int = 3,
    min_keypoint_visibility: float = 0.5,
) -> np.ndarray:
    """
    Draw boxes, labels and (for pose results) keypoints on a BGR image and return a copy.

    Boxes must already be in the image's pixel space (see `unletterbox_box`).
    """

    cv2 = _require_cv2()
    _check_image(image_bgr)

    out = image_bgr.copy()
    h, w = out.shape[:2]

    for box in boxes:
        x1, y1, x2, y2 = box.as_xyxy()
        x1i = int(np.clip(round(x1), 0, w - 1))
        y1i = int(np.clip(round(y1), 0, h - 1))
        x2i = int(np.clip(round(x2), 0, w - 1))
        y2i = int(np.clip(round(y2), 0, h - 1))

        color = color_for_class(box.class_index)
        cv2.rectangle(out, (x1i, y1i), (x2i, y2i), color, thickness=box_thickness)

        label = class_names.get(box.class_index, str(box.class_index)) if class_names else str(box.class_index)
        if show_score:
            label = f"{label} {box.confidence:.2f}"

        (tw, th), baseline = cv2.getTextSize(label, cv2.FONT_HERSHEY_SIMPLEX, font_scale, font_thickness)
        # Place label above the box if possible, else inside.
        y_text_top = y1i - th - baseline
        if y_text_top < 0:
            y_text_top = y1i

        x_text_right = min(x1i + tw, w - 1)
        y_text_bottom = min(y_text_top + th + baseline, h - 1)

        cv2.rectangle(out, (x1i, y_text_top), (x_text_right, y_text_bottom), color, thickness=-1)
        cv2.putText(
            out,
            label,
            (x1i, min(y_text_top + th, h - 1)),
            cv2.FONT_HERSHEY_SIMPLEX,
            font_scale,
            (255, 255, 255),
            thickness=font_thickness,
            lineType=cv2.LINE_AA,
        )

        if isinstance(box, BoundingBoxWithKeypoints):
            for kp in box.keypoints:
                if kp.visibility < min_keypoint_visibility:
                    continue
                if not (0 <= kp.x < w and 0 <= kp.y < h):
                    continue
                cv2.circle(out, (int(round(kp.x)), int(round(kp.y))), keypoint_radius, color, thickness=-1)

    return out


def overlay_mask(
    image_bgr: np.ndarray,
    mask: np.ndarray,
    *,
    box: Optional[BoundingBox] = None,
    color: Tuple[int, int, int] = (0, 255, 0),
    threshold: float = 0.5,
    alpha: float = 0.5,
) -> np.ndarray:
    """
    Blend a per-pixel probability mask (from `combine_mask`) onto a BGR image.

    The mask is resized to the image size, so a 160x160 prototype-space mask can be laid
    over a 640x640 model input directly.

    With `box` (in the image's pixel space) only the mask cells that overlap the box
    are blended.
    """

    cv2 = _require_cv2()
    _check_image(image_bgr)
    if not 0.0 <= alpha <= 1.0:
        raise ValueError("alpha must be in [0, 1]")

    h, w = image_bgr.shape[:2]
    m = np.asarray(mask, dtype=np.float32)
    if m.ndim != 2:
        raise ValueError(f"Expected mask shape (H, W), got {m.shape}")

    inside = None
    if box is not None:
        inside = _cells_in_box(box, m.shape, (h, w))
        if inside.shape != (h, w):
            inside = cv2.resize(inside.astype(np.uint8), (w, h), interpolation=cv2.INTER_NEAREST).astype(bool)
    if m.shape != (h, w):
        m = cv2.resize(m, (w, h), interpolation=cv2.INTER_LINEAR)

    out = image_bgr.copy()
    selected = m > threshold
    if inside is not None:
        selected &= inside
    tint = np.empty_like(out)
    tint[:] = color
    blended = cv2.addWeighted(out, 1.0 - alpha, tint, alpha, 0.0)
    out[selected] = blended[selected]
    return out


def _cells_in_box(box: BoundingBox, mask_hw: Tuple[int, int], image_hw: Tuple[int, int]) -> np.ndarray:
    # A mask cell overlaps the box iff both its column span and its row span do.
    mh, mw = mask_hw
    h, w = image_hw
    cell_w, cell_h = w / mw, h / mh
    box_rect = Rect(*box.as_xyxy())

    cols = np.array(
        [has_overlap(box_rect, Rect(c * cell_w, box_rect.top, (c + 1) * cell_w, box_rect.bottom)) for c in range(mw)]
    )
    rows = np.array(
        [has_overlap(box_rect, Rect(box_rect.left, r * cell_h, box_rect.right, (r + 1) * cell_h)) for r in range(mh)]
    )
    return rows[:, None] & cols[None, :]
