from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Tuple, TypeVar

import numpy as np

from .types import BoundingBox, BoundingBoxWithKeypoints


@dataclass(frozen=True)
class LetterboxConfig:
    # (width, height) of the model input
    new_shape: Tuple[int, int] = (640, 640)
    color: Tuple[int, int, int] = (114, 114, 114)
    auto: bool = False
    scale_fill: bool = False
    scaleup: bool = True
    stride: int = 32

    def __post_init__(self) -> None:
        if min(self.new_shape) < 32:
            raise ValueError(f"new_shape must be >= 32 on each side, got {self.new_shape}")
        if self.stride < 1:
            raise ValueError("stride must be >= 1")


@dataclass(frozen=True)
class PreprocessResult:
    blob: np.ndarray
    # (width, height) of the image before letterboxing
    orig_size: Tuple[int, int]
    ratio: Tuple[float, float]
    pad: Tuple[float, float]


def letterbox(image: np.ndarray, cfg: LetterboxConfig = LetterboxConfig()):
    """
    Resize and pad image to the model input size, matching common YOLO exports.

    Returns:
        padded: resized + padded image
        ratio: (w_ratio, h_ratio)
        pad: (dw, dh) padding applied to width/height (left/top only; right/bottom equal)
    """
    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for letterbox(). Install with `pip install opencv-python`.") from e

    h, w = image.shape[:2]
    new_w, new_h = cfg.new_shape

    # Scale ratio (new / old)
    r = min(new_w / w, new_h / h)
    if not cfg.scaleup:  # only scale down
        r = min(r, 1.0)

    ratio = (r, r)
    resized_w, resized_h = int(round(w * r)), int(round(h * r))
    dw, dh = new_w - resized_w, new_h - resized_h

    if cfg.auto:  # padding is a multiple of stride
        dw %= cfg.stride
        dh %= cfg.stride
    elif cfg.scale_fill:  # stretch to fill
        resized_w, resized_h = new_w, new_h
        dw, dh = 0.0, 0.0
        ratio = (new_w / w, new_h / h)

    dw /= 2
    dh /= 2

    if (w, h) != (resized_w, resized_h):
        image = cv2.resize(image, (resized_w, resized_h), interpolation=cv2.INTER_LINEAR)

    top, bottom = int(round(dh - 0.1)), int(round(dh + 0.1))
    left, right = int(round(dw - 0.1)), int(round(dw + 0.1))
    padded = cv2.copyMakeBorder(image, top, bottom, left, right, cv2.BORDER_CONSTANT, value=cfg.color)

    return padded, ratio, (dw, dh)


def preprocess_image(image_bgr: np.ndarray, cfg: LetterboxConfig = LetterboxConfig()) -> PreprocessResult:
    """
    Letterbox an OpenCV BGR image into a (1, 3, H, W) float32 RGB blob in [0, 1].
    """

    if image_bgr is None or not hasattr(image_bgr, "shape"):
        raise TypeError("image_bgr must be a NumPy array (BGR).")
    if image_bgr.ndim != 3 or image_bgr.shape[2] != 3:
        raise ValueError(f"Expected image shape (H, W, 3), got {getattr(image_bgr, 'shape', None)}")

    orig_h, orig_w = image_bgr.shape[:2]
    img, ratio, pad = letterbox(image_bgr, cfg)

    # BGR -> RGB, normalize, HWC -> CHW, add batch
    blob = img[:, :, ::-1].astype(np.float32) / 255.0
    blob = np.ascontiguousarray(np.transpose(blob, (2, 0, 1))[None, ...])

    return PreprocessResult(blob=blob, orig_size=(orig_w, orig_h), ratio=ratio, pad=pad)


BoxT = TypeVar("BoxT", bound=BoundingBox)


def unletterbox_box(box: BoxT, ratio: Tuple[float, float], pad: Tuple[float, float]) -> BoxT:
    """
    Map a decoded box (and its keypoints, if any) from model input pixels back to the
    original image. Returns a new box of the same type; the input is left untouched.
    """

    dw, dh = pad
    rw, rh = ratio
    changes = dict(
        x=(box.x - dw) / rw,
        y=(box.y - dh) / rh,
        width=box.width / rw,
        height=box.height / rh,
    )
    if isinstance(box, BoundingBoxWithKeypoints):
        changes["keypoints"] = tuple(
            dataclasses.replace(k, x=(k.x - dw) / rw, y=(k.y - dh) / rh) for k in box.keypoints
        )
    return dataclasses.replace(box, **changes)


def unletterbox_mask(mask: np.ndarray, prep: PreprocessResult) -> np.ndarray:
    """
    Crop the letterbox padding off a model-space mask (e.g. from `combine_mask`) and
    resize what is left to the original image, giving an (H, W) float32 mask.
    """
    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for unletterbox_mask(). Install with `pip install opencv-python`.") from e

    m = np.asarray(mask, dtype=np.float32)
    if m.ndim != 2:
        raise ValueError(f"Expected mask shape (H, W), got {m.shape}")

    model_h, model_w = prep.blob.shape[2:4]
    orig_w, orig_h = prep.orig_size
    sy = m.shape[0] / model_h
    sx = m.shape[1] / model_w
    dw, dh = prep.pad

    top, left = int(round(dh * sy)), int(round(dw * sx))
    # Far edges come from the unpadded span, not from mirroring the near padding.
    bottom = min(top + max(int(round((model_h - 2 * dh) * sy)), 1), m.shape[0])
    right = min(left + max(int(round((model_w - 2 * dw) * sx)), 1), m.shape[1])
    cropped = m[top:bottom, left:right]
    return cv2.resize(cropped, (orig_w, orig_h), interpolation=cv2.INTER_LINEAR)
