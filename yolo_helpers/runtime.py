from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple, Union

import numpy as np

from .layout import ChannelLayout
from .letterbox import LetterboxConfig, PreprocessResult, preprocess_image, unletterbox_box
from .nms import NMSBackend, NMSConfig
from .postprocess import YoloDecoder
from .types import BoundingBox, ClassifyResult


logger = logging.getLogger(__name__)

PathLike = Union[str, Path]
InferFn = Callable[[np.ndarray], Sequence[np.ndarray]]


def find_project_root(
    start: Optional[PathLike] = None,
    markers: Sequence[str] = ("pyproject.toml", "setup.py", ".git", "requirements.txt"),
) -> Path:
    """
    Best-effort project root discovery, so relative model paths work from any cwd.
    """

    p = Path(start) if start is not None else Path.cwd()
    p = p.resolve()

    if p.is_file():
        p = p.parent

    for parent in (p, *p.parents):
        for m in markers:
            if (parent / m).exists():
                return parent
    return p


def resolve_path(path: PathLike, root: Optional[PathLike] = "auto") -> Path:
    """
    Resolve `path` to an absolute Path; relative paths resolve against `root`, or the
    project root when `root` is "auto"/None.
    """

    p = Path(path)
    if p.is_absolute():
        return p

    if root == "auto" or root is None:
        base = find_project_root()
    else:
        base = Path(root).resolve()

    return (base / p).resolve()


@dataclass(frozen=True)
class PipelineResult:
    """
    Decoded output of one image plus the letterbox transform that produced it.

    `result` is in model input pixels, shaped like the task decoder's return value.
    """

    result: list
    preprocess: PreprocessResult

    def boxes_in_image(self, batch: int = 0) -> List[BoundingBox]:
        """
        Boxes of one batch mapped back to original image coordinates.
        """

        if not self.result:
            return []
        boxes = self.result[batch]
        if isinstance(boxes, ClassifyResult):
            raise ValueError("classify results have no boxes")
        if hasattr(boxes, "bounding_boxes"):
            boxes = boxes.bounding_boxes
        return [unletterbox_box(b, self.preprocess.ratio, self.preprocess.pad) for b in boxes]


class YoloPipeline:
    """
    Plug-and-play pipeline: preprocess (letterbox) -> inference -> task decoder.

    The pipeline expects BGR images (OpenCV-style) as `np.ndarray`.
    """

    def __init__(
        self,
        infer_fn: InferFn,
        layout: ChannelLayout,
        *,
        backend: Optional[object] = None,
        backend_name: Optional[str] = None,
        letterbox_cfg: LetterboxConfig = LetterboxConfig(),
        nms_cfg: NMSConfig = NMSConfig(max_output_size=100),
        nms_backend: Optional[NMSBackend] = None,
        protos_channels_first: bool = True,
    ):
        self._infer_fn = infer_fn
        self.backend = backend
        self.backend_name = backend_name
        self.layout = layout
        self.letterbox_cfg = letterbox_cfg
        # ONNX/TorchScript segment exports emit prototypes as (batch, M, H, W).
        self.protos_channels_first = protos_channels_first
        mask_shape = None
        if layout.task == "segment":
            # Prototypes are a quarter of the letterboxed input on each side.
            new_w, new_h = letterbox_cfg.new_shape
            mask_shape = (new_w // 4, new_h // 4)
        self.decoder = YoloDecoder(layout, nms_cfg, backend=nms_backend, mask_shape=mask_shape)

    def preprocess(self, image_bgr: np.ndarray) -> PreprocessResult:
        return preprocess_image(image_bgr, self.letterbox_cfg)

    def infer(self, blob: np.ndarray) -> Tuple[np.ndarray, Optional[np.ndarray]]:
        outputs = list(self._infer_fn(blob))
        if not outputs:
            raise RuntimeError("Model returned no outputs.")
        logger.debug("model outputs: %s", [getattr(o, "shape", None) for o in outputs])

        masks = None
        if self.layout.task == "segment":
            if len(outputs) < 2:
                raise RuntimeError(f"Segment model must return boxes and prototype masks, got {len(outputs)} output(s).")
            masks = np.asarray(outputs[1])
            if self.protos_channels_first:
                masks = np.transpose(masks, (0, 2, 3, 1))
        return np.asarray(outputs[0]), masks

    def __call__(self, image_bgr: np.ndarray) -> PipelineResult:
        prep = self.preprocess(image_bgr)
        output, masks = self.infer(prep.blob)
        return PipelineResult(result=self.decoder.decode(output, masks), preprocess=prep)

    async def run_async(self, image_bgr: np.ndarray) -> PipelineResult:
        prep = self.preprocess(image_bgr)
        output, masks = self.infer(prep.blob)
        return PipelineResult(result=await self.decoder.decode_async(output, masks), preprocess=prep)


def load_pipeline(
    model_path: PathLike,
    layout: ChannelLayout,
    *,
    backend: Optional[str] = None,
    root: Optional[PathLike] = "auto",
    letterbox_cfg: LetterboxConfig = LetterboxConfig(),
    nms_cfg: NMSConfig = NMSConfig(max_output_size=100),
    onnx_providers: Optional[Sequence[str]] = None,
    torch_device: str = "cpu",
    torch_half: bool = False,
) -> YoloPipeline:
    """
    Create a pipeline for a model on disk.

    Args:
        model_path: path to the model file; relative paths resolve against project root by default
        layout: channel layout of the model output (see `layout_from_metadata`)
        backend: "onnxruntime" or "torchscript"; None infers it from the extension
    """

    resolved = resolve_path(model_path, root=root)
    chosen = backend
    if chosen is None:
        suffix = resolved.suffix.lower()
        if suffix == ".onnx":
            chosen = "onnxruntime"
        elif suffix in {".torchscript", ".ts", ".pt"}:
            chosen = "torchscript"
        else:
            raise ValueError(
                f"Could not infer backend from extension '{suffix}'. Pass backend=... explicitly."
            )

    chosen = chosen.lower()
    logger.info("loading %s model %s (task=%s)", chosen, resolved, layout.task)

    if chosen == "onnxruntime":
        from .backends.onnxruntime_backend import OnnxRuntimeBackend, OnnxRuntimeBackendConfig

        ort_backend = OnnxRuntimeBackend(resolved, OnnxRuntimeBackendConfig(providers=onnx_providers))
        return YoloPipeline(
            ort_backend.infer,
            layout,
            backend=ort_backend,
            backend_name="onnxruntime",
            letterbox_cfg=letterbox_cfg,
            nms_cfg=nms_cfg,
        )

    if chosen == "torchscript":
        from .backends.torchscript_backend import TorchScriptBackend, TorchScriptBackendConfig

        ts_backend = TorchScriptBackend(resolved, TorchScriptBackendConfig(device=torch_device, half=torch_half))
        return YoloPipeline(
            ts_backend.infer,
            layout,
            backend=ts_backend,
            backend_name="torchscript",
            letterbox_cfg=letterbox_cfg,
            nms_cfg=nms_cfg,
        )

    raise ValueError(f"Unsupported backend: {backend!r}")
