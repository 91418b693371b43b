from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import numpy as np


PathLike = Union[str, Path]


@dataclass(frozen=True)
class OnnxRuntimeBackendConfig:
    """
    Configuration for ONNX Runtime inference.

    - providers: ORT execution providers (e.g., ["CUDAExecutionProvider", "CPUExecutionProvider"])
    - input_name: override the auto-selected input
    - output_names: restrict/reorder outputs; None returns every output in model order
    """

    providers: Optional[Sequence[str]] = None
    input_name: Optional[str] = None
    output_names: Optional[Sequence[str]] = None


class OnnxRuntimeBackend:
    """
    ONNX Runtime backend.

    Expects an NCHW float32 blob, typically shaped (1, 3, H, W). A detect model returns
    one array (e.g. 1x84x8400); a segment model returns two (boxes 1x116x8400 and
    prototypes 1x32x160x160).
    """

    def __init__(self, model_path: PathLike, cfg: OnnxRuntimeBackendConfig = OnnxRuntimeBackendConfig()):
        try:
            import onnxruntime as ort  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError(
                "onnxruntime is required for the ONNX backend. Install it with `pip install onnxruntime` "
                "(or `onnxruntime-gpu`)."
            ) from e

        self._ort = ort
        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise FileNotFoundError(str(self.model_path))

        sess_opts = ort.SessionOptions()
        providers = list(cfg.providers) if cfg.providers is not None else None
        self.session = ort.InferenceSession(str(self.model_path), sess_options=sess_opts, providers=providers)

        self.input_name = cfg.input_name or self.session.get_inputs()[0].name
        available = [o.name for o in self.session.get_outputs()]
        self.output_names = list(cfg.output_names) if cfg.output_names else available
        missing = [n for n in self.output_names if n not in available]
        if missing:
            raise ValueError(f"Output names {missing} not found. Available: {available}")

    @property
    def input_shape(self) -> Optional[Sequence[Any]]:
        # e.g. [1, 3, 640, 640]; dynamic axes come back as strings or None
        return tuple(self.session.get_inputs()[0].shape)

    @property
    def providers_in_use(self) -> Sequence[str]:
        # ORT returns providers in priority order for this session.
        return tuple(self.session.get_providers())

    def model_metadata(self) -> Dict[str, str]:
        # Ultralytics exports store metadata.yaml keys (task, names, kpt_shape) here.
        return dict(self.session.get_modelmeta().custom_metadata_map)

    def infer(self, blob: np.ndarray) -> List[np.ndarray]:
        outputs = self.session.run(self.output_names, {self.input_name: blob})
        return [np.asarray(o) for o in outputs]
