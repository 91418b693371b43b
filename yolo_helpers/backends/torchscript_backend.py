from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Union

import numpy as np


PathLike = Union[str, Path]


@dataclass(frozen=True)
class TorchScriptBackendConfig:
    """
    Configuration for TorchScript inference.

    - device: "cpu" or "cuda" (if available)
    - half: cast input to float16 (only if the model expects it)
    """

    device: str = "cpu"
    half: bool = False


def _flatten_outputs(y) -> list:
    # Segment models return (boxes, protos); some exports nest them one level deeper.
    if isinstance(y, (tuple, list)):
        flat = []
        for item in y:
            flat.extend(_flatten_outputs(item))
        return flat
    return [y]


class TorchScriptBackend:
    """
    TorchScript backend using `torch.jit.load`.

    This doesn't require model class code (unlike many raw .pt weight checkpoints).
    """

    def __init__(self, model_path: PathLike, cfg: TorchScriptBackendConfig = TorchScriptBackendConfig()):
        try:
            import torch  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError("torch is required for the TorchScript backend. Install with `pip install torch`.") from e

        self._torch = torch
        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise FileNotFoundError(str(self.model_path))

        self.device = torch.device(cfg.device)
        self.half = cfg.half

        model = torch.jit.load(str(self.model_path), map_location=self.device)
        model.eval()
        self.model = model

    def infer(self, blob: np.ndarray) -> List[np.ndarray]:
        torch = self._torch
        x = torch.as_tensor(blob, device=self.device)
        x = x.half() if self.half else x.float()
        x = x.contiguous()

        with torch.no_grad():
            y = self.model(x)

        return [t.detach().float().to("cpu").numpy() for t in _flatten_outputs(y) if hasattr(t, "detach")]
