from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from .layout import DEFAULT_MASK_CHANNELS, ChannelLayout


logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass(frozen=True)
class ModelMetadata:
    task: Optional[str] = None
    class_names: Dict[int, str] = field(default_factory=dict)
    num_keypoints: Optional[int] = None
    # True for (x, y, visibility) keypoints, False for (x, y)
    visibility: Optional[bool] = None
    # (height, width) as exported
    imgsz: Optional[Tuple[int, int]] = None

    @property
    def num_classes(self) -> int:
        return len(self.class_names)


def _parse_int(text: str) -> Optional[int]:
    # "- 17  # number of keypoints" -> 17
    text = text.split("#", 1)[0].strip().lstrip("-").strip()
    try:
        return int(text)
    except ValueError:
        return None


def parse_metadata_yaml(text: str) -> ModelMetadata:
    """
    Parse the `metadata.yaml` written next to exported YOLO models, e.g.:

        task: pose
        imgsz:
        - 640
        - 640
        kpt_shape:
        - 17
        - 3
        names:
          0: person

    Only the keys needed to build a `ChannelLayout` are read. This intentionally
    avoids adding a PyYAML dependency.
    """

    task: Optional[str] = None
    names: Dict[int, str] = {}
    lists: Dict[str, List[int]] = {}
    section: Optional[str] = None

    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue

        indented = raw[:1] in (" ", "\t")
        if line.startswith("-") and section in ("imgsz", "kpt_shape"):
            value = _parse_int(line)
            if value is not None:
                lists[section].append(value)
            continue
        if indented and section == "names":
            # Parse "id: label"
            if ":" not in line:
                continue
            left, right = line.split(":", 1)
            left = left.strip()
            right = right.strip().strip("'").strip('"')
            if left.isdigit():
                names[int(left)] = right
            continue
        if indented:
            continue

        section = None
        if ":" not in line:
            continue
        key, value = line.split(":", 1)
        key = key.strip()
        value = value.split("#", 1)[0].strip()
        if key == "task":
            task = value.strip("'").strip('"') or None
        elif key == "names" and not value:
            section = "names"
        elif key in ("imgsz", "kpt_shape"):
            lists[key] = []
            if value.startswith("["):
                # flow style: imgsz: [640, 640]
                lists[key] = [v for v in (_parse_int(p) for p in value.strip("[]").split(",")) if v is not None]
            else:
                section = key

    num_keypoints = None
    visibility = None
    kpt_shape = lists.get("kpt_shape")
    if kpt_shape:
        num_keypoints = kpt_shape[0]
        if len(kpt_shape) > 1:
            visibility = kpt_shape[1] == 3

    imgsz = None
    size = lists.get("imgsz")
    if size:
        imgsz = (size[0], size[1] if len(size) > 1 else size[0])

    return ModelMetadata(
        task=task,
        class_names=names,
        num_keypoints=num_keypoints,
        visibility=visibility,
        imgsz=imgsz,
    )


def load_metadata(metadata_path: PathLike) -> ModelMetadata:
    path = Path(metadata_path)
    if not path.exists():
        raise FileNotFoundError(f"Model metadata not found: {path}")
    return parse_metadata_yaml(path.read_text(encoding="utf-8"))


def load_class_names(metadata_path: PathLike) -> Dict[int, str]:
    return load_metadata(metadata_path).class_names


def layout_from_metadata(
    meta: ModelMetadata,
    *,
    task: Optional[str] = None,
    num_mask_channels: int = DEFAULT_MASK_CHANNELS,
) -> ChannelLayout:
    """
    Build the channel layout for a model from its metadata.

    `task` overrides the exported task; the metadata never carries the number of mask
    channels, so segment models use `num_mask_channels`.
    """

    chosen = task or meta.task
    if chosen is None:
        raise ValueError("metadata has no task; pass task=... explicitly")
    if meta.num_classes < 1:
        raise ValueError("metadata has no class names")

    if chosen == "pose":
        if meta.num_keypoints is None:
            raise ValueError("pose metadata is missing kpt_shape")
        visibility = True if meta.visibility is None else meta.visibility
        return ChannelLayout.pose(meta.num_classes, meta.num_keypoints, visibility=visibility)
    if chosen == "segment":
        return ChannelLayout.segment(meta.num_classes, num_mask_channels)
    if chosen == "classify":
        return ChannelLayout.classify(meta.num_classes)
    if chosen != "detect":
        logger.warning("unknown task %r in metadata, decoding as detect", chosen)
    return ChannelLayout.detect(meta.num_classes)
