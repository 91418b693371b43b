"""
Decode raw YOLO model outputs into boxes, keypoints, masks and classifications.

Framework-agnostic: works with nested lists or NumPy arrays emitted by ONNX
Runtime, TorchScript or any other runtime. The decoders need only NumPy;
OpenCV is used for letterboxing and drawing.
"""

from .types import (
    BoundingBox,
    BoundingBoxWithKeypoints,
    BoundingBoxWithMaskCoefficients,
    BoxResult,
    ClassifyResult,
    Keypoint,
    PoseResult,
    SegmentBatch,
    SegmentResult,
)
from .errors import ShapeError
from .layout import ChannelLayout, check_output_shape, num_output_boxes
from .geometry import Rect, box_iou, has_overlap, score_candidates, xywh_to_xyxy
from .nms import NMSBackend, NMSConfig, NumpyNMS, nms, select_box_indices
from .postprocess import YoloDecoder
from .box import decode_box, decode_box_async
from .pose import decode_pose, decode_pose_async
from .segment import combine_mask, composite_mask, decode_segment, decode_segment_async
from .classify import decode_classify, decode_classify_async
from .letterbox import (
    LetterboxConfig,
    PreprocessResult,
    letterbox,
    preprocess_image,
    unletterbox_box,
    unletterbox_mask,
)
from .metadata import ModelMetadata, layout_from_metadata, load_class_names, load_metadata, parse_metadata_yaml
from .runtime import PipelineResult, YoloPipeline, find_project_root, load_pipeline, resolve_path
from .visualize import draw_detections, overlay_mask

__all__ = [
    "BoundingBox",
    "BoundingBoxWithKeypoints",
    "BoundingBoxWithMaskCoefficients",
    "BoxResult",
    "ClassifyResult",
    "Keypoint",
    "PoseResult",
    "SegmentBatch",
    "SegmentResult",
    "ShapeError",
    "ChannelLayout",
    "check_output_shape",
    "num_output_boxes",
    "Rect",
    "box_iou",
    "has_overlap",
    "score_candidates",
    "xywh_to_xyxy",
    "NMSBackend",
    "NMSConfig",
    "NumpyNMS",
    "nms",
    "select_box_indices",
    "YoloDecoder",
    "decode_box",
    "decode_box_async",
    "decode_pose",
    "decode_pose_async",
    "combine_mask",
    "composite_mask",
    "decode_segment",
    "decode_segment_async",
    "decode_classify",
    "decode_classify_async",
    "LetterboxConfig",
    "PreprocessResult",
    "letterbox",
    "preprocess_image",
    "unletterbox_box",
    "unletterbox_mask",
    "ModelMetadata",
    "layout_from_metadata",
    "load_class_names",
    "load_metadata",
    "parse_metadata_yaml",
    "PipelineResult",
    "YoloPipeline",
    "find_project_root",
    "load_pipeline",
    "resolve_path",
    "draw_detections",
    "overlay_mask",
]
