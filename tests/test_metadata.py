import tempfile
import unittest
from pathlib import Path

from yolo_helpers import ChannelLayout, layout_from_metadata, load_class_names, load_metadata, parse_metadata_yaml


POSE_METADATA = """\
description: Ultralytics YOLOv8n-pose model
version: 8.3.83
task: pose
batch: 1
imgsz:
- 640
- 640
names:
  0: person
kpt_shape:
- 17
- 3
args:
  batch: 1
  half: false
"""

SEGMENT_METADATA = """\
task: segment
imgsz: [480, 640]
names:
  0: person
  1: bicycle
  2: 'traffic light'
"""


class TestParseMetadata(unittest.TestCase):
    def test_pose_metadata(self) -> None:
        meta = parse_metadata_yaml(POSE_METADATA)
        self.assertEqual(meta.task, "pose")
        self.assertEqual(meta.class_names, {0: "person"})
        self.assertEqual(meta.num_keypoints, 17)
        self.assertTrue(meta.visibility)
        self.assertEqual(meta.imgsz, (640, 640))
        self.assertEqual(layout_from_metadata(meta), ChannelLayout.pose(1, 17, visibility=True))

    def test_segment_metadata_flow_list_and_quoted_names(self) -> None:
        meta = parse_metadata_yaml(SEGMENT_METADATA)
        self.assertEqual(meta.task, "segment")
        self.assertEqual(meta.class_names, {0: "person", 1: "bicycle", 2: "traffic light"})
        self.assertEqual(meta.imgsz, (480, 640))
        self.assertIsNone(meta.num_keypoints)
        self.assertEqual(layout_from_metadata(meta, num_mask_channels=32).length, 4 + 3 + 32)

    def test_keypoints_without_visibility(self) -> None:
        meta = parse_metadata_yaml("task: pose\nkpt_shape:\n- 4\n- 2\nnames:\n  0: hand\n")
        self.assertFalse(meta.visibility)
        self.assertEqual(layout_from_metadata(meta).length, 4 + 1 + 4 * 2)

    def test_task_override_and_missing_task(self) -> None:
        meta = parse_metadata_yaml("names:\n  0: a\n  1: b\n")
        with self.assertRaises(ValueError):
            layout_from_metadata(meta)
        self.assertEqual(layout_from_metadata(meta, task="classify"), ChannelLayout.classify(2))

    def test_pose_without_kpt_shape_rejected(self) -> None:
        with self.assertRaises(ValueError):
            layout_from_metadata(parse_metadata_yaml("task: pose\nnames:\n  0: person\n"))


class TestLoadMetadata(unittest.TestCase):
    def test_load_from_file(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        path = Path(tmpdir.name) / "metadata.yaml"
        path.write_text(POSE_METADATA, encoding="utf-8")
        self.assertEqual(load_metadata(path).task, "pose")
        self.assertEqual(load_class_names(str(path)), {0: "person"})

    def test_missing_file(self) -> None:
        with self.assertRaises(FileNotFoundError):
            load_metadata("/nonexistent/metadata.yaml")


if __name__ == "__main__":
    unittest.main()
