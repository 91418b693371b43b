import unittest

import numpy as np

from yolo_helpers import BoundingBox, ShapeError, decode_box


def _detect_output() -> list:
    # [1][4 + 1][3]: slot 0 confident, slots 1 and 2 overlap it with low scores
    return [
        [
            [50, 52, 54],  # x
            [50, 50, 50],  # y
            [20, 20, 20],  # w
            [20, 20, 20],  # h
            [0.9, 0.3, 0.2],  # class 0
        ]
    ]


class TestDecodeBox(unittest.TestCase):
    def test_single_box_after_nms(self) -> None:
        result = decode_box(_detect_output(), num_classes=1, max_output_size=1, score_threshold=0.5)
        self.assertEqual(len(result), 1)
        self.assertEqual(len(result[0]), 1)
        box = result[0][0]
        self.assertIsInstance(box, BoundingBox)
        self.assertEqual((box.x, box.y, box.width, box.height), (50.0, 50.0, 20.0, 20.0))
        self.assertEqual(box.class_index, 0)
        self.assertEqual(box.confidence, 0.9)
        self.assertEqual(box.all_confidences, (0.9,))

    def test_without_max_output_size_keeps_slot_order(self) -> None:
        result = decode_box(_detect_output(), num_classes=1, score_threshold=0.5)
        self.assertEqual([b.x for b in result[0]], [50.0, 52.0, 54.0])
        self.assertEqual([b.confidence for b in result[0]], [0.9, 0.3, 0.2])

    def test_nms_order_is_selection_order(self) -> None:
        output = np.array(
            [
                [
                    [10, 100, 200],
                    [10, 100, 200],
                    [10, 10, 10],
                    [10, 10, 10],
                    [0.2, 0.1, 0.6],  # class 0
                    [0.3, 0.9, 0.1],  # class 1
                ]
            ],
            dtype=np.float32,
        )
        result = decode_box(output, num_classes=2, max_output_size=10)
        self.assertEqual([b.x for b in result[0]], [100.0, 200.0, 10.0])
        self.assertEqual([b.class_index for b in result[0]], [1, 0, 1])

    def test_confidence_is_max_of_all_confidences(self) -> None:
        rng = np.random.default_rng(3)
        output = rng.uniform(0, 1, size=(2, 4 + 5, 40))
        output[:, 0:2] *= 640
        output[:, 2:4] *= 64
        result = decode_box(output, num_classes=5, max_output_size=20, iou_threshold=0.45)
        self.assertEqual(len(result), 2)
        for batch in result:
            self.assertGreater(len(batch), 0)
            self.assertLessEqual(len(batch), 20)
            for box in batch:
                self.assertEqual(len(box.all_confidences), 5)
                self.assertEqual(box.confidence, max(box.all_confidences))
                self.assertEqual(box.confidence, box.all_confidences[box.class_index])
                self.assertEqual(box.class_index, int(np.argmax(box.all_confidences)))

    def test_batches_keep_input_order(self) -> None:
        first = _detect_output()[0]
        second = [[300, 0, 0], [300, 0, 0], [4, 0, 0], [4, 0, 0], [0.8, 0.0, 0.0]]
        result = decode_box([first, second], num_classes=1, max_output_size=1)
        self.assertEqual([batch[0].x for batch in result], [50.0, 300.0])

    def test_channel_mismatch_fails_whole_call(self) -> None:
        with self.assertRaises(ShapeError):
            decode_box(_detect_output(), num_classes=2)
        with self.assertRaises(ValueError):
            decode_box(_detect_output(), num_classes=2)

    def test_ragged_input_fails(self) -> None:
        ragged = [_detect_output()[0], [[1, 2], [3, 4], [5, 6], [7, 8], [0.1, 0.2]]]
        with self.assertRaises(ShapeError):
            decode_box(ragged, num_classes=1)

    def test_empty_first_batch_returns_empty(self) -> None:
        self.assertEqual(decode_box([[]], num_classes=1), [])
        self.assertEqual(decode_box([], num_classes=80, max_output_size=5), [])
        self.assertEqual(decode_box(np.zeros((1, 0, 8400)), num_classes=80), [])

    def test_result_does_not_alias_input(self) -> None:
        output = np.array(_detect_output(), dtype=np.float64)
        result = decode_box(output, num_classes=1)
        output[:] = -1
        self.assertEqual(result[0][0].x, 50.0)
        self.assertEqual(result[0][0].all_confidences, (0.9,))


if __name__ == "__main__":
    unittest.main()
