import unittest

import numpy as np

from yolo_helpers import ClassifyResult, ShapeError, decode_classify


class TestDecodeClassify(unittest.TestCase):
    def test_single_batch(self) -> None:
        result = decode_classify([[0.1, 0.7, 0.2]], num_classes=3)
        self.assertEqual(result, [ClassifyResult(class_index=1, confidence=0.7, all_confidences=(0.1, 0.7, 0.2))])

    def test_tie_keeps_lowest_index(self) -> None:
        result = decode_classify([[0.4, 0.4, 0.2]], num_classes=3)
        self.assertEqual(result[0].class_index, 0)

    def test_multiple_batches_in_order(self) -> None:
        output = np.array([[0.9, 0.1], [0.2, 0.8], [0.5, 0.5]], dtype=np.float32)
        result = decode_classify(output, num_classes=2)
        self.assertEqual([r.class_index for r in result], [0, 1, 0])
        for r in result:
            self.assertEqual(r.confidence, max(r.all_confidences))

    def test_length_mismatch_fails(self) -> None:
        with self.assertRaises(ShapeError):
            decode_classify([[0.1, 0.7, 0.2]], num_classes=4)
        with self.assertRaises(ShapeError):
            decode_classify([[[0.1, 0.7, 0.2]]], num_classes=3)

    def test_empty_vector_returns_empty(self) -> None:
        self.assertEqual(decode_classify([[]], num_classes=3), [])
        self.assertEqual(decode_classify([], num_classes=3), [])


if __name__ == "__main__":
    unittest.main()
