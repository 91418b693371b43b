import unittest

import numpy as np

from yolo_helpers import (
    BoundingBox,
    BoundingBoxWithKeypoints,
    Keypoint,
    LetterboxConfig,
    preprocess_image,
    unletterbox_box,
    unletterbox_mask,
)


class TestUnletterbox(unittest.TestCase):
    def test_box_mapped_to_original_image(self) -> None:
        box = BoundingBox(x=320, y=336, width=64, height=32, class_index=0, confidence=0.9, all_confidences=(0.9,))
        out = unletterbox_box(box, ratio=(0.5, 0.5), pad=(0.0, 16.0))
        self.assertIsInstance(out, BoundingBox)
        self.assertEqual((out.x, out.y, out.width, out.height), (640.0, 640.0, 128.0, 64.0))
        self.assertEqual(out.confidence, 0.9)
        self.assertEqual(box.x, 320)

    def test_keypoints_follow_the_box(self) -> None:
        box = BoundingBoxWithKeypoints(
            x=10,
            y=20,
            width=4,
            height=4,
            class_index=0,
            confidence=0.5,
            all_confidences=(0.5,),
            keypoints=(Keypoint(12, 22, 0.3),),
        )
        out = unletterbox_box(box, ratio=(2.0, 2.0), pad=(2.0, 4.0))
        self.assertIsInstance(out, BoundingBoxWithKeypoints)
        self.assertEqual(out.keypoints, (Keypoint(5.0, 9.0, 0.3),))


class TestPreprocess(unittest.TestCase):
    def test_blob_shape_and_padding(self) -> None:
        image = np.full((50, 100, 3), 255, dtype=np.uint8)
        prep = preprocess_image(image, LetterboxConfig(new_shape=(64, 64)))
        self.assertEqual(prep.blob.shape, (1, 3, 64, 64))
        self.assertEqual(prep.blob.dtype, np.float32)
        self.assertEqual(prep.orig_size, (100, 50))
        self.assertEqual(prep.ratio, (0.64, 0.64))
        self.assertEqual(prep.pad, (0.0, 16.0))
        self.assertAlmostEqual(float(prep.blob.max()), 1.0)

    def test_rejects_non_bgr(self) -> None:
        with self.assertRaises(ValueError):
            preprocess_image(np.zeros((10, 10), dtype=np.uint8))

    def test_config_validation(self) -> None:
        with self.assertRaises(ValueError):
            LetterboxConfig(new_shape=(16, 640))


class TestUnletterboxMask(unittest.TestCase):
    def test_odd_padding_crops_exactly_the_content(self) -> None:
        # 51 rows in a 64 row input: 6 rows of padding on top, 7 below
        prep = preprocess_image(np.zeros((51, 64, 3), dtype=np.uint8), LetterboxConfig(new_shape=(64, 64)))
        self.assertEqual(prep.pad, (0.0, 6.5))
        content = (prep.blob[0, 0] == 0).astype(np.float32)
        self.assertEqual(int(content.sum()), 51 * 64)

        mask = unletterbox_mask(content, prep)
        self.assertEqual(mask.shape, (51, 64))
        self.assertTrue(np.all(mask == 1.0))

    def test_prototype_mask_resized_to_original(self) -> None:
        prep = preprocess_image(np.zeros((50, 100, 3), dtype=np.uint8), LetterboxConfig(new_shape=(64, 64)))
        mask = np.zeros((16, 16), dtype=np.float32)
        mask[4:12, :] = 1.0  # the unpadded band is rows 4..11 at quarter scale
        out = unletterbox_mask(mask, prep)
        self.assertEqual(out.shape, (50, 100))
        self.assertTrue(np.allclose(out, 1.0))

    def test_rejects_non_2d(self) -> None:
        prep = preprocess_image(np.zeros((8, 8, 3), dtype=np.uint8), LetterboxConfig(new_shape=(32, 32)))
        with self.assertRaises(ValueError):
            unletterbox_mask(np.zeros((2, 4, 4)), prep)


if __name__ == "__main__":
    unittest.main()
