import unittest

import numpy as np

from yolo_helpers import (
    NMSBackend,
    NMSConfig,
    NumpyNMS,
    ShapeError,
    YoloDecoder,
    ChannelLayout,
    decode_box,
    decode_box_async,
    decode_classify,
    decode_classify_async,
    decode_pose,
    decode_pose_async,
    decode_segment,
    decode_segment_async,
)


def _random_output(channels: int, slots: int = 120, batch: int = 2, seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    out = rng.uniform(0, 1, size=(batch, channels, slots)).astype(np.float32)
    out[:, 0:2] *= 320
    out[:, 2:4] *= 48
    return out


class CountingNMS(NMSBackend):
    def __init__(self) -> None:
        self.sync_calls = 0
        self.async_calls = 0
        self._inner = NumpyNMS()

    def select(self, boxes, scores, cfg):
        self.sync_calls += 1
        return self._inner.select(boxes, scores, cfg)

    async def select_async(self, boxes, scores, cfg):
        self.async_calls += 1
        return await self._inner.select_async(boxes, scores, cfg)


class TestAsyncMatchesBlocking(unittest.IsolatedAsyncioTestCase):
    async def test_box(self) -> None:
        output = _random_output(4 + 3)
        for kwargs in ({}, {"max_output_size": 15, "iou_threshold": 0.3, "score_threshold": 0.2}):
            blocking = decode_box(output, num_classes=3, **kwargs)
            suspending = await decode_box_async(output, num_classes=3, **kwargs)
            self.assertEqual(blocking, suspending)

    async def test_pose(self) -> None:
        output = _random_output(4 + 1 + 17 * 3, seed=1)
        blocking = decode_pose(output, num_classes=1, num_keypoints=17, max_output_size=30)
        suspending = await decode_pose_async(output, num_classes=1, num_keypoints=17, max_output_size=30)
        self.assertEqual(blocking, suspending)
        self.assertGreater(len(blocking[0]), 0)

    async def test_segment(self) -> None:
        output = _random_output(4 + 2 + 32, seed=2)
        masks = np.random.default_rng(3).normal(size=(2, 10, 10, 32))
        blocking = decode_segment(output, masks, num_classes=2, mask_shape=(10, 10), max_output_size=25)
        suspending = await decode_segment_async(output, masks, num_classes=2, mask_shape=(10, 10), max_output_size=25)
        self.assertEqual(len(blocking), len(suspending))
        for a, b in zip(blocking, suspending):
            self.assertEqual(a.bounding_boxes, b.bounding_boxes)
            self.assertTrue(np.array_equal(a.masks, b.masks))

    async def test_classify(self) -> None:
        output = np.random.default_rng(4).uniform(size=(3, 10))
        self.assertEqual(decode_classify(output, num_classes=10), await decode_classify_async(output, num_classes=10))

    async def test_errors_surface_through_async_variant(self) -> None:
        with self.assertRaises(ShapeError):
            await decode_box_async(_random_output(6), num_classes=3)
        self.assertEqual(await decode_box_async([[]], num_classes=3), [])

    async def test_only_selection_goes_through_backend(self) -> None:
        backend = CountingNMS()
        decoder = YoloDecoder(ChannelLayout.detect(3), NMSConfig(max_output_size=5), backend=backend)
        output = _random_output(4 + 3, batch=3)
        blocking = decoder.decode(output)
        suspending = await decoder.decode_async(output)
        self.assertEqual(blocking, suspending)
        self.assertEqual(backend.sync_calls, 3)
        self.assertEqual(backend.async_calls, 3)


if __name__ == "__main__":
    unittest.main()
