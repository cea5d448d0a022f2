import unittest

import numpy as np

from core.contracts import ColorReading, DetectorConfig
from detect import FrameSampler, TriggerDetector, classify_reading


def _frame(red: float, green: float, blue: float, size: int = 4) -> np.ndarray:
    """Uniform float frame in bgr layout."""
    img = np.zeros((size, size, 3), dtype=np.float64)
    img[:, :] = (blue, green, red)
    return img


RED_FLASH = _frame(0.9, 0.2, 0.2)
DARK = _frame(0.1, 0.1, 0.1)


class TestClassifyReading(unittest.TestCase):
    def test_threshold_is_strict(self):
        cfg = DetectorConfig()
        at_threshold = ColorReading(red=0.70, green=0.3, blue=0.3, brightness=0.433)
        above = ColorReading(red=0.71, green=0.3, blue=0.3, brightness=0.433)
        self.assertFalse(classify_reading(at_threshold, cfg)[0])
        self.assertTrue(classify_reading(above, cfg)[0])

    def test_bright_red_without_dominance_is_rejected(self):
        reading = ColorReading(red=0.9, green=0.65, blue=0.1, brightness=0.55)
        triggered, _, dominance = classify_reading(reading, DetectorConfig())
        self.assertFalse(triggered)
        self.assertAlmostEqual(dominance, 0.25)

    def test_dim_frame_is_rejected(self):
        reading = ColorReading(red=0.75, green=0.0, blue=0.0, brightness=0.25)
        self.assertFalse(classify_reading(reading, DetectorConfig())[0])

    def test_confidence_is_capped_and_non_negative(self):
        strong = ColorReading(red=1.0, green=0.0, blue=0.0, brightness=0.34)
        green = ColorReading(red=0.0, green=1.0, blue=0.0, brightness=0.34)
        partial = ColorReading(red=1.0, green=0.2, blue=0.2, brightness=0.47)
        self.assertEqual(classify_reading(strong, DetectorConfig())[1], 1.0)
        self.assertEqual(classify_reading(green, DetectorConfig())[1], 0.0)
        self.assertAlmostEqual(classify_reading(partial, DetectorConfig())[1], 0.9)


class TestTriggerDetector(unittest.TestCase):
    def setUp(self):
        self.detector = TriggerDetector()
        self.detector.enable()

    def test_disabled_detector_skips(self):
        self.detector.disable()
        self.assertIsNone(self.detector.detect(RED_FLASH, 1.0))

    def test_cooldown_suppresses_then_releases(self):
        first = self.detector.detect(RED_FLASH, 0.0)
        second = self.detector.detect(RED_FLASH, 0.05)
        third = self.detector.detect(RED_FLASH, 0.15)
        self.assertTrue(first.is_triggered)
        self.assertEqual(first.timestamp, 0.0)
        self.assertIsNone(second)
        self.assertTrue(third.is_triggered)
        self.assertEqual(self.detector.last_trigger_time, 0.15)

    def test_non_trigger_frames_do_not_start_cooldown(self):
        result = self.detector.detect(DARK, 1.0)
        self.assertIsNotNone(result)
        self.assertFalse(result.is_triggered)
        self.assertAlmostEqual(result.red_intensity, 0.1)
        self.assertTrue(self.detector.detect(RED_FLASH, 1.01).is_triggered)

    def test_reset_is_idempotent_and_clears_cooldown(self):
        self.assertTrue(self.detector.detect(RED_FLASH, 5.0).is_triggered)
        self.detector.reset()
        self.detector.reset()
        self.assertEqual(self.detector.last_trigger_time, 0.0)
        self.assertTrue(self.detector.detect(RED_FLASH, 5.01).is_triggered)

    def test_unreadable_frame_is_skipped(self):
        self.assertIsNone(self.detector.detect(None, 1.0))
        self.assertIsNone(self.detector.detect(np.zeros((4, 4)), 1.0))

    def test_config_is_frozen_while_enabled(self):
        with self.assertRaises(RuntimeError):
            self.detector.config = DetectorConfig(threshold=0.5)
        self.detector.disable()
        self.detector.config = DetectorConfig(threshold=0.5)
        self.assertEqual(self.detector.config.threshold, 0.5)

    def test_invalid_config_rejected(self):
        with self.assertRaises(ValueError):
            TriggerDetector(DetectorConfig(threshold=1.5))
        with self.assertRaises(ValueError):
            TriggerDetector(DetectorConfig(cooldown_s=-0.1))


class TestFrameSampler(unittest.TestCase):
    def test_only_center_region_is_sampled(self):
        img = np.zeros((4, 4, 3), dtype=np.uint8)
        img[1:3, 1:3] = (0, 0, 255)
        reading = FrameSampler().sample(img)
        self.assertEqual(reading.red, 1.0)
        self.assertEqual(reading.green, 0.0)
        self.assertEqual(reading.blue, 0.0)
        self.assertAlmostEqual(reading.brightness, 1.0 / 3.0)

    def test_rgb_layout(self):
        img = np.zeros((2, 2, 3), dtype=np.float64)
        img[:, :] = (0.8, 0.1, 0.3)
        reading = FrameSampler("rgb8").sample(img)
        self.assertAlmostEqual(reading.red, 0.8)
        self.assertAlmostEqual(reading.blue, 0.3)

    def test_alpha_channel_ignored(self):
        img = np.zeros((4, 4, 4), dtype=np.uint8)
        img[:, :] = (51, 102, 204, 255)
        reading = FrameSampler().sample(img)
        self.assertAlmostEqual(reading.red, 0.8)
        self.assertAlmostEqual(reading.green, 0.4)
        self.assertAlmostEqual(reading.blue, 0.2)

    def test_unavailable_frames(self):
        sampler = FrameSampler()
        self.assertIsNone(sampler.sample(None))
        self.assertIsNone(sampler.sample(np.zeros((4, 4), dtype=np.uint8)))
        self.assertIsNone(sampler.sample(np.zeros((0, 4, 3), dtype=np.uint8)))
        self.assertIsNone(sampler.sample(np.zeros((4, 4, 2), dtype=np.uint8)))

    def test_uint16_frame_scaled_by_its_own_range(self):
        img = np.zeros((4, 4, 3), dtype=np.uint16)
        img[:, :] = (0, 32768, 65535)
        reading = FrameSampler().sample(img)
        self.assertEqual(reading.red, 1.0)
        self.assertAlmostEqual(reading.green, 0.5, places=4)
        self.assertEqual(reading.blue, 0.0)

    def test_non_finite_frame_is_unavailable(self):
        img = np.full((4, 4, 3), 0.9, dtype=np.float32)
        img[1, 1, 2] = np.nan
        self.assertIsNone(FrameSampler().sample(img))
        img[1, 1, 2] = np.inf
        self.assertIsNone(FrameSampler().sample(img))

        detector = TriggerDetector()
        detector.enable()
        self.assertIsNone(detector.detect(img, 1.0))

    def test_unknown_pixel_format_rejected(self):
        with self.assertRaises(ValueError):
            FrameSampler("yuv420")


if __name__ == "__main__":
    unittest.main()
