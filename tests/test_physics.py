import unittest

from core.contracts import CaptureSettings
from core.physics import drop_time, scheduling_delay


class TestPhysics(unittest.TestCase):
    def test_drop_time(self):
        self.assertAlmostEqual(drop_time(0.30), 0.2474, delta=0.001)
        self.assertEqual(drop_time(0.0), 0.0)
        with self.assertRaises(ValueError):
            drop_time(-0.1)

    def test_scheduling_delay_never_negative(self):
        self.assertEqual(scheduling_delay(0.2, 0.5), 0.0)
        self.assertAlmostEqual(scheduling_delay(0.5, 0.1), 0.4)

    def test_small_drop_records_immediately(self):
        settings = CaptureSettings(drop_height_m=0.30, pre_impact_margin_s=0.5)
        self.assertLess(settings.drop_time_s, 0.5)
        self.assertEqual(
            scheduling_delay(settings.drop_time_s, settings.pre_impact_margin_s), 0.0
        )


class TestCaptureSettings(unittest.TestCase):
    def test_from_user_clamps_ranges(self):
        cases = [
            ((30.0, 4.0), (0.30, 2.0)),
            ((5.0, 0.2), (0.15, 0.5)),
            ((80.0, 9.0), (0.50, 2.0)),
        ]
        for (height_cm, duration_s), (height_m, half) in cases:
            with self.subTest(height_cm=height_cm, duration_s=duration_s):
                s = CaptureSettings.from_user(height_cm, duration_s)
                self.assertAlmostEqual(s.drop_height_m, height_m)
                self.assertAlmostEqual(s.pre_buffer_s, half)
                self.assertAlmostEqual(s.post_buffer_s, half)
                self.assertAlmostEqual(s.total_recording_duration, half * 2)

    def test_physics_summary(self):
        info = CaptureSettings(drop_height_m=0.30, frame_rate=240).physics_summary()
        self.assertEqual(info["drop_time_ms"], 247)
        self.assertEqual(info["recording_s"], 4.0)
        self.assertEqual(info["frame_count"], 960)


if __name__ == "__main__":
    unittest.main()
