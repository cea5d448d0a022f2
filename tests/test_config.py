import os
import tempfile
import textwrap
import unittest

from core.config import ConfigError, load_config, validate_config
from core.runtime import build_runtime_config_from_loaded_config

MAIN_YAML = """
runtime:
  save_dir: out
  mode: continuous
camera:
  type: mock
  common:
    fps: 60
  mock:
    image_dir: frames
    end_mode: stop
  opencv:
    device: "1"
detect:
  threshold: 0.75
  cooldown_ms: 250
capture:
  drop_height_cm: 80
  recording_duration_s: 2
recorder:
  type: images
"""


class _ConfigDirCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.config_dir = self._tmp.name

    def tearDown(self):
        self._tmp.cleanup()

    def write(self, name: str, body: str):
        with open(os.path.join(self.config_dir, name), "w", encoding="utf-8") as f:
            f.write(textwrap.dedent(body))


class TestLoadConfig(_ConfigDirCase):
    def test_sections_and_camera_nesting(self):
        self.write("main_test.yaml", MAIN_YAML)
        cfg = load_config(self.config_dir)
        validate_config(cfg)
        self.assertEqual(cfg.runtime.mode, "continuous")
        self.assertEqual(cfg.camera.type, "mock")
        self.assertEqual(cfg.camera.fps, 60)
        self.assertEqual(cfg.camera.image_dir, "frames")
        # Only the selected camera block applies.
        self.assertEqual(cfg.camera.device, "0")
        self.assertEqual(cfg.recorder.type, "images")
        self.assertEqual(cfg.paths["main"], os.path.join(self.config_dir, "main_test.yaml"))

    def test_runtime_build_config_clamps_and_converts(self):
        self.write("main_test.yaml", MAIN_YAML)
        rcfg = build_runtime_config_from_loaded_config(load_config(self.config_dir))
        self.assertAlmostEqual(rcfg.settings.drop_height_m, 0.50)
        self.assertAlmostEqual(rcfg.settings.total_recording_duration, 2.0)
        self.assertAlmostEqual(rcfg.detector.cooldown_s, 0.25)
        self.assertEqual(rcfg.detector.threshold, 0.75)

    def test_missing_main_config(self):
        with self.assertRaises(ConfigError):
            load_config(self.config_dir)

    def test_multiple_main_configs(self):
        self.write("main_a.yaml", "runtime: {}\n")
        self.write("main_b.yml", "runtime: {}\n")
        with self.assertRaises(ConfigError):
            load_config(self.config_dir)

    def test_unknown_keys_rejected(self):
        cases = [
            ("detect.bogus", "detect:\n  bogus: 1\n"),
            ("section 'output'", "output:\n  hmi: {}\n"),
            ("camera.fps must be nested", "camera:\n  fps: 30\n"),
        ]
        for expected, body in cases:
            with self.subTest(expected=expected):
                self.write("main_test.yaml", body)
                with self.assertRaises(ConfigError) as cm:
                    load_config(self.config_dir)
                self.assertIn(expected.split()[-1], str(cm.exception))


class TestValidateConfig(_ConfigDirCase):
    def test_invalid_values_raise_config_error(self):
        cases = [
            ("runtime.mode", "runtime", {"mode": "burst"}),
            ("detect.threshold", "detect", {"threshold": 1.2}),
            ("detect.cooldown_ms", "detect", {"cooldown_ms": -1}),
            ("detect.roi_fraction", "detect", {"roi_fraction": 0}),
            ("camera.pixel_format", "camera", {"pixel_format": "yuv"}),
            ("capture.frame_rate", "capture", {"frame_rate": 0}),
            ("recorder.codec", "recorder", {"codec": "h264x"}),
            ("recorder.ready_retries", "recorder", {"ready_retries": -1}),
        ]
        self.write("main_test.yaml", MAIN_YAML)
        for expected_name, section, patch in cases:
            with self.subTest(field=expected_name):
                cfg = load_config(self.config_dir)
                for k, v in patch.items():
                    setattr(getattr(cfg, section), k, v)
                with self.assertRaises(ConfigError) as cm:
                    validate_config(cfg)
                self.assertIn(expected_name, str(cm.exception))


if __name__ == "__main__":
    unittest.main()
