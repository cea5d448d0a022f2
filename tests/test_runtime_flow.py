import os
import tempfile
import unittest

import cv2
import numpy as np

from camera import FrameSourceConfig, create_source
from core.contracts import CapturePhase, CaptureSettings
from core.runtime import RuntimeBuildConfig, build_runtime
from recorder import RecorderConfig, create_recorder

DARK_BGR = (20, 20, 20)
RED_BGR = (60, 60, 255)


def _write_frames(root: str, colors):
    for i, bgr in enumerate(colors):
        img = np.zeros((32, 32, 3), dtype=np.uint8)
        img[:, :] = bgr
        cv2.imwrite(os.path.join(root, f"{i:02d}.png"), img)


class TestRuntimeFlow(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.frames_dir = os.path.join(self._tmp.name, "frames")
        self.save_dir = os.path.join(self._tmp.name, "captures")
        os.makedirs(self.frames_dir)

    def tearDown(self):
        self._tmp.cleanup()

    def _build(self, end_mode: str):
        source = create_source(
            "mock",
            FrameSourceConfig(fps=50, image_dir=self.frames_dir, end_mode=end_mode),
        )
        settings = CaptureSettings(
            drop_height_m=0.30, pre_buffer_s=0.25, post_buffer_s=0.25
        )
        recorder = create_recorder(
            "images",
            RecorderConfig(
                save_dir=self.save_dir,
                duration_s=settings.total_recording_duration,
                ready_interval_s=0.01,
            ),
        )
        return build_runtime(
            source, recorder, config=RuntimeBuildConfig(settings=settings)
        )

    def test_red_flash_produces_one_capture(self):
        _write_frames(
            self.frames_dir, [DARK_BGR] * 3 + [RED_BGR] + [DARK_BGR] * 3
        )
        runtime = self._build(end_mode="loop")
        runtime.start()
        runtime.run(runtime_limit_s=10.0)

        self.assertIs(runtime.controller.state.phase, CapturePhase.COMPLETED)
        self.assertEqual(len(runtime.completed_captures), 1)
        artifact = runtime.completed_captures[0]
        self.assertTrue(os.path.isdir(artifact))
        self.assertGreater(len(os.listdir(artifact)), 0)
        self.assertEqual(runtime.controller.progress, 1.0)

    def test_exhausted_source_without_flash_stops_armed_runtime(self):
        _write_frames(self.frames_dir, [DARK_BGR] * 4)
        runtime = self._build(end_mode="stop")
        runtime.start()
        runtime.run(runtime_limit_s=10.0)

        self.assertIs(runtime.controller.state.phase, CapturePhase.IDLE)
        self.assertEqual(runtime.completed_captures, [])
        self.assertFalse(os.path.exists(self.save_dir))

    def test_source_ending_after_flash_still_completes(self):
        _write_frames(self.frames_dir, [DARK_BGR, DARK_BGR, RED_BGR])
        runtime = self._build(end_mode="stop")
        runtime.start()
        runtime.run(runtime_limit_s=10.0)

        self.assertIs(runtime.controller.state.phase, CapturePhase.COMPLETED)
        self.assertEqual(len(runtime.completed_captures), 1)
        self.assertFalse(runtime.recorder.is_recording)

    def test_runtime_is_single_use(self):
        _write_frames(self.frames_dir, [DARK_BGR])
        runtime = self._build(end_mode="hold")
        runtime.start()
        try:
            with self.assertRaises(RuntimeError):
                runtime.start()
        finally:
            runtime.stop()


if __name__ == "__main__":
    unittest.main()
