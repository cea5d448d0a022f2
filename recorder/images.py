# -- coding: utf-8 --

import os

import cv2
import numpy as np

from recorder.base import BaseRecorder, RecorderConfig, register_recorder
from utils.path_time import format_frame_filename


@register_recorder("images")
class ImageSequenceRecorder(BaseRecorder):
    """Writes each recorded frame as an image file in a per-capture directory."""

    def __init__(self, cfg: RecorderConfig, **kwargs):
        super().__init__(cfg, **kwargs)
        self._dir: str | None = None
        self._written = 0

    def _open(self, artifact, first_frame: np.ndarray):
        os.makedirs(artifact, exist_ok=True)
        self._dir = artifact
        self._written = 0

    def _write(self, frame: np.ndarray):
        if self._dir is None:
            raise RuntimeError("image sequence directory not open")
        path = os.path.join(
            self._dir, format_frame_filename(self._written, self.cfg.image_ext)
        )
        if not cv2.imwrite(path, frame.astype(np.uint8, copy=False)):
            raise RuntimeError(f"opencv_imwrite_failed: {path}")
        self._written += 1

    def _close(self):
        self._dir = None

    def _artifact_ready(self, artifact: str) -> bool:
        if not os.path.isdir(artifact):
            return False
        return len(os.listdir(artifact)) >= self._written


__all__ = ["ImageSequenceRecorder"]
