# -- coding: utf-8 --

import logging
import os

import cv2
import numpy as np

from recorder.base import BaseRecorder, RecorderConfig, register_recorder

L = logging.getLogger("dropcam.recorder.video")


@register_recorder("video")
class VideoFileRecorder(BaseRecorder):
    """Writes the recording as one movie file through `cv2.VideoWriter`."""

    def __init__(self, cfg: RecorderConfig, **kwargs):
        super().__init__(cfg, **kwargs)
        self.artifact_ext = cfg.ext
        self._writer: cv2.VideoWriter | None = None
        self._size: tuple[int, int] = (0, 0)

    def _open(self, artifact, first_frame: np.ndarray):
        h, w = first_frame.shape[:2]
        fourcc = cv2.VideoWriter_fourcc(*str(self.cfg.codec)[:4].ljust(4))
        writer = cv2.VideoWriter(artifact, fourcc, float(self.cfg.fps), (w, h))
        if not writer.isOpened():
            writer.release()
            raise RuntimeError(f"opencv_videowriter_open_failed: {artifact}")
        self._writer = writer
        self._size = (w, h)
        L.debug("VideoWriter opened %dx%d codec=%s fps=%.0f", w, h, self.cfg.codec, self.cfg.fps)

    def _write(self, frame: np.ndarray):
        writer = self._writer
        if writer is None:
            raise RuntimeError("video writer not open")
        h, w = frame.shape[:2]
        if (w, h) != self._size:
            frame = cv2.resize(frame, self._size)
        if frame.ndim == 2:
            frame = cv2.cvtColor(frame, cv2.COLOR_GRAY2BGR)
        writer.write(frame.astype(np.uint8, copy=False))

    def _close(self):
        writer, self._writer = self._writer, None
        if writer is not None:
            writer.release()

    def _artifact_ready(self, artifact: str) -> bool:
        return os.path.isfile(artifact) and os.path.getsize(artifact) > 0


__all__ = ["VideoFileRecorder"]
