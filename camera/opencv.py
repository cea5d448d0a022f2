# -- coding: utf-8 --

import logging
from contextlib import contextmanager

import cv2

from camera.base import BaseFrameSource, FrameSourceConfig, register_source

L = logging.getLogger("dropcam.camera.opencv")


def _open_capture(device: str) -> cv2.VideoCapture:
    dev = str(device or "0").strip()
    if dev.isdigit():
        return cv2.VideoCapture(int(dev))
    return cv2.VideoCapture(dev)


@register_source("opencv")
class OpenCvSource(BaseFrameSource):
    """Frames from a `cv2.VideoCapture` device index or video file."""

    def __init__(self, cfg: FrameSourceConfig):
        super().__init__(cfg)
        self._cap: cv2.VideoCapture | None = None
        self._is_file = not str(cfg.device or "0").strip().isdigit()
        self._done = False

    @property
    def exhausted(self) -> bool:
        return self._done

    def _apply_format(self, cap: cv2.VideoCapture):
        if self.cfg.width > 0:
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, int(self.cfg.width))
        if self.cfg.height > 0:
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, int(self.cfg.height))
        if self.cfg.fps > 0 and not self._is_file:
            cap.set(cv2.CAP_PROP_FPS, float(self.cfg.fps))

    def read(self):
        cap = self._cap
        if cap is None:
            raise RuntimeError("opencv source read() outside session()")
        with self.lock:
            ok, frame = cap.read()
        if not ok:
            if self._is_file:
                self._done = True
            return None
        return frame

    @contextmanager
    def session(self):
        cap = _open_capture(self.cfg.device)
        if not cap.isOpened():
            cap.release()
            raise RuntimeError(f"opencv source cannot open device {self.cfg.device!r}")
        self._apply_format(cap)
        L.info(
            "OpenCV source opened: device=%s %dx%d @ %.1ffps",
            self.cfg.device,
            int(cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
            int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
            float(cap.get(cv2.CAP_PROP_FPS) or 0.0),
        )
        self._cap = cap
        self._done = False
        try:
            yield self
        finally:
            self._cap = None
            cap.release()


__all__ = ["OpenCvSource"]
