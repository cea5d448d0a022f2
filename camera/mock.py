# -- coding: utf-8 --

import logging
import os
import random
import re
from contextlib import contextmanager

import cv2
import numpy as np

from camera.base import BaseFrameSource, FrameSourceConfig, register_source

L = logging.getLogger("dropcam.camera.mock")

_SUPPORTED_EXTS = {".jpg", ".jpeg", ".png", ".bmp"}
_ORDER_CHOICES = {"name_asc", "name_desc", "name_natural", "random"}
_END_CHOICES = {"loop", "stop", "hold"}


def _natural_key(name: str):
    return [int(p) if p.isdigit() else p.lower() for p in re.split(r"(\d+)", name)]


def _resolve_image_dir(path: str) -> str:
    base = str(path or "").strip()
    if not base:
        raise RuntimeError("mock image_dir is required")
    base = os.path.abspath(base)
    if not os.path.isdir(base):
        raise RuntimeError(f"mock image_dir not found: {base}")
    return base


def _list_images(root_dir: str) -> list[str]:
    return [
        os.path.join(root_dir, name)
        for name in os.listdir(root_dir)
        if os.path.isfile(os.path.join(root_dir, name))
        and os.path.splitext(name)[1].lower() in _SUPPORTED_EXTS
    ]


def _sort_images(paths: list[str], order: str) -> list[str]:
    if order == "name_desc":
        return sorted(paths, key=lambda p: os.path.basename(p).lower(), reverse=True)
    if order == "name_natural":
        return sorted(paths, key=lambda p: _natural_key(os.path.basename(p)))
    if order == "random":
        shuffled = list(paths)
        random.shuffle(shuffled)
        return shuffled
    return sorted(paths, key=lambda p: os.path.basename(p).lower())


def _load_frame(path: str) -> np.ndarray | None:
    arr = cv2.imread(path, cv2.IMREAD_COLOR)
    if arr is not None:
        return arr
    data = np.fromfile(path, dtype=np.uint8)
    if data.size == 0:
        return None
    return cv2.imdecode(data, cv2.IMREAD_COLOR)


@register_source("mock")
class ImageDirSource(BaseFrameSource):
    """Replays the images of a directory as a live feed (one image per frame)."""

    def __init__(self, cfg: FrameSourceConfig):
        super().__init__(cfg)
        self._paths: list[str] = []
        self._frames: dict[str, np.ndarray | None] = {}
        self._pos = 0
        self._done = False
        self._order = str(cfg.order or "name_asc").strip().lower()
        self._end_mode = str(cfg.end_mode or "loop").strip().lower()

    @property
    def exhausted(self) -> bool:
        return self._done

    def _scan(self, root_dir: str):
        if self._order not in _ORDER_CHOICES:
            raise RuntimeError(
                f"mock order must be one of {sorted(_ORDER_CHOICES)}, got {self._order!r}"
            )
        if self._end_mode not in _END_CHOICES:
            raise RuntimeError(
                f"mock end_mode must be one of {sorted(_END_CHOICES)}, got {self._end_mode!r}"
            )
        self._paths = _sort_images(_list_images(root_dir), self._order)
        if not self._paths:
            raise RuntimeError(f"no images found in {root_dir}")
        self._pos = 0
        self._done = False
        L.info("Mock source: %d images from %s", len(self._paths), root_dir)

    def _next_path(self) -> str | None:
        if self._pos < len(self._paths):
            path = self._paths[self._pos]
            self._pos += 1
            return path
        if self._end_mode == "loop":
            self._pos = 1
            return self._paths[0]
        if self._end_mode == "hold":
            return self._paths[-1]
        self._done = True
        return None

    def read(self):
        with self.lock:
            path = self._next_path()
            if path is None:
                return None
            if path not in self._frames:
                # Unreadable files stay cached as None and deliver no frame.
                self._frames[path] = _load_frame(path)
            return self._frames[path]

    @contextmanager
    def session(self):
        self._scan(_resolve_image_dir(self.cfg.image_dir))
        try:
            yield self
        finally:
            self._frames.clear()


__all__ = ["ImageDirSource"]
