# -- coding: utf-8 --

import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Type

import numpy as np

from core.registry import register_named, resolve_registered

SourceFactory = Dict[str, Type["BaseFrameSource"]]
_registry: SourceFactory = {}


@dataclass
class FrameSourceConfig:
    device: str = "0"
    fps: float = 30.0
    width: int = 0
    height: int = 0
    pixel_format: str = "bgr8"
    image_dir: str = ""
    order: str = "name_asc"
    end_mode: str = "loop"


def build_source_config(cfg_block) -> FrameSourceConfig:
    return FrameSourceConfig(
        device=str(cfg_block.device),
        fps=float(cfg_block.fps),
        width=int(cfg_block.width),
        height=int(cfg_block.height),
        pixel_format=_normalize_pixel_format(cfg_block.pixel_format),
        image_dir=str(cfg_block.image_dir),
        order=str(cfg_block.order),
        end_mode=str(cfg_block.end_mode),
    )


def _normalize_pixel_format(value: object) -> str:
    fmt = str(value or "").strip().lower()
    return fmt or "bgr8"


class BaseFrameSource(ABC):
    """Delivers live frames (HxWx3 uint8) at the source's frame rate."""

    def __init__(self, cfg: FrameSourceConfig):
        self.cfg = cfg
        self.lock = threading.Lock()

    @property
    def fps(self) -> float:
        return float(self.cfg.fps)

    @property
    def exhausted(self) -> bool:
        """True once a finite source has no more frames to deliver."""
        return False

    @abstractmethod
    def read(self) -> np.ndarray | None:
        """Return the next frame, or None when no frame is available right now."""

    @contextmanager
    @abstractmethod
    def session(self):
        """Open and release the underlying device."""
        yield


def register_source(name: str):
    return register_named(_registry, name)


def create_source(name: str, cfg: FrameSourceConfig) -> BaseFrameSource:
    cls = resolve_registered(
        _registry,
        name,
        package=__package__ or "camera",
        unknown_label="frame source type",
    )
    return cls(cfg)


def create_source_from_loaded_config(cfg) -> BaseFrameSource:
    return create_source(cfg.camera.type, build_source_config(cfg.camera))


__all__ = [
    "FrameSourceConfig",
    "build_source_config",
    "BaseFrameSource",
    "register_source",
    "create_source",
    "create_source_from_loaded_config",
]
