"""Typed config schema blocks shared by loader/validator/runtime."""

from dataclasses import dataclass, field
from typing import Dict, List


class ConfigError(Exception):
    pass


@dataclass
class RuntimeConfig:
    save_dir: str = "data"
    max_runtime_s: float = 0.0
    log_level: str = "info"
    mode: str = "single"  # "single" | "continuous"
    auto_arm: bool = True
    rearm_delay_s: float = 1.0


@dataclass
class CameraConfigBlock:
    type: str = "mock"
    device: str = "0"
    fps: float = 30.0
    width: int = 0
    height: int = 0
    pixel_format: str = "bgr8"
    image_dir: str = ""
    order: str = "name_asc"
    end_mode: str = "loop"


@dataclass
class DetectConfigBlock:
    threshold: float = 0.7
    selectivity: float = 0.3
    minimum_brightness: float = 0.4
    cooldown_ms: float = 100.0
    roi_fraction: float = 0.5


@dataclass
class CaptureConfigBlock:
    drop_height_cm: float = 30.0
    recording_duration_s: float = 4.0
    frame_rate: int = 240
    pre_impact_margin_s: float = 0.5


@dataclass
class RecorderConfigBlock:
    type: str = "video"
    prefix: str = "milkcrown"
    codec: str = "mp4v"
    ext: str = ".mp4"
    image_ext: str = ".png"
    ready_retries: int = 10
    ready_interval_s: float = 0.2


@dataclass
class LoadedConfig:
    imports: List[str]
    runtime: RuntimeConfig
    camera: CameraConfigBlock
    detect: DetectConfigBlock
    capture: CaptureConfigBlock
    recorder: RecorderConfigBlock
    paths: Dict[str, str] = field(default_factory=dict)


__all__ = [
    "ConfigError",
    "RuntimeConfig",
    "CameraConfigBlock",
    "DetectConfigBlock",
    "CaptureConfigBlock",
    "RecorderConfigBlock",
    "LoadedConfig",
]
