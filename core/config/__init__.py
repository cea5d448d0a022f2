"""Config package facade."""

from .loader import load_config
from .schema import (
    CameraConfigBlock,
    CaptureConfigBlock,
    ConfigError,
    DetectConfigBlock,
    LoadedConfig,
    RecorderConfigBlock,
    RuntimeConfig,
)
from .validate import validate_config

__all__ = [
    "CameraConfigBlock",
    "CaptureConfigBlock",
    "ConfigError",
    "DetectConfigBlock",
    "LoadedConfig",
    "RecorderConfigBlock",
    "RuntimeConfig",
    "load_config",
    "validate_config",
]
