from .base import (
    RecorderConfig,
    RecorderListener,
    BaseRecorder,
    build_recorder_config,
    register_recorder,
    create_recorder,
)

__all__ = [
    "RecorderConfig",
    "RecorderListener",
    "BaseRecorder",
    "build_recorder_config",
    "register_recorder",
    "create_recorder",
]
