from .base import (
    FrameSourceConfig,
    build_source_config,
    BaseFrameSource,
    register_source,
    create_source,
    create_source_from_loaded_config,
)

__all__ = [
    "FrameSourceConfig",
    "build_source_config",
    "BaseFrameSource",
    "register_source",
    "create_source",
    "create_source_from_loaded_config",
]
