"""YAML loader and section builders for runtime configuration."""

from __future__ import annotations

import glob
import importlib
import os
from typing import Any

import yaml

from .schema import (
    CameraConfigBlock,
    CaptureConfigBlock,
    ConfigError,
    DetectConfigBlock,
    LoadedConfig,
    RecorderConfigBlock,
    RuntimeConfig,
)

_TOP_LEVEL_KEYS = {"imports", "runtime", "camera", "detect", "capture", "recorder"}


def load_config(config_dir: str = "config") -> LoadedConfig:
    main_path = _find_main_config(config_dir)
    main_data = _read_yaml(main_path)
    for key in main_data:
        if key not in _TOP_LEVEL_KEYS:
            raise ConfigError(f"Unknown section '{key}' in {main_path}")
    imports = main_data.get("imports") or []
    _import_modules(imports, main_path)

    return LoadedConfig(
        imports=imports,
        runtime=_build_dataclass(
            RuntimeConfig, main_data.get("runtime"), main_path, section="runtime"
        ),
        camera=_build_camera_config(main_data.get("camera"), main_path),
        detect=_build_dataclass(
            DetectConfigBlock, main_data.get("detect"), main_path, section="detect"
        ),
        capture=_build_dataclass(
            CaptureConfigBlock, main_data.get("capture"), main_path, section="capture"
        ),
        recorder=_build_dataclass(
            RecorderConfigBlock,
            main_data.get("recorder"),
            main_path,
            section="recorder",
        ),
        paths={"main": main_path},
    )


def _find_main_config(config_dir: str) -> str:
    patterns = [
        os.path.join(config_dir, "main_*.yaml"),
        os.path.join(config_dir, "main_*.yml"),
    ]
    candidates: list[str] = []
    for pattern in patterns:
        candidates.extend(glob.glob(pattern))
    if len(candidates) == 0:
        raise ConfigError(f"No main_*.yaml found under {config_dir}")
    if len(candidates) > 1:
        raise ConfigError(
            f"Expected exactly one main_*.yaml, found: {', '.join(sorted(candidates))}"
        )
    return candidates[0]


def _read_yaml(path: str) -> dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"YAML root must be a mapping: {path}")
    return data


def _build_dataclass(cls, data: Any, main_path: str, section: str):
    obj = cls()
    if data is None:
        return obj
    if not isinstance(data, dict):
        raise ConfigError(f"'{section}' must be a mapping in {main_path}")
    fields = cls.__dataclass_fields__
    for k, v in data.items():
        if k in fields:
            setattr(obj, k, v)
        else:
            raise ConfigError(f"Unknown field {section}.{k} in {main_path}")
    return obj


def _build_camera_config(data: Any, main_path: str) -> CameraConfigBlock:
    """camera.type selects the source; options live under camera.common and camera.<type>."""
    if data is None:
        return CameraConfigBlock()
    if not isinstance(data, dict):
        raise ConfigError(f"'camera' must be a mapping in {main_path}")

    cfg = CameraConfigBlock()
    if "type" in data:
        cfg.type = str(data.get("type") or cfg.type)
    selected_type = str(cfg.type or "").strip()
    camera_fields = CameraConfigBlock.__dataclass_fields__

    def _apply_camera_fields(block: dict[str, Any], section: str):
        for k, v in block.items():
            if k == "type":
                raise ConfigError(f"{section}.type is not allowed in {main_path}")
            if k in camera_fields:
                setattr(cfg, k, v)
            else:
                raise ConfigError(f"Unknown field {section}.{k} in {main_path}")

    for key, value in data.items():
        if key in {"type", "common"}:
            continue
        if isinstance(value, dict):
            continue
        raise ConfigError(
            f"camera.{key} must be nested under camera.common or camera.{selected_type} in {main_path}"
        )

    for section_key in ("common", selected_type):
        block = data.get(section_key)
        if block is None:
            continue
        if not isinstance(block, dict):
            raise ConfigError(f"'camera.{section_key}' must be a mapping in {main_path}")
        _apply_camera_fields(block, f"camera.{section_key}")
    return cfg


def _import_modules(imports: Any, main_path: str):
    """Import plugin modules so their @register_source/@register_recorder run."""
    if not isinstance(imports, list):
        raise ConfigError(f"'imports' must be a list in {main_path}")
    for path in imports:
        if not isinstance(path, str) or not path:
            raise ConfigError(f"Invalid import path {path!r} in {main_path}")
        importlib.import_module(path)


__all__ = ["load_config"]
