"""Runtime config value validation."""

from __future__ import annotations

from typing import Any

from .schema import ConfigError, LoadedConfig

_MODES = {"single", "continuous"}
_PIXEL_FORMATS = {"bgr8", "rgb8"}


def validate_config(cfg: LoadedConfig) -> None:
    # runtime
    _require_float("runtime.max_runtime_s", cfg.runtime.max_runtime_s, min_v=0.0)
    _require_float("runtime.rearm_delay_s", cfg.runtime.rearm_delay_s, min_v=0.0)
    _require_choice("runtime.mode", cfg.runtime.mode, _MODES)

    # camera
    _require_float("camera.fps", cfg.camera.fps, min_v=0.0)
    _require_int("camera.width", cfg.camera.width, min_v=0)
    _require_int("camera.height", cfg.camera.height, min_v=0)
    _require_choice("camera.pixel_format", cfg.camera.pixel_format, _PIXEL_FORMATS)

    # detect
    _require_float("detect.threshold", cfg.detect.threshold, min_v=0.0, max_v=1.0)
    _require_float("detect.selectivity", cfg.detect.selectivity, min_v=0.0, max_v=1.0)
    _require_float(
        "detect.minimum_brightness", cfg.detect.minimum_brightness, min_v=0.0, max_v=1.0
    )
    _require_float("detect.cooldown_ms", cfg.detect.cooldown_ms, min_v=0.0)
    roi = _require_float("detect.roi_fraction", cfg.detect.roi_fraction, max_v=1.0)
    if roi <= 0:
        raise ConfigError("detect.roi_fraction must be > 0")

    # capture (height and duration are clamped, not rejected)
    _require_float("capture.drop_height_cm", cfg.capture.drop_height_cm)
    _require_float("capture.recording_duration_s", cfg.capture.recording_duration_s)
    _require_int("capture.frame_rate", cfg.capture.frame_rate, min_v=1)
    _require_float(
        "capture.pre_impact_margin_s", cfg.capture.pre_impact_margin_s, min_v=0.0
    )

    # recorder
    if not str(cfg.recorder.type or "").strip():
        raise ConfigError("recorder.type is required")
    if len(str(cfg.recorder.codec or "")) != 4:
        raise ConfigError("recorder.codec must be a 4-character fourcc")
    _require_int("recorder.ready_retries", cfg.recorder.ready_retries, min_v=0)
    _require_float("recorder.ready_interval_s", cfg.recorder.ready_interval_s, min_v=0.0)


def _require_int(
    name: str, value: Any, *, min_v: int | None = None, max_v: int | None = None
) -> int:
    try:
        iv = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} must be an integer") from e
    if min_v is not None and iv < min_v:
        op = ">=" if min_v != 1 else ">"
        threshold = min_v if min_v != 1 else 0
        raise ConfigError(f"{name} must be {op} {threshold}")
    if max_v is not None and iv > max_v:
        raise ConfigError(f"{name} must be <= {max_v}")
    return iv


def _require_float(
    name: str, value: Any, *, min_v: float | None = None, max_v: float | None = None
) -> float:
    try:
        fv = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} must be a number") from e
    if min_v is not None and fv < min_v:
        raise ConfigError(f"{name} must be >= {min_v:g}")
    if max_v is not None and fv > max_v:
        raise ConfigError(f"{name} must be <= {max_v:g}")
    return fv


def _require_choice(name: str, value: Any, choices: set[str]) -> str:
    sv = str(value or "").strip().lower()
    if sv not in choices:
        raise ConfigError(f"{name} must be one of {sorted(choices)}, got {value!r}")
    return sv


__all__ = ["validate_config"]
