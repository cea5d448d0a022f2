"""Data contracts shared by sampler, detector, controller, and recorders."""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from typing import Any

from core.physics import drop_time

DROP_HEIGHT_MIN_CM = 15.0
DROP_HEIGHT_MAX_CM = 50.0
RECORDING_DURATION_MIN_S = 1.0
RECORDING_DURATION_MAX_S = 4.0


@dataclass(slots=True, frozen=True)
class ColorReading:
    red: float = 0.0
    green: float = 0.0
    blue: float = 0.0
    brightness: float = 0.0


@dataclass(slots=True, frozen=True)
class DetectionResult:
    is_triggered: bool = False
    confidence: float = 0.0
    timestamp: float = 0.0  # monotonic seconds
    red_intensity: float = 0.0


@dataclass(slots=True, frozen=True)
class DetectorConfig:
    threshold: float = 0.7
    selectivity: float = 0.3
    minimum_brightness: float = 0.4
    cooldown_s: float = 0.1


@dataclass(slots=True, frozen=True)
class CaptureSettings:
    drop_height_m: float = 0.30
    pre_buffer_s: float = 2.0
    post_buffer_s: float = 2.0
    frame_rate: int = 240
    pre_impact_margin_s: float = 0.5

    @classmethod
    def from_user(
        cls,
        drop_height_cm: float,
        recording_duration_s: float,
        *,
        frame_rate: int = 240,
        pre_impact_margin_s: float = 0.5,
    ) -> "CaptureSettings":
        """Build settings from user-facing units, clamping to the supported ranges.

        Height is clamped to 15..50 cm and duration to 1..4 s; the duration is
        split evenly into pre- and post-impact buffers.
        """
        height_cm = min(max(float(drop_height_cm), DROP_HEIGHT_MIN_CM), DROP_HEIGHT_MAX_CM)
        duration = min(
            max(float(recording_duration_s), RECORDING_DURATION_MIN_S),
            RECORDING_DURATION_MAX_S,
        )
        return cls(
            drop_height_m=height_cm / 100.0,
            pre_buffer_s=duration / 2.0,
            post_buffer_s=duration / 2.0,
            frame_rate=int(frame_rate),
            pre_impact_margin_s=float(pre_impact_margin_s),
        )

    def validate(self) -> "CaptureSettings":
        """Raise ValueError unless these settings can drive a capture."""
        height_cm = self.drop_height_m * 100.0
        if not (DROP_HEIGHT_MIN_CM <= height_cm <= DROP_HEIGHT_MAX_CM):
            raise ValueError(
                f"drop_height_m must be in [{DROP_HEIGHT_MIN_CM / 100.0}, "
                f"{DROP_HEIGHT_MAX_CM / 100.0}], got {self.drop_height_m!r}"
            )
        if not (self.pre_impact_margin_s >= 0):
            raise ValueError("pre_impact_margin_s must be >= 0")
        if not (self.pre_buffer_s > 0 and self.post_buffer_s > 0):
            raise ValueError("pre_buffer_s and post_buffer_s must be > 0")
        if not (self.frame_rate > 0):
            raise ValueError("frame_rate must be > 0")
        return self

    @property
    def drop_time_s(self) -> float:
        return drop_time(self.drop_height_m)

    @property
    def total_recording_duration(self) -> float:
        return self.pre_buffer_s + self.post_buffer_s

    def physics_summary(self) -> dict[str, Any]:
        t = self.drop_time_s
        total = self.total_recording_duration
        return {
            "drop_height_m": round(self.drop_height_m, 3),
            "drop_time_s": round(t, 4),
            "drop_time_ms": int(t * 1000),
            "recording_s": round(total, 2),
            "frame_rate": self.frame_rate,
            "frame_count": int(self.frame_rate * total),
        }


class CapturePhase(enum.Enum):
    IDLE = "idle"
    ARMED = "armed"
    TRIGGERED = "triggered"
    RECORDING = "recording"
    COMPLETED = "completed"
    ERROR = "error"


_QUIESCENT = (CapturePhase.IDLE, CapturePhase.COMPLETED, CapturePhase.ERROR)
_TERMINAL = (CapturePhase.COMPLETED, CapturePhase.ERROR)


@dataclass(slots=True, frozen=True)
class CaptureState:
    """One variant of Idle | Armed | Triggered | Recording | Completed | Error."""

    phase: CapturePhase = CapturePhase.IDLE
    trigger_time: float | None = None
    start_time: float | None = None
    artifact: str | None = None
    reason: str | None = None

    @classmethod
    def idle(cls) -> "CaptureState":
        return cls(CapturePhase.IDLE)

    @classmethod
    def armed(cls) -> "CaptureState":
        return cls(CapturePhase.ARMED)

    @classmethod
    def triggered(cls, trigger_time: float) -> "CaptureState":
        return cls(CapturePhase.TRIGGERED, trigger_time=trigger_time)

    def recording(self, start_time: float) -> "CaptureState":
        return replace(self, phase=CapturePhase.RECORDING, start_time=start_time)

    def completed(self, artifact: str | None) -> "CaptureState":
        return replace(self, phase=CapturePhase.COMPLETED, artifact=artifact)

    @classmethod
    def error(cls, reason: str) -> "CaptureState":
        return cls(CapturePhase.ERROR, reason=reason)

    @property
    def is_quiescent(self) -> bool:
        return self.phase in _QUIESCENT

    @property
    def is_terminal(self) -> bool:
        return self.phase in _TERMINAL

    def __str__(self) -> str:
        if self.phase is CapturePhase.COMPLETED and self.artifact:
            return f"completed({self.artifact})"
        if self.phase is CapturePhase.ERROR:
            return f"error({self.reason})"
        return self.phase.value


__all__ = [
    "ColorReading",
    "DetectionResult",
    "DetectorConfig",
    "CaptureSettings",
    "CapturePhase",
    "CaptureState",
    "DROP_HEIGHT_MIN_CM",
    "DROP_HEIGHT_MAX_CM",
    "RECORDING_DURATION_MIN_S",
    "RECORDING_DURATION_MAX_S",
]
