import logging
import threading

from core.contracts import ColorReading, DetectionResult, DetectorConfig

from .sampler import FrameSampler

L = logging.getLogger("dropcam.detection.red_light")


def classify_reading(
    reading: ColorReading, cfg: DetectorConfig
) -> tuple[bool, float, float]:
    """Return (is_triggered, confidence, red_dominance) for one reading.

    All three criteria are strict comparisons: red above threshold, red ahead
    of the stronger of green/blue by more than selectivity, and overall
    brightness above the minimum.
    """
    red = reading.red
    dominance = red - max(reading.green, reading.blue)
    is_triggered = (
        red > cfg.threshold
        and dominance > cfg.selectivity
        and reading.brightness > cfg.minimum_brightness
    )
    confidence = max(0.0, min(1.0, (red + dominance) / 2.0))
    return is_triggered, confidence, dominance


class TriggerDetector:
    """Turns frames into red-light trigger events with a cooldown window."""

    def __init__(
        self,
        config: DetectorConfig | None = None,
        sampler: FrameSampler | None = None,
    ):
        self._config = config or DetectorConfig()
        self.sampler = sampler or FrameSampler()
        self._lock = threading.Lock()
        self._enabled = False
        self.last_trigger_time = 0.0
        self._cooling = False
        validate_detector_config(self._config)

    @property
    def config(self) -> DetectorConfig:
        return self._config

    @config.setter
    def config(self, cfg: DetectorConfig):
        validate_detector_config(cfg)
        with self._lock:
            if self._enabled:
                raise RuntimeError("detector config cannot change while enabled")
            self._config = cfg

    @property
    def enabled(self) -> bool:
        return self._enabled

    def enable(self):
        with self._lock:
            self._enabled = True

    def disable(self):
        with self._lock:
            self._enabled = False

    def reset(self):
        with self._lock:
            self.last_trigger_time = 0.0
            self._cooling = False

    def detect(self, frame, now: float) -> DetectionResult | None:
        with self._lock:
            if not self._enabled:
                return None
            cfg = self._config
            if self._cooling and (now - self.last_trigger_time) < cfg.cooldown_s:
                return None

        reading = self.sampler.sample(frame)
        if reading is None:
            return None
        is_triggered, confidence, dominance = classify_reading(reading, cfg)

        if is_triggered:
            with self._lock:
                if not self._enabled:
                    return None
                self.last_trigger_time = now
                self._cooling = True
            L.debug(
                "Red light detected: R=%.3f G=%.3f B=%.3f dominance=%.3f confidence=%.3f",
                reading.red,
                reading.green,
                reading.blue,
                dominance,
                confidence,
            )
        return DetectionResult(
            is_triggered=is_triggered,
            confidence=confidence,
            timestamp=now,
            red_intensity=reading.red,
        )


def validate_detector_config(cfg: DetectorConfig):
    if not (0.0 <= cfg.threshold <= 1.0):
        raise ValueError("detect threshold must be in [0, 1]")
    if not (0.0 <= cfg.selectivity <= 1.0):
        raise ValueError("detect selectivity must be in [0, 1]")
    if not (0.0 <= cfg.minimum_brightness <= 1.0):
        raise ValueError("detect minimum_brightness must be in [0, 1]")
    if cfg.cooldown_s < 0:
        raise ValueError("detect cooldown_s must be >= 0")


__all__ = ["TriggerDetector", "classify_reading", "validate_detector_config"]
