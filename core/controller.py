"""Capture state machine: arm, trigger, scheduled start, recording, completion."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Protocol

from core.contracts import (
    CapturePhase,
    CaptureSettings,
    CaptureState,
    DetectionResult,
    DetectorConfig,
)
from core.physics import scheduling_delay
from core.timers import Scheduler, ThreadScheduler, TimerHandle
from detect import TriggerDetector, validate_detector_config

L = logging.getLogger("dropcam.controller")

PROGRESS_INTERVAL_S = 0.1

_CANCELLABLE = (CapturePhase.ARMED, CapturePhase.TRIGGERED, CapturePhase.RECORDING)

StateListener = Callable[[CaptureState, float, float], None]


class RecorderHandle(Protocol):
    def start_recording(self) -> None: ...
    def stop_recording(self) -> None: ...


class CaptureController:
    """Owns the capture state, the detector enable flag, and all capture timers.

    Frame analysis calls `process_frame` from the analysis thread while
    `arm`/`disarm` arrive from the user side; every state mutation happens
    under one re-entrant lock. The recorder is always called outside the lock.

    Each `arm()` starts a new generation. Detections, scheduled starts and
    timer ticks carry the generation they were created in and are dropped
    once it is stale, so nothing from a cancelled attempt can move the
    controller out of Idle.
    """

    def __init__(
        self,
        recorder: RecorderHandle,
        *,
        detector: TriggerDetector | None = None,
        settings: CaptureSettings | None = None,
        scheduler: Scheduler | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.recorder = recorder
        self.detector = detector or TriggerDetector()
        self._settings = (settings or CaptureSettings()).validate()
        self._scheduler = scheduler or ThreadScheduler()
        self._clock = clock
        self._lock = threading.RLock()
        self._state = CaptureState.idle()
        self._progress = 0.0
        self._confidence = 0.0
        self._generation = 0
        self._pending_start: TimerHandle | None = None
        self._progress_timer: TimerHandle | None = None
        self._listeners: list[StateListener] = []

    @property
    def state(self) -> CaptureState:
        return self._state

    @property
    def progress(self) -> float:
        return self._progress

    @property
    def confidence(self) -> float:
        return self._confidence

    @property
    def settings(self) -> CaptureSettings:
        return self._settings

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register an observer of (state, progress, confidence); returns unsubscribe."""
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def physics_info(self) -> dict[str, Any]:
        settings = self._settings
        info = settings.physics_summary()
        info["scheduling_delay_s"] = round(
            scheduling_delay(settings.drop_time_s, settings.pre_impact_margin_s), 4
        )
        return info

    # -- user-side events -------------------------------------------------

    def arm(
        self,
        settings: CaptureSettings | None = None,
        detector_config: DetectorConfig | None = None,
    ) -> bool:
        with self._lock:
            if not self._state.is_quiescent:
                L.warning("Cannot arm from state=%s; ignoring", self._state)
                return False
            # Nothing is applied unless both the settings and the config are usable.
            try:
                if settings is not None:
                    settings.validate()
                if detector_config is not None:
                    validate_detector_config(detector_config)
            except ValueError as e:
                self.on_error(f"invalid capture settings: {e}")
                return False
            self._cancel_timers_locked()
            self.detector.disable()
            if settings is not None:
                self._settings = settings
            if detector_config is not None:
                self.detector.config = detector_config
            self.detector.reset()
            self._generation += 1
            self._progress = 0.0
            self._confidence = 0.0
            self.detector.enable()
            self._state = CaptureState.armed()
            self._notify_locked()
            info = self.physics_info()
        L.info(
            "Armed: drop_height=%.2fm drop_time=%.3fs delay=%.3fs recording=%.1fs",
            info["drop_height_m"],
            info["drop_time_s"],
            info["scheduling_delay_s"],
            info["recording_s"],
        )
        return True

    def disarm(self) -> bool:
        with self._lock:
            phase = self._state.phase
            if phase not in _CANCELLABLE:
                L.debug("Disarm ignored in state=%s", self._state)
                return False
            self._enter_idle_locked()
        if phase is CapturePhase.RECORDING:
            self._stop_recorder("disarm")
        L.info("Disarmed (was %s)", phase.value)
        return True

    def reset(self):
        """Return to Idle from any state, cancelling everything in flight."""
        with self._lock:
            phase = self._state.phase
            self._enter_idle_locked()
        if phase is CapturePhase.RECORDING:
            self._stop_recorder("reset")

    # -- frame path ---------------------------------------------------------

    def process_frame(self, frame, timestamp: float | None = None) -> DetectionResult | None:
        now = self._clock() if timestamp is None else float(timestamp)
        with self._lock:
            if self._state.phase is not CapturePhase.ARMED:
                return None
            generation = self._generation

        result = self.detector.detect(frame, now)
        if result is None:
            return None

        start_now = False
        with self._lock:
            if generation != self._generation:
                if result.is_triggered:
                    L.info("Discarding trigger from a cancelled attempt")
                return result
            self._confidence = result.confidence
            if not result.is_triggered:
                self._notify_locked()
                return result
            if self._state.phase is not CapturePhase.ARMED:
                L.info("Discarding trigger in state=%s", self._state)
                return result
            start_now = self._handle_trigger_locked(result, generation)
        if start_now:
            self._start_recorder(generation)
        return result

    def _handle_trigger_locked(self, result: DetectionResult, generation: int) -> bool:
        settings = self._settings
        try:
            delay = scheduling_delay(settings.drop_time_s, settings.pre_impact_margin_s)
        except ValueError as e:
            self.on_error(f"cannot schedule recording: {e}")
            return False
        # One-shot: no second trigger during the scheduling delay.
        self.detector.disable()
        self._state = CaptureState.triggered(result.timestamp)
        L.info(
            "TRIGGER at t=%.3f confidence=%.2f red=%.2f drop_time=%.3fs delay=%.3fs",
            result.timestamp,
            result.confidence,
            result.red_intensity,
            settings.drop_time_s,
            delay,
        )
        if delay > 0:
            self._pending_start = self._scheduler.call_later(
                delay, self._fire_scheduled_start, generation
            )
        self._notify_locked()
        return delay <= 0

    def _fire_scheduled_start(self, generation: int):
        with self._lock:
            handle = self._pending_start
            if (
                handle is None
                or handle.cancelled
                or generation != self._generation
                or self._state.phase is not CapturePhase.TRIGGERED
            ):
                L.debug("Scheduled start dropped (cancelled or stale)")
                return
            self._pending_start = None
        self._start_recorder(generation)

    def _start_recorder(self, generation: int):
        try:
            self.recorder.start_recording()
        except Exception as e:
            L.error("Recorder start failed: %s", e)
            with self._lock:
                if generation != self._generation:
                    return
            self.on_error(f"start_recording failed: {e}")

    def _stop_recorder(self, why: str):
        try:
            self.recorder.stop_recording()
        except Exception:
            L.exception("Recorder stop failed (%s)", why)

    # -- recorder callbacks -------------------------------------------------

    def on_recording_started(self):
        with self._lock:
            phase = self._state.phase
            if phase is CapturePhase.TRIGGERED:
                start = self._clock()
                self._state = self._state.recording(start)
                self._progress = 0.0
                self._progress_timer = self._scheduler.call_every(
                    PROGRESS_INTERVAL_S, self._make_progress_tick(self._generation)
                )
                self._notify_locked()
                L.info("Recording started")
                return
        if phase is CapturePhase.RECORDING:
            L.debug("Duplicate recording-started callback ignored")
            return
        L.warning("Recording started in state=%s; stopping orphaned recording", phase.value)
        self._stop_recorder("orphaned")

    def on_recording_completed(self, artifact: str | None = None) -> bool:
        with self._lock:
            if self._state.phase is not CapturePhase.RECORDING:
                L.info("Recording completion ignored in state=%s", self._state)
                return False
            self._cancel_progress_locked()
            self._progress = 1.0
            self._state = self._state.completed(artifact)
            self._notify_locked()
        L.info("Recording completed: %s", artifact or "-")
        return True

    def on_error(self, reason: str):
        with self._lock:
            self.detector.disable()
            self._cancel_timers_locked()
            self._generation += 1
            self._state = CaptureState.error(str(reason))
            self._notify_locked()
        L.error("Capture error: %s", reason)

    # -- internals ------------------------------------------------------------

    def _make_progress_tick(self, generation: int) -> Callable[[], None]:
        def _tick():
            with self._lock:
                if (
                    generation != self._generation
                    or self._state.phase is not CapturePhase.RECORDING
                ):
                    self._cancel_progress_locked()
                    return
                total = self._settings.total_recording_duration
                elapsed = self._clock() - (self._state.start_time or 0.0)
                progress = 1.0 if total <= 0 else min(1.0, elapsed / total)
                self._progress = progress
                if progress >= 1.0:
                    self._cancel_progress_locked()
                self._notify_locked()

        return _tick

    def _enter_idle_locked(self):
        self.detector.disable()
        self._cancel_timers_locked()
        self._generation += 1
        self._progress = 0.0
        self._confidence = 0.0
        self._state = CaptureState.idle()
        self._notify_locked()

    def _cancel_timers_locked(self):
        if self._pending_start is not None:
            self._pending_start.cancel()
            self._pending_start = None
        self._cancel_progress_locked()

    def _cancel_progress_locked(self):
        if self._progress_timer is not None:
            self._progress_timer.cancel()
            self._progress_timer = None

    def _notify_locked(self):
        state, progress, confidence = self._state, self._progress, self._confidence
        for listener in list(self._listeners):
            try:
                listener(state, progress, confidence)
            except Exception:
                L.exception("State listener failed: %r", listener)


__all__ = ["CaptureController", "RecorderHandle", "StateListener", "PROGRESS_INTERVAL_S"]
