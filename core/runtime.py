"""Core runtime: CaptureRuntime orchestration and runtime assembly."""

from __future__ import annotations

import logging
import threading
import time
from contextlib import ExitStack
from dataclasses import dataclass, field
from typing import Callable

from core.contracts import CapturePhase, CaptureSettings, CaptureState, DetectorConfig
from core.controller import CaptureController
from core.timers import Scheduler
from core.worker import AnalysisWorker, CaptureWorker, FrameSlot
from detect import FrameSampler, TriggerDetector

L = logging.getLogger("dropcam.runtime")

MODE_SINGLE = "single"
MODE_CONTINUOUS = "continuous"


@dataclass
class RuntimeBuildConfig:
    mode: str = MODE_SINGLE
    auto_arm: bool = True
    rearm_delay_s: float = 1.0
    pixel_format: str = "bgr8"
    roi_fraction: float = 0.5
    settings: CaptureSettings = field(default_factory=CaptureSettings)
    detector: DetectorConfig = field(default_factory=DetectorConfig)


def build_runtime_config_from_loaded_config(cfg) -> RuntimeBuildConfig:
    return RuntimeBuildConfig(
        mode=str(cfg.runtime.mode).strip().lower(),
        auto_arm=bool(cfg.runtime.auto_arm),
        rearm_delay_s=float(cfg.runtime.rearm_delay_s),
        pixel_format=str(cfg.camera.pixel_format).strip().lower(),
        roi_fraction=float(cfg.detect.roi_fraction),
        settings=build_capture_settings(cfg),
        detector=DetectorConfig(
            threshold=float(cfg.detect.threshold),
            selectivity=float(cfg.detect.selectivity),
            minimum_brightness=float(cfg.detect.minimum_brightness),
            cooldown_s=float(cfg.detect.cooldown_ms) / 1000.0,
        ),
    )


def build_capture_settings(cfg) -> CaptureSettings:
    return CaptureSettings.from_user(
        cfg.capture.drop_height_cm,
        cfg.capture.recording_duration_s,
        frame_rate=int(cfg.capture.frame_rate),
        pre_impact_margin_s=float(cfg.capture.pre_impact_margin_s),
    )


class CaptureRuntime:
    """Owns the source session, both workers, and the arm/re-arm policy."""

    def __init__(
        self,
        source,
        recorder,
        controller: CaptureController,
        capture_worker: CaptureWorker,
        analysis_worker: AnalysisWorker,
        config: RuntimeBuildConfig,
    ):
        self.source = source
        self.recorder = recorder
        self.controller = controller
        self.capture_worker = capture_worker
        self.analysis_worker = analysis_worker
        self.config = config
        self.completed_captures: list[str | None] = []

        self._stop_evt = threading.Event()
        self._session_stack: ExitStack | None = None
        self._unsubscribe: Callable[[], None] | None = None
        self._last_phase: CapturePhase | None = None
        self._started = False
        self._stopped = False

    def start(self):
        if self._started:
            raise RuntimeError(
                "CaptureRuntime is single-use; start() may only be called once"
            )
        self._started = True
        try:
            stack = ExitStack()
            self._session_stack = stack
            stack.enter_context(self.source.session())
            self._unsubscribe = self.controller.subscribe(self._on_state)
            self.capture_worker.start()
            self.analysis_worker.start()
            if self.config.auto_arm:
                self.controller.arm(self.config.settings, self.config.detector)
        except Exception:
            L.exception("Runtime start failed; rolling back partial startup")
            try:
                self.stop()
            except Exception:
                L.exception("Runtime rollback stop failed")
            raise

    def request_stop(self):
        self._stop_evt.set()

    def run(self, runtime_limit_s: float | None = None):
        if not self._started:
            raise RuntimeError("CaptureRuntime.run() requires start() first")
        start_ts = time.perf_counter()
        rearm_at: float | None = None
        try:
            while not self._stop_evt.wait(0.1):
                now_ts = time.perf_counter()
                self._raise_if_worker_stopped()
                state = self.controller.state
                if self._source_drained(state):
                    L.info("Frame source exhausted while %s; shutting down", state)
                    self.request_stop()
                    continue
                if state.is_terminal:
                    if self.config.mode != MODE_CONTINUOUS:
                        L.info("Capture finished: %s", state)
                        self.request_stop()
                        continue
                    if rearm_at is None:
                        rearm_at = now_ts + self.config.rearm_delay_s
                    elif now_ts >= rearm_at:
                        rearm_at = None
                        self.controller.arm(self.config.settings, self.config.detector)
                if (
                    runtime_limit_s is not None
                    and (now_ts - start_ts) >= runtime_limit_s
                ):
                    L.info(
                        "Runtime limit reached (%ss); shutting down service",
                        runtime_limit_s,
                    )
                    self.request_stop()
        finally:
            self.stop()

    def _source_drained(self, state: CaptureState) -> bool:
        # Triggered and Recording still finish on their own timers.
        if not self.capture_worker.finished or self.recorder.is_recording:
            return False
        # Every delivered frame is analysed or dropped before the source counts as drained.
        handled = self.analysis_worker.analyzed + self.analysis_worker.slot.dropped
        if handled < self.capture_worker.frames:
            return False
        if state.phase in (CapturePhase.IDLE, CapturePhase.ARMED):
            return True
        return state.is_terminal and self.config.mode == MODE_CONTINUOUS

    def _raise_if_worker_stopped(self):
        for worker in (self.capture_worker, self.analysis_worker):
            if not worker.has_started or worker.is_alive:
                continue
            if worker is self.capture_worker and worker.finished:
                continue
            err = worker.last_error
            if err is not None:
                raise RuntimeError(
                    f"{worker.name} stopped unexpectedly ({type(err).__name__})"
                ) from err
            raise RuntimeError(f"{worker.name} stopped unexpectedly")

    def _on_state(self, state: CaptureState, progress: float, confidence: float):
        if state.phase is CapturePhase.COMPLETED and self._last_phase is not state.phase:
            self.completed_captures.append(state.artifact)
        if state.phase is not self._last_phase:
            L.info("State -> %s (progress=%.2f confidence=%.2f)", state, progress, confidence)
            self._last_phase = state.phase

    def stop(self):
        if self._stopped:
            return
        self._stopped = True
        stop_t0 = time.perf_counter()

        def _run_stage(name: str, fn: Callable[[], None]):
            t0 = time.perf_counter()
            try:
                fn()
            except Exception:
                L.exception("Shutdown stage failed: %s", name)
            finally:
                L.debug(
                    "Shutdown stage=%s elapsed=%.1fms",
                    name,
                    (time.perf_counter() - t0) * 1000,
                )

        def _stop_workers():
            if self.capture_worker.has_started:
                self.capture_worker.stop()
            if self.analysis_worker.has_started:
                self.analysis_worker.stop()
            self.analysis_worker.slot.clear()

        def _finish_recorder():
            self.recorder.stop_recording()
            self.recorder.join_finalizer(timeout=5.0)

        def _unsubscribe():
            if self._unsubscribe is not None:
                self._unsubscribe()
                self._unsubscribe = None

        _run_stage("controller", self.controller.disarm)
        _run_stage("workers", _stop_workers)
        _run_stage("recorder", _finish_recorder)
        _run_stage("listeners", _unsubscribe)
        _run_stage("source_session", self._exit_session)
        L.debug(
            "Shutdown stage=total elapsed=%.1fms",
            (time.perf_counter() - stop_t0) * 1000,
        )

    def _exit_session(self):
        stack = self._session_stack
        if stack is None:
            return
        self._session_stack = None
        stack.close()


def build_runtime(
    source,
    recorder,
    *,
    config: RuntimeBuildConfig,
    scheduler: Scheduler | None = None,
    slot_capacity: int = 1,
) -> CaptureRuntime:
    detector = TriggerDetector(
        config.detector,
        sampler=FrameSampler(config.pixel_format, roi_fraction=config.roi_fraction),
    )
    controller = CaptureController(
        recorder,
        detector=detector,
        settings=config.settings,
        scheduler=scheduler,
    )
    recorder.set_listener(controller)
    slot = FrameSlot(maxsize=slot_capacity)
    capture_worker = CaptureWorker(source, slot, frame_sink=recorder.feed)
    analysis_worker = AnalysisWorker(slot, controller.process_frame)
    return CaptureRuntime(
        source,
        recorder,
        controller,
        capture_worker,
        analysis_worker,
        config,
    )


def build_runtime_from_loaded_config(cfg, *, scheduler: Scheduler | None = None):
    from camera import create_source_from_loaded_config
    from recorder import build_recorder_config, create_recorder

    runtime_cfg = build_runtime_config_from_loaded_config(cfg)
    source = create_source_from_loaded_config(cfg)
    recorder = create_recorder(
        cfg.recorder.type,
        build_recorder_config(
            cfg.recorder,
            save_dir=cfg.runtime.save_dir,
            duration_s=runtime_cfg.settings.total_recording_duration,
            fps=runtime_cfg.settings.frame_rate,
        ),
    )
    return build_runtime(source, recorder, config=runtime_cfg, scheduler=scheduler)


__all__ = [
    "CaptureRuntime",
    "RuntimeBuildConfig",
    "build_capture_settings",
    "build_runtime",
    "build_runtime_config_from_loaded_config",
    "build_runtime_from_loaded_config",
    "MODE_SINGLE",
    "MODE_CONTINUOUS",
]
