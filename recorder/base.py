# -- coding: utf-8 --

import logging
import os
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Protocol, Type

import numpy as np

from core.registry import register_named, resolve_registered
from core.timers import Scheduler, ThreadScheduler, TimerHandle
from utils.file_ready import wait_until_ready
from utils.path_time import UtcDailyDirCache, build_dated_capture_path

L = logging.getLogger("dropcam.recorder")

RecorderFactory = Dict[str, Type["BaseRecorder"]]
_registry: RecorderFactory = {}


class RecorderListener(Protocol):
    def on_recording_started(self) -> None: ...
    def on_recording_completed(self, artifact: str | None = None) -> object: ...
    def on_error(self, reason: str) -> None: ...


@dataclass
class RecorderConfig:
    save_dir: str = "data"
    prefix: str = "milkcrown"
    duration_s: float = 4.0
    fps: float = 240.0
    codec: str = "mp4v"
    ext: str = ".mp4"
    image_ext: str = ".png"
    ready_retries: int = 10
    ready_interval_s: float = 0.2


def build_recorder_config(cfg_block, *, save_dir: str, duration_s: float, fps: float):
    return RecorderConfig(
        save_dir=save_dir,
        prefix=str(cfg_block.prefix),
        duration_s=float(duration_s),
        fps=float(fps),
        codec=str(cfg_block.codec),
        ext=_normalize_ext(cfg_block.ext, ".mp4"),
        image_ext=_normalize_ext(cfg_block.image_ext, ".png"),
        ready_retries=int(cfg_block.ready_retries),
        ready_interval_s=float(cfg_block.ready_interval_s),
    )


def _normalize_ext(ext: object, default: str) -> str:
    raw = str(ext or "")
    if not raw:
        return default
    return raw if raw.startswith(".") else f".{raw}"


class BaseRecorder(ABC):
    """Records fed frames for `duration_s` after start_recording().

    Frames arrive through feed() on the frame-delivery thread. The artifact is
    opened lazily on the first frame (its size is unknown before). When the
    duration elapses (by frame timestamp, or on a timer when frames stop
    arriving), or stop_recording() is called, the artifact is closed and
    a finalizer thread polls for it before reporting completion.
    """

    artifact_ext = ""

    def __init__(
        self,
        cfg: RecorderConfig,
        clock: Callable[[], float] = time.monotonic,
        scheduler: Scheduler | None = None,
    ):
        self.cfg = cfg
        self.listener: RecorderListener | None = None
        self._clock = clock
        self._scheduler = scheduler or ThreadScheduler()
        self._duration_timer: TimerHandle | None = None
        self._take = 0
        self._lock = threading.Lock()
        self._dir_cache = UtcDailyDirCache()
        self._active = False
        self._opened = False
        self._artifact: str | None = None
        self._started_at = 0.0
        self._frames = 0
        self._finalizer: threading.Thread | None = None

    def set_listener(self, listener: RecorderListener):
        self.listener = listener

    @property
    def is_recording(self) -> bool:
        return self._active

    def start_recording(self):
        with self._lock:
            if self._active:
                raise RuntimeError("recorder busy: already recording")
            os.makedirs(self.cfg.save_dir, exist_ok=True)
            self._artifact = build_dated_capture_path(
                self.cfg.save_dir,
                self.cfg.prefix,
                self.artifact_ext,
                ts_utc=datetime.now(timezone.utc),
                cache=self._dir_cache,
            )
            self._started_at = self._clock()
            self._frames = 0
            self._opened = False
            self._active = True
            self._take += 1
            # Stops the take even when no frame arrives after the start.
            self._duration_timer = self._scheduler.call_later(
                self.cfg.duration_s, self._stop_take, self._take
            )
        L.info("Recording to %s for %.1fs", self._artifact, self.cfg.duration_s)
        if self.listener is not None:
            self.listener.on_recording_started()

    def feed(self, frame: np.ndarray, timestamp: float | None = None):
        now = self._clock() if timestamp is None else float(timestamp)
        failed: str | None = None
        with self._lock:
            if not self._active:
                return
            if frame is not None:
                try:
                    if not self._opened:
                        self._open(self._artifact, frame)
                        self._opened = True
                    self._write(frame)
                    self._frames += 1
                except Exception as e:
                    L.exception("Recorder write failed: %s", self._artifact)
                    self._abort_locked()
                    failed = str(e) or type(e).__name__
            elapsed = now - self._started_at
        if failed is not None:
            self._report_error(f"recording I/O failure: {failed}")
            return
        if elapsed >= self.cfg.duration_s:
            self.stop_recording()

    def stop_recording(self):
        self._stop(None)

    def _stop(self, take: int | None):
        with self._lock:
            if not self._active:
                return
            if take is not None and take != self._take:
                return
            self._active = False
            self._cancel_duration_timer_locked()
            artifact = self._artifact
            frames = self._frames
            try:
                if self._opened:
                    self._close()
            finally:
                self._opened = False
        L.info("Recording stopped: %s frames=%d", artifact, frames)
        self._finalizer = threading.Thread(
            target=self._finalize, args=(artifact,), name="dropcam-finalize", daemon=True
        )
        self._finalizer.start()

    def _stop_take(self, take: int):
        L.debug("Recording duration elapsed on timer (take %d)", take)
        self._stop(take)

    def _cancel_duration_timer_locked(self):
        if self._duration_timer is not None:
            self._duration_timer.cancel()
            self._duration_timer = None

    def join_finalizer(self, timeout: float | None = None):
        t = self._finalizer
        if t is not None:
            t.join(timeout=timeout)

    def _finalize(self, artifact: str | None):
        wait_until_ready(
            lambda: bool(artifact) and self._artifact_ready(artifact),
            retries=self.cfg.ready_retries,
            interval_s=self.cfg.ready_interval_s,
            label=str(artifact),
        )
        # The capture itself succeeded even if the poll gave up.
        if self.listener is not None:
            self.listener.on_recording_completed(artifact)

    def _abort_locked(self):
        self._active = False
        self._cancel_duration_timer_locked()
        if self._opened:
            try:
                self._close()
            except Exception:
                L.exception("Recorder close after failure failed")
        self._opened = False

    def _report_error(self, reason: str):
        if self.listener is not None:
            self.listener.on_error(reason)

    @abstractmethod
    def _open(self, artifact: str, first_frame: np.ndarray) -> None: ...

    @abstractmethod
    def _write(self, frame: np.ndarray) -> None: ...

    @abstractmethod
    def _close(self) -> None: ...

    @abstractmethod
    def _artifact_ready(self, artifact: str) -> bool: ...


def register_recorder(name: str):
    return register_named(_registry, name)


def create_recorder(name: str, cfg: RecorderConfig, **kwargs) -> BaseRecorder:
    cls = resolve_registered(
        _registry,
        name,
        package=__package__ or "recorder",
        unknown_label="recorder type",
    )
    return cls(cfg, **kwargs)


__all__ = [
    "RecorderConfig",
    "RecorderListener",
    "BaseRecorder",
    "build_recorder_config",
    "register_recorder",
    "create_recorder",
]
