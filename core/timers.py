"""Cancellable one-shot and periodic timers owned by the capture controller."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Protocol

L = logging.getLogger("dropcam.timers")


class TimerHandle(Protocol):
    def cancel(self) -> None: ...

    @property
    def cancelled(self) -> bool: ...


class Scheduler(Protocol):
    def call_later(
        self, delay_s: float, fn: Callable[..., Any], *args: Any
    ) -> TimerHandle: ...

    def call_every(self, interval_s: float, fn: Callable[[], Any]) -> TimerHandle: ...


class _ThreadTimer:
    def __init__(self, name: str):
        self.name = name
        self._cancel_evt = threading.Event()
        self._thread: threading.Thread | None = None

    def cancel(self):
        self._cancel_evt.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_evt.is_set()

    def _start(self, target: Callable[[], None]):
        self._thread = threading.Thread(target=target, name=self.name, daemon=True)
        self._thread.start()

    def join(self, timeout: float | None = None):
        if self._thread is not None:
            self._thread.join(timeout=timeout)


class ThreadScheduler:
    """Runs each timer on its own daemon thread; cancel() stops it before it fires."""

    def call_later(self, delay_s: float, fn: Callable[..., Any], *args: Any):
        handle = _ThreadTimer("dropcam-call-later")

        def _run():
            if handle._cancel_evt.wait(max(0.0, float(delay_s))):
                return
            try:
                fn(*args)
            except Exception:
                L.exception("Scheduled callback failed: %r", fn)

        handle._start(_run)
        return handle

    def call_every(self, interval_s: float, fn: Callable[[], Any]):
        if interval_s <= 0:
            raise ValueError("interval_s must be > 0")
        handle = _ThreadTimer("dropcam-call-every")

        def _run():
            while not handle._cancel_evt.wait(interval_s):
                try:
                    fn()
                except Exception:
                    L.exception("Periodic callback failed: %r", fn)
                    handle.cancel()

        handle._start(_run)
        return handle


__all__ = ["Scheduler", "ThreadScheduler", "TimerHandle"]
