import logging
import queue
import threading
import time
from dataclasses import dataclass
from typing import Callable

import numpy as np

L = logging.getLogger("dropcam.workers")


class BaseWorker:
    def __init__(self, name: str = ""):
        self.name = name or self.__class__.__name__
        self._stop_evt = threading.Event()
        self._thread: threading.Thread | None = None
        self._last_error: Exception | None = None

    def start(self):
        if self._thread is not None:
            raise RuntimeError(
                f"{self.name} is single-use; start() may only be called once"
            )
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 2.0):
        self._stop_evt.set()
        if self._thread:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                L.warning("%s worker thread did not exit cleanly", self.name)

    def _run(self):
        try:
            self.run()
        except Exception as e:
            self._last_error = e
            L.exception("%s worker error", self.name)

    @property
    def is_alive(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    @property
    def has_started(self) -> bool:
        return self._thread is not None

    @property
    def last_error(self) -> Exception | None:
        return self._last_error

    def run(self):
        raise NotImplementedError


@dataclass
class FramePacket:
    seq: int
    timestamp: float  # monotonic seconds at delivery
    image: np.ndarray


class FrameSlot:
    """One-slot hand-off to the analysis thread; a new frame replaces a waiting one."""

    def __init__(self, maxsize: int = 1):
        self.queue: queue.Queue = queue.Queue(maxsize=max(1, int(maxsize)))
        self.dropped = 0

    def offer(self, packet: FramePacket) -> bool:
        while True:
            try:
                self.queue.put_nowait(packet)
                return True
            except queue.Full:
                try:
                    self.queue.get_nowait()
                except queue.Empty:
                    continue
                self.dropped += 1

    def take(self, timeout: float = 0.1) -> FramePacket | None:
        try:
            return self.queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def clear(self) -> int:
        drained = 0
        while True:
            try:
                self.queue.get_nowait()
            except queue.Empty:
                return drained
            drained += 1


class CaptureWorker(BaseWorker):
    """Pulls frames from the source, feeds the recorder, offers frames for analysis."""

    def __init__(
        self,
        source,
        slot: FrameSlot,
        *,
        frame_sink: Callable[[np.ndarray, float], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__("CaptureWorker")
        self.source = source
        self.slot = slot
        self.frame_sink = frame_sink
        self._clock = clock
        self.frames = 0

    @property
    def finished(self) -> bool:
        return bool(getattr(self.source, "exhausted", False))

    def run(self):
        fps = float(getattr(self.source, "fps", 0.0) or 0.0)
        period = (1.0 / fps) if fps > 0 else 0.0
        next_ts = self._clock()
        while not self._stop_evt.is_set():
            if self.finished:
                L.info("Frame source exhausted after %d frames", self.frames)
                return
            try:
                image = self.source.read()
            except Exception as e:
                raise RuntimeError(
                    _worker_stage_context(
                        worker=self.name, stage="read", seq=self.frames + 1
                    )
                ) from e
            now = self._clock()
            if image is not None:
                self.frames += 1
                if self.frame_sink is not None:
                    try:
                        self.frame_sink(image, now)
                    except Exception as e:
                        raise RuntimeError(
                            _worker_stage_context(
                                worker=self.name, stage="record", seq=self.frames
                            )
                        ) from e
                self.slot.offer(FramePacket(seq=self.frames, timestamp=now, image=image))
            if period:
                next_ts += period
                delay = next_ts - self._clock()
                if delay > 0:
                    self._stop_evt.wait(delay)
                else:
                    next_ts = self._clock()


class AnalysisWorker(BaseWorker):
    """Runs trigger detection on the newest frame; stale frames are dropped upstream."""

    def __init__(self, slot: FrameSlot, process_frame: Callable[[np.ndarray, float], object]):
        super().__init__("AnalysisWorker")
        self.slot = slot
        self.process_frame = process_frame
        self.analyzed = 0

    def run(self):
        while not self._stop_evt.is_set():
            packet = self.slot.take(timeout=0.1)
            if packet is None:
                continue
            try:
                self.process_frame(packet.image, packet.timestamp)
            except Exception as e:
                raise RuntimeError(
                    _worker_stage_context(
                        worker=self.name, stage="analyze", seq=packet.seq
                    )
                ) from e
            self.analyzed += 1


def _worker_stage_context(*, worker: str, stage: str, seq: int) -> str:
    return f"{worker} stage={stage} seq={seq}"


__all__ = [
    "AnalysisWorker",
    "BaseWorker",
    "CaptureWorker",
    "FramePacket",
    "FrameSlot",
]
