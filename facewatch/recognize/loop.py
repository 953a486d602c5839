"""
Fixed-rate detection loop.

IDLE --start()--> RUNNING --stop()--> STOPPED (--start()--> RUNNING again)

Every `interval_s` the ticker schedules one tick: read a frame, run the
detector, drop invalid detections, classify the rest and hand the batch to
`on_batch`. A tick that comes due while the previous one is still running
is skipped, not queued. Frame reads and detection run in worker threads.
stop() cancels the ticker and the FPS counter; a read or detector call
already in flight finishes but its result is thrown away.
"""

from __future__ import annotations
import asyncio
import contextlib
import logging
import time
from enum import Enum
from typing import Callable, List, Optional

import numpy as np

from .detector import FaceDetector
from .errors import DetectorError
from .matcher import FaceDBMatcher
from .types import RawDetection, Sighting

logger = logging.getLogger(__name__)

BatchCallback = Callable[[List[Sighting]], None]
ClearCallback = Callable[[], None]


class LoopState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


def frame_ready(frame: Optional[np.ndarray]) -> bool:
    if frame is None:
        return False
    shape = getattr(frame, "shape", ())
    return len(shape) >= 2 and shape[0] > 0 and shape[1] > 0


class DetectionLoop:
    def __init__(
        self,
        detector: FaceDetector,
        matcher: FaceDBMatcher,
        source,
        on_batch: BatchCallback,
        on_clear: Optional[ClearCallback] = None,
        interval_s: float = 0.1,
        clock: Callable[[], float] = time.time,
    ):
        self.detector = detector
        self.matcher = matcher
        self.source = source
        self.on_batch = on_batch
        self.on_clear = on_clear
        self.interval_s = float(interval_s)
        self.clock = clock

        self._state = LoopState.IDLE
        self._generation = 0
        self._busy = False
        self._ticker: Optional[asyncio.Task] = None
        self._fps_task: Optional[asyncio.Task] = None
        self._inflight: Optional[asyncio.Task] = None

        self.fps = 0
        self._frames = 0
        self.ticks = 0
        self.skipped_ticks = 0
        self.discarded_ticks = 0

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._busy

    async def start(self) -> None:
        if self._state is LoopState.RUNNING:
            return
        if not self.detector.is_loaded:
            await self.detector.load()

        self._generation += 1
        self._state = LoopState.RUNNING
        self._ticker = asyncio.create_task(self._run_ticker())
        self._fps_task = asyncio.create_task(self._run_fps())
        logger.info("[DetectionLoop] Started (interval=%.3fs)", self.interval_s)

    async def stop(self) -> None:
        was_running = self._state is LoopState.RUNNING
        self._generation += 1
        self._state = LoopState.STOPPED

        for task in (self._ticker, self._fps_task):
            if task is not None and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._ticker = None
        self._fps_task = None
        self.fps = 0
        self._frames = 0
        if was_running:
            logger.info("[DetectionLoop] Stopped")

    async def _run_ticker(self) -> None:
        while True:
            await asyncio.sleep(self.interval_s)
            if self._busy:
                self.skipped_ticks += 1
                continue
            self._inflight = asyncio.create_task(self.tick())

    async def _run_fps(self) -> None:
        while True:
            await asyncio.sleep(1.0)
            self.fps = self._frames
            self._frames = 0

    async def tick(self) -> bool:
        """
        Run one tick now. Returns False without doing anything if the loop is
        not running or a tick is already in flight.
        """
        if self._state is not LoopState.RUNNING:
            return False
        if self._busy:
            self.skipped_ticks += 1
            return False

        self._busy = True
        generation = self._generation
        # roster reloads during this tick apply from the next one
        snapshot = self.matcher.snapshot()
        try:
            self.ticks += 1
            try:
                frame = await asyncio.to_thread(self.source.read)
            except Exception as e:
                logger.warning("[DetectionLoop] Frame source failed: %s; skipping tick", e)
                return True
            if generation != self._generation or not frame_ready(frame):
                return True

            detections = await self._detect(frame)

            if generation != self._generation:
                self.discarded_ticks += 1
                logger.debug("[DetectionLoop] Discarding result of a tick started before stop()")
                return True

            valid = [d for d in detections if d.is_valid()]
            if not valid:
                self._emit_clear()
                return True

            now = self.clock()
            results = self.matcher.classify_all([d.descriptor for d in valid], snapshot)
            batch = [Sighting(match=m, box=d.box, timestamp=now) for m, d in zip(results, valid)]
            self._frames += 1
            self._emit_batch(batch)
            return True
        finally:
            self._busy = False

    async def _detect(self, frame: np.ndarray) -> List[RawDetection]:
        try:
            return list(await self.detector.detect(frame))
        except Exception as e:
            err = DetectorError(f"detector failed: {e}")
            logger.warning("[DetectionLoop] %s; treating tick as no faces", err)
            return []

    def _emit_batch(self, batch: List[Sighting]) -> None:
        try:
            self.on_batch(batch)
        except Exception:
            logger.exception("[DetectionLoop] on_batch callback failed")

    def _emit_clear(self) -> None:
        if self.on_clear is None:
            return
        try:
            self.on_clear()
        except Exception:
            logger.exception("[DetectionLoop] on_clear callback failed")
