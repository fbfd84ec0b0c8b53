"""Simulated heart rate subsystem for running without a strap."""

import asyncio
import logging
import random
import time
from collections.abc import Collection

from .errors import SessionStartError
from .sensor import (
    HEART_RATE,
    LifecycleHandler,
    QuantityReading,
    SampleBatchHandler,
    SensorSession,
    SensorSubsystem,
    SessionEvent,
)

logger = logging.getLogger(__name__)

MIN_BPM = 40.0
MAX_BPM = 200.0


class SimulatedSession(SensorSession):
    """Pushes batches of random-walk readings on a timer."""

    def __init__(
        self,
        on_lifecycle: LifecycleHandler,
        baseline: float,
        interval: float,
        max_batch: int,
        rng: random.Random,
    ):
        self._on_lifecycle = on_lifecycle
        self._bpm = baseline
        self._baseline = baseline
        self._interval = interval
        self._max_batch = max_batch
        self._rng = rng
        self._handler: SampleBatchHandler | None = None
        self._task: asyncio.Task | None = None

    def subscribe(self, handler: SampleBatchHandler) -> None:
        self._handler = handler

    def unsubscribe(self) -> None:
        self._handler = None

    def _next_bpm(self) -> float:
        # Noise plus a weak pull back towards the baseline
        drift = (self._baseline - self._bpm) * 0.1
        self._bpm = min(MAX_BPM, max(MIN_BPM, self._bpm + drift + self._rng.gauss(0, 1.5)))
        return round(self._bpm, 1)

    def make_batch(self) -> list[QuantityReading]:
        """Build one batch of 1..max_batch readings spaced 0.2s apart."""
        count = self._rng.randint(1, self._max_batch)
        now = time.time()
        return [
            QuantityReading(value=self._next_bpm(), unit="count/min", timestamp=now - 0.2 * (count - 1 - i))
            for i in range(count)
        ]

    async def _emit_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            handler = self._handler
            if handler is not None:
                handler(self.make_batch())

    async def start(self) -> None:
        if self._task is not None:
            raise SessionStartError("Session already started")
        self._task = asyncio.create_task(self._emit_loop())
        logger.info("Simulated sensor started (baseline %.0f bpm)", self._baseline)
        self._on_lifecycle(SessionEvent.RUNNING, None)

    async def end(self) -> None:
        self._handler = None
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Simulated sensor stopped")


class SimulatedSensorSubsystem(SensorSubsystem):
    """Subsystem producing synthetic heart rate data."""

    def __init__(
        self,
        baseline: float = 72.0,
        interval: float = 1.0,
        grant_access: bool = True,
        max_batch: int = 3,
        seed: int | None = None,
    ):
        self.baseline = baseline
        self.interval = interval
        self.grant_access = grant_access
        self.max_batch = max(1, max_batch)
        self._rng = random.Random(seed)

    async def request_access(self, types: Collection[str]) -> bool:
        return self.grant_access and set(types) <= {HEART_RATE}

    async def open_session(self, session_id: str, on_lifecycle: LifecycleHandler) -> SensorSession:
        logger.debug("Opening simulated session %s", session_id)
        return SimulatedSession(on_lifecycle, self.baseline, self.interval, self.max_batch, self._rng)
