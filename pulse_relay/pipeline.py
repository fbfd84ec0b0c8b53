"""Turns pushed sensor batches into delivered sample records."""

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from .host import HostEnvironment
from .identity import IdentityStore
from .record import SampleRecord, utc_timestamp
from .sensor import QuantityReading
from .state import StateStore
from .transport import HeartRateTransport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SensorBatch:
    readings: tuple[QuantityReading, ...]


@dataclass(frozen=True)
class DeliveryOutcome:
    session_id: str
    delivered: bool


Post = Callable[[object], None]


class SamplePipeline:
    """Relays the latest reading of each batch to the endpoint and counts outcomes.

    on_sensor_event() is the only method safe to call from other threads. It posts
    a message to the owning controller, which calls process() and record_outcome()
    on its own task.
    """

    def __init__(
        self,
        transport: HeartRateTransport,
        state: StateStore,
        identity: IdentityStore,
        host: HostEnvironment,
        post: Post,
    ):
        self._transport = transport
        self._state = state
        self._identity = identity
        self._host = host
        self._post = post
        self._tasks: set[asyncio.Task] = set()
        self.session_id: str | None = None
        # Outcomes for this session are counted, even after it stops
        self._counted_session_id: str | None = None

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def begin(self, session_id: str) -> None:
        self.session_id = session_id
        self._counted_session_id = session_id

    def end(self) -> None:
        self.session_id = None

    def on_sensor_event(self, readings: Sequence[QuantityReading]) -> None:
        """Entry point for the sensor push source. Never blocks."""
        self._post(SensorBatch(tuple(readings)))

    def process(self, batch: SensorBatch) -> SampleRecord | None:
        """Build and send a record from the last reading in the batch."""
        session_id = self.session_id
        if session_id is None:
            logger.debug("Dropping batch of %d reading(s), no active session", len(batch.readings))
            return None
        if not batch.readings:
            return None

        reading = batch.readings[-1]
        try:
            bpm = reading.to_bpm()
        except ValueError as e:
            logger.warning("Dropping reading: %s", e)
            return None

        record = SampleRecord(
            heart_rate=bpm,
            timestamp=utc_timestamp(),
            device_id=self._identity.get_or_create_device_id(),
            session_id=session_id,
            app_state=self._host.app_state(),
        )
        self._state.update(heart_rate=bpm)

        task = asyncio.create_task(self._deliver(record))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return record

    async def _deliver(self, record: SampleRecord) -> None:
        try:
            delivered = await self._transport.deliver(record)
        except Exception:
            logger.exception("Unexpected delivery error")
            delivered = False
        self._post(DeliveryOutcome(record.session_id, delivered))

    def record_outcome(self, outcome: DeliveryOutcome) -> None:
        """Count a finished delivery against its session."""
        if outcome.session_id != self._counted_session_id:
            logger.debug("Discarding outcome for superseded session %s", outcome.session_id)
            return
        self._state.increment("success_count" if outcome.delivered else "fail_count")

    async def drain(self) -> int:
        """Wait for all in-flight deliveries. Returns how many were awaited."""
        tasks = list(self._tasks)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        return len(tasks)
