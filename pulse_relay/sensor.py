"""Interfaces for heart rate sensor subsystems.

A subsystem grants access to the heart rate stream, opens sessions, and pushes
batches of readings to a subscribed handler. Handlers and lifecycle callbacks
may be invoked from any thread; receivers must hand results back to their own
context before touching shared state.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable, Collection, Sequence
from dataclasses import dataclass
from enum import Enum

HEART_RATE = "heart_rate"

# Multipliers converting a rate in the given unit to beats per minute
BPM_FACTORS = {
    "count/min": 1.0,
    "bpm": 1.0,
    "count/s": 60.0,
    "hz": 60.0,
}


def convert_to_bpm(value: float, unit: str) -> float:
    """Convert a rate to beats per minute.

    Raises:
        ValueError: If the unit is not a known rate unit
    """
    try:
        factor = BPM_FACTORS[unit.lower()]
    except KeyError:
        raise ValueError(f"Unsupported heart rate unit: {unit!r}") from None
    return float(value) * factor


@dataclass(frozen=True)
class QuantityReading:
    """A timestamped heart rate quantity in its source unit."""

    value: float
    unit: str
    timestamp: float  # Unix epoch seconds

    def to_bpm(self) -> float:
        return convert_to_bpm(self.value, self.unit)


class SessionEvent(str, Enum):
    RUNNING = "running"
    ENDED = "ended"
    ERROR = "error"


SampleBatchHandler = Callable[[Sequence[QuantityReading]], None]
LifecycleHandler = Callable[[SessionEvent, str | None], None]


class SensorSession(ABC):
    """An open sensor session producing heart rate batches."""

    @abstractmethod
    async def start(self) -> None:
        """Begin data collection.

        Raises:
            SessionStartError: If collection could not be started
        """

    @abstractmethod
    def subscribe(self, handler: SampleBatchHandler) -> None:
        """Route subsequent batches to handler, replacing any previous one."""

    @abstractmethod
    def unsubscribe(self) -> None:
        """Stop routing batches. Safe to call when not subscribed."""

    @abstractmethod
    async def end(self) -> None:
        """End the session and release the sensor.

        Raises:
            StopError: If the session could not be finalized
        """


class SensorSubsystem(ABC):
    """Source of heart rate sessions."""

    @abstractmethod
    async def request_access(self, types: Collection[str]) -> bool:
        """Ask for access to the given quantity types.

        Raises:
            AuthorizationError: If the sensor hardware is unavailable
        """

    @abstractmethod
    async def open_session(self, session_id: str, on_lifecycle: LifecycleHandler) -> SensorSession:
        """Open a session. Lifecycle notifications are sent to on_lifecycle.

        Raises:
            SessionStartError: If the session could not be opened
        """
