"""Shared test helpers for pulse_relay tests."""

from __future__ import annotations

import asyncio

from pulse_relay.errors import SessionStartError, StopError
from pulse_relay.record import SampleRecord
from pulse_relay.sensor import QuantityReading, SensorSession, SensorSubsystem, SessionEvent


def make_hr_packet(
    bpm: int,
    *,
    is_16bit: bool = False,
    sensor_contact: bool | None = None,
    energy: int | None = None,
    rr_intervals: list[int] | None = None,
) -> bytes:
    """Build a BLE HR measurement packet.

    Args:
        bpm: Heart rate in BPM
        is_16bit: If True, use 16-bit BPM format
        sensor_contact: None=not supported, True=detected, False=not detected
        energy: Energy expended (if supported)
        rr_intervals: RR intervals in 1/1024 second units
    """
    flags = 0
    if is_16bit:
        flags |= 0b1
    if sensor_contact is not None:
        flags |= 0b100
        if sensor_contact:
            flags |= 0b10
    if energy is not None:
        flags |= 0b1000
    if rr_intervals:
        flags |= 0b10000

    data = bytearray([flags])
    data.extend(bpm.to_bytes(2, "little") if is_16bit else bytes([bpm]))
    if energy is not None:
        data.extend(energy.to_bytes(2, "little"))
    for rr in rr_intervals or []:
        data.extend(rr.to_bytes(2, "little"))
    return bytes(data)


def make_readings(*values: float, unit: str = "count/min", start: float = 1_700_000_000.0) -> list[QuantityReading]:
    """Readings one second apart, in the given order."""
    return [QuantityReading(value=v, unit=unit, timestamp=start + i) for i, v in enumerate(values)]


class FakeTransport:
    """Transport returning a fixed outcome, optionally held until gate is set."""

    def __init__(self, outcome: bool = True):
        self.outcome = outcome
        self.records: list[SampleRecord] = []
        self.gate: asyncio.Event | None = None

    async def deliver(self, record: SampleRecord) -> bool:
        self.records.append(record)
        if self.gate is not None:
            await self.gate.wait()
        return self.outcome

    async def close(self) -> None:
        pass


class FakeSession(SensorSession):
    """Sensor session driven by the test."""

    def __init__(self, session_id: str, on_lifecycle, start_error: str | None = None, end_error: str | None = None):
        self.session_id = session_id
        self.on_lifecycle = on_lifecycle
        self.start_error = start_error
        self.end_error = end_error
        self.handler = None
        self.started = False
        self.ended = False

    async def start(self) -> None:
        if self.start_error:
            raise SessionStartError(self.start_error)
        self.started = True

    def subscribe(self, handler) -> None:
        self.handler = handler

    def unsubscribe(self) -> None:
        self.handler = None

    async def end(self) -> None:
        self.ended = True
        if self.end_error:
            raise StopError(self.end_error)

    def push(self, *values: float, unit: str = "count/min") -> bool:
        """Push one batch. Returns False if nobody is subscribed."""
        if self.handler is None:
            return False
        self.handler(make_readings(*values, unit=unit))
        return True

    def emit(self, event: SessionEvent, detail: str | None = None) -> None:
        self.on_lifecycle(event, detail)


class FakeSensorSubsystem(SensorSubsystem):
    """Sensor subsystem recording every session it opens."""

    def __init__(self, grant: bool = True, start_error: str | None = None, end_error: str | None = None):
        self.grant = grant
        self.start_error = start_error
        self.end_error = end_error
        self.access_requests: list[set[str]] = []
        self.sessions: list[FakeSession] = []

    @property
    def last_session(self) -> FakeSession:
        return self.sessions[-1]

    async def request_access(self, types) -> bool:
        self.access_requests.append(set(types))
        return self.grant

    async def open_session(self, session_id: str, on_lifecycle) -> FakeSession:
        session = FakeSession(session_id, on_lifecycle, self.start_error, self.end_error)
        self.sessions.append(session)
        return session
