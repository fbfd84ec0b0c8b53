"""Tests for pulse_relay.simulator module."""

import asyncio
from unittest.mock import MagicMock

import pytest

from pulse_relay.errors import SessionStartError
from pulse_relay.sensor import HEART_RATE, SessionEvent
from pulse_relay.simulator import MAX_BPM, MIN_BPM, SimulatedSensorSubsystem


class TestSimulatedSubsystem:
    """Tests for SimulatedSensorSubsystem."""

    @pytest.mark.asyncio
    async def test_access_granted(self):
        assert await SimulatedSensorSubsystem().request_access({HEART_RATE}) is True

    @pytest.mark.asyncio
    async def test_access_denied_when_configured(self):
        assert await SimulatedSensorSubsystem(grant_access=False).request_access({HEART_RATE}) is False

    @pytest.mark.asyncio
    async def test_access_denied_for_unknown_types(self):
        assert await SimulatedSensorSubsystem().request_access({HEART_RATE, "oxygen"}) is False


class TestSimulatedSession:
    """Tests for SimulatedSession."""

    @pytest.mark.asyncio
    async def test_batches_within_bounds(self):
        """Batches hold 1..max_batch plausible readings in time order."""
        session = await SimulatedSensorSubsystem(seed=1, max_batch=4).open_session("S", MagicMock())
        for _ in range(50):
            batch = session.make_batch()
            assert 1 <= len(batch) <= 4
            assert all(MIN_BPM <= r.to_bpm() <= MAX_BPM for r in batch)
            timestamps = [r.timestamp for r in batch]
            assert timestamps == sorted(timestamps)

    @pytest.mark.asyncio
    async def test_start_emits_and_end_stops(self):
        """Running sessions push batches and report RUNNING; end() stops them."""
        on_lifecycle = MagicMock()
        session = await SimulatedSensorSubsystem(interval=0.01, seed=2).open_session("S", on_lifecycle)
        received = []
        session.subscribe(received.append)

        await session.start()
        on_lifecycle.assert_called_once_with(SessionEvent.RUNNING, None)
        for _ in range(100):
            if received:
                break
            await asyncio.sleep(0.01)
        await session.end()

        assert received
        count = len(received)
        await asyncio.sleep(0.05)
        assert len(received) == count

    @pytest.mark.asyncio
    async def test_double_start_rejected(self):
        session = await SimulatedSensorSubsystem(interval=10).open_session("S", MagicMock())
        await session.start()
        try:
            with pytest.raises(SessionStartError):
                await session.start()
        finally:
            await session.end()
