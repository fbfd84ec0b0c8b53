"""Shared test fixtures for pulse_relay tests."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from pulse_relay.controller import SessionController
from pulse_relay.host import StaticHost
from pulse_relay.identity import IdentityStore, MemoryStore
from pulse_relay.record import AppState, SampleRecord
from tests.helpers import FakeSensorSubsystem, FakeTransport, make_hr_packet


@pytest.fixture
def hr_packet_simple() -> bytes:
    """Simple 8-bit BPM packet (72 bpm)."""
    return make_hr_packet(72)


@pytest.fixture
def hr_packet_full() -> bytes:
    """Packet with all fields populated."""
    return make_hr_packet(
        150,
        is_16bit=True,
        sensor_contact=True,
        energy=1500,
        rr_intervals=[800, 850],
    )


@pytest.fixture
def sample_record() -> SampleRecord:
    return SampleRecord(
        heart_rate=71.0,
        timestamp="2024-05-01T12:00:00Z",
        device_id="DEVICE-1",
        session_id="SESSION-1",
        app_state=AppState.FOREGROUND,
    )


@pytest.fixture
def identity() -> IdentityStore:
    return IdentityStore(MemoryStore({"device_id": "DEVICE-1"}))


@pytest.fixture
def host() -> StaticHost:
    return StaticHost(AppState.FOREGROUND)


@pytest.fixture
def sensors() -> FakeSensorSubsystem:
    return FakeSensorSubsystem()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def make_controller(sensors, transport, identity, host):
    """Factory for controllers wired to the fake collaborators."""

    def factory(**kwargs) -> SessionController:
        return SessionController(
            sensors=kwargs.pop("sensors", sensors),
            transport=kwargs.pop("transport", transport),
            identity=kwargs.pop("identity", identity),
            host=kwargs.pop("host", host),
            **kwargs,
        )

    return factory


# Mock fixtures for BLE
@pytest.fixture
def mock_bleak_client():
    """Create a mock BleakClient."""
    client = AsyncMock()
    client.is_connected = True
    client.connect = AsyncMock(return_value=True)
    client.disconnect = AsyncMock()
    client.start_notify = AsyncMock()
    client.stop_notify = AsyncMock()
    return client


@pytest.fixture
def mock_ble_device():
    """Create a mock BLEDevice."""
    device = MagicMock()
    device.address = "AA:BB:CC:DD:EE:FF"
    device.name = "HR Monitor"
    return device


@pytest.fixture
def mock_advertisement_data():
    """Create mock AdvertisementData with HR service UUID."""
    from bleak.uuids import normalize_uuid_str

    adv = MagicMock()
    adv.service_uuids = [normalize_uuid_str("180D")]
    return adv


# Mock fixtures for WebSocket
@pytest.fixture
def mock_websocket():
    """Create a mock WebSocket connection."""
    ws = AsyncMock()
    ws.send = AsyncMock()
    ws.close = AsyncMock()
    return ws


@pytest.fixture
def sample_config_dict() -> dict:
    """Sample config dict as would be parsed from TOML."""
    return {
        "endpoint": {
            "base_url": "https://collector.example.com",
            "path": "/v1/heartrate",
            "timeout": 5.0,
        },
        "server": {
            "host": "0.0.0.0",
            "port": 9000,
            "broadcast_timeout": 1.0,
            "log_level": "DEBUG",
        },
        "ble": {"scan_timeout": 10.0},
        "device": {
            "address": "11:22:33:44:55:66",
            "name_filter": "Polar",
        },
        "session": {
            "auto_start": True,
            "stop_on_runtime_error": False,
            "simulate": True,
        },
        "identity": {"path": "/tmp/pulse-relay/identity.json"},
    }
