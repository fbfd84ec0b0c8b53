"""Bluetooth LE heart rate strap as a sensor subsystem."""

import asyncio
import logging
from collections.abc import Collection
from time import time

from bleak import BleakClient, BleakScanner
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData
from bleak.exc import BleakError
from bleak.uuids import normalize_uuid_str

from .errors import AuthorizationError, SessionStartError, StopError
from .parser import parse_heart_rate
from .sensor import (
    HEART_RATE,
    LifecycleHandler,
    SampleBatchHandler,
    SensorSession,
    SensorSubsystem,
    SessionEvent,
)

logger = logging.getLogger(__name__)

HR_SERVICE_UUID = normalize_uuid_str("180D")
HR_CHAR_UUID = normalize_uuid_str("2A37")


async def scan_hr_devices(
    timeout: float = 5.0,
    name_filter: str | None = None,
) -> list[tuple[str, str]]:
    """Scan for BLE devices advertising the Heart Rate service.

    Args:
        timeout: Scan duration in seconds
        name_filter: Optional case-insensitive substring to filter device names

    Returns:
        List of (address, name) tuples in discovery order
    """
    found: dict[str, str] = {}
    wanted = name_filter.lower() if name_filter else None

    def on_detect(device: BLEDevice, adv: AdvertisementData) -> None:
        if HR_SERVICE_UUID not in (adv.service_uuids or []) or device.address in found:
            return
        name = device.name or "Unknown"
        if wanted is None or wanted in name.lower():
            logger.debug("Discovered: %s (%s)", name, device.address)
            found[device.address] = name

    scanner = BleakScanner(detection_callback=on_detect)
    await scanner.start()
    await asyncio.sleep(timeout)
    await scanner.stop()

    logger.debug("Scan complete, found %d device(s)", len(found))
    return list(found.items())


class BleSensorSession(SensorSession):
    """Heart rate notifications from one connected strap."""

    def __init__(self, address: str, on_lifecycle: LifecycleHandler):
        self.address = address
        self._on_lifecycle = on_lifecycle
        self._client: BleakClient | None = None
        self._handler: SampleBatchHandler | None = None
        self._ending = False

    def subscribe(self, handler: SampleBatchHandler) -> None:
        self._handler = handler

    def unsubscribe(self) -> None:
        self._handler = None

    def _notify_handler(self, _: object, data: bytearray) -> None:
        """Turn one notification into a batch for the subscriber."""
        try:
            measurement = parse_heart_rate(bytes(data))
        except ValueError as e:
            logger.warning("Malformed HR packet: %s", e)
            return
        handler = self._handler
        if handler is None:
            return
        logger.debug("HR: %d bpm, RR: %s", measurement.bpm, measurement.rr_intervals_ms)
        handler(measurement.to_readings(time()))

    def _on_disconnect(self, _: BleakClient) -> None:
        if self._ending:
            return
        logger.info("Sensor %s disconnected", self.address)
        self._on_lifecycle(SessionEvent.ENDED, "Sensor disconnected")

    async def start(self) -> None:
        self._client = BleakClient(self.address, disconnected_callback=self._on_disconnect)
        try:
            logger.debug("Connecting to %s...", self.address)
            await self._client.connect()
            await self._client.start_notify(HR_CHAR_UUID, self._notify_handler)
        except (BleakError, OSError, TimeoutError) as e:
            self._ending = True
            await self._release()
            raise SessionStartError(f"Failed to start: {e}") from e
        logger.info("Connected to %s", self.address)
        self._on_lifecycle(SessionEvent.RUNNING, None)

    async def _release(self) -> None:
        """Disconnect without reporting errors."""
        client, self._client = self._client, None
        if client is None:
            return
        try:
            if client.is_connected:
                await client.disconnect()
        except (BleakError, OSError) as e:
            logger.debug("Ignoring disconnect error: %s", e)

    async def end(self) -> None:
        self._ending = True
        self._handler = None
        client, self._client = self._client, None
        if client is None or not client.is_connected:
            return
        try:
            await client.stop_notify(HR_CHAR_UUID)
            await client.disconnect()
        except (BleakError, OSError, TimeoutError) as e:
            raise StopError("Failed to stop", log_message=f"Error disconnecting {self.address}: {e}") from e


class BleSensorSubsystem(SensorSubsystem):
    """Sensor subsystem backed by a BLE strap, found by address or by scanning."""

    def __init__(
        self,
        address: str | None = None,
        name_filter: str | None = None,
        scan_timeout: float = 5.0,
    ):
        self.address = address
        self.name_filter = name_filter
        self._scan_timeout = scan_timeout

    async def request_access(self, types: Collection[str]) -> bool:
        unsupported = set(types) - {HEART_RATE}
        if unsupported:
            logger.warning("Unsupported quantity types requested: %s", ", ".join(sorted(unsupported)))
            return False
        if self.address:
            return True

        suffix = f" matching '{self.name_filter}'" if self.name_filter else ""
        logger.info("Scanning for HR devices%s...", suffix)
        try:
            devices = await scan_hr_devices(timeout=self._scan_timeout, name_filter=self.name_filter)
        except (BleakError, OSError) as e:
            raise AuthorizationError("Bluetooth not available", log_message=f"BLE scan failed: {e}") from e

        if not devices:
            logger.warning("No HR devices%s found", suffix)
            return False

        self.address, name = devices[0]
        logger.info("Using %s (%s)", name, self.address)
        return True

    async def open_session(self, session_id: str, on_lifecycle: LifecycleHandler) -> SensorSession:
        if not self.address:
            raise SessionStartError("No heart rate sensor selected")
        logger.debug("Opening BLE session %s on %s", session_id, self.address)
        return BleSensorSession(self.address, on_lifecycle)
