"""Decoding of the BLE Heart Rate Measurement characteristic (0x2A37)."""

from dataclasses import dataclass, field

from .sensor import QuantityReading

FLAG_UINT16 = 0b1
FLAG_CONTACT_DETECTED = 0b10
FLAG_CONTACT_SUPPORTED = 0b100
FLAG_ENERGY = 0b1000
FLAG_RR = 0b10000

RR_RESOLUTION = 1024.0  # RR intervals are sent in 1/1024 s


@dataclass
class HeartRateMeasurement:
    """One decoded notification."""

    bpm: int
    sensor_contact: bool | None = None  # None when the strap cannot report contact
    energy_expended: int | None = None  # kilojoules, when present
    rr_intervals_ms: list[float] = field(default_factory=list)

    def to_readings(self, timestamp: float) -> list[QuantityReading]:
        """Return the batch pushed to the sample pipeline for this notification."""
        return [QuantityReading(value=float(self.bpm), unit="count/min", timestamp=timestamp)]


def _read_u16(data: bytes, offset: int) -> int:
    return int.from_bytes(data[offset : offset + 2], "little")


def parse_heart_rate(data: bytes) -> HeartRateMeasurement:
    """Parse a Heart Rate Measurement notification.

    Raises:
        ValueError: If data is empty or shorter than its flags require
    """
    if not data:
        raise ValueError("Empty HR data received")

    flags = data[0]
    wide = bool(flags & FLAG_UINT16)
    has_energy = bool(flags & FLAG_ENERGY)

    needed = 1 + (2 if wide else 1) + (2 if has_energy else 0)
    if len(data) < needed:
        raise ValueError(f"HR data too short: {len(data)} bytes, need {needed}")

    if wide:
        bpm, offset = _read_u16(data, 1), 3
    else:
        bpm, offset = data[1], 2

    measurement = HeartRateMeasurement(bpm=bpm)

    if flags & FLAG_CONTACT_SUPPORTED:
        measurement.sensor_contact = bool(flags & FLAG_CONTACT_DETECTED)

    if has_energy:
        measurement.energy_expended = _read_u16(data, offset)
        offset += 2

    if flags & FLAG_RR:
        # A trailing odd byte is ignored
        while offset + 2 <= len(data):
            measurement.rr_intervals_ms.append(_read_u16(data, offset) * 1000.0 / RR_RESOLUTION)
            offset += 2

    return measurement
