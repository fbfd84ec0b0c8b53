"""Tests for pulse_relay.sensor module."""

import pytest

from pulse_relay.sensor import QuantityReading, SensorSession, SensorSubsystem, convert_to_bpm


class TestConvertToBpm:
    """Tests for unit conversion."""

    @pytest.mark.parametrize(
        ("value", "unit", "expected"),
        [
            (72, "count/min", 72.0),
            (72, "BPM", 72.0),
            (1.2, "count/s", 72.0),
            (1.5, "Hz", 90.0),
        ],
    )
    def test_known_units(self, value, unit, expected):
        assert convert_to_bpm(value, unit) == pytest.approx(expected)

    def test_unknown_unit(self):
        with pytest.raises(ValueError, match="Unsupported"):
            convert_to_bpm(72, "mmHg")


class TestQuantityReading:
    """Tests for QuantityReading."""

    def test_to_bpm(self):
        assert QuantityReading(value=1.0, unit="count/s", timestamp=0.0).to_bpm() == 60.0

    def test_frozen(self):
        reading = QuantityReading(value=1.0, unit="count/s", timestamp=0.0)
        with pytest.raises(AttributeError):
            reading.value = 2.0


class TestAbstractInterfaces:
    """The subsystem interfaces cannot be instantiated directly."""

    def test_subsystem_abstract(self):
        with pytest.raises(TypeError):
            SensorSubsystem()

    def test_session_abstract(self):
        with pytest.raises(TypeError):
            SensorSession()
