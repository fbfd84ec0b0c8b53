"""Heart rate monitoring client relaying live samples to an HTTP endpoint."""

from .ble import BleSensorSubsystem, scan_hr_devices
from .config import Config, load_config
from .controller import SessionController
from .errors import (
    AuthorizationError,
    DeliveryError,
    PulseRelayError,
    SessionRuntimeError,
    SessionStartError,
    StopError,
)
from .identity import IdentityStore, JsonFileStore, MemoryStore
from .log import setup_logging
from .pipeline import SamplePipeline
from .record import AppState, SampleRecord
from .simulator import SimulatedSensorSubsystem
from .state import MonitorState, Phase, StateStore
from .transport import HeartRateTransport

__all__ = [
    "AppState",
    "AuthorizationError",
    "BleSensorSubsystem",
    "Config",
    "DeliveryError",
    "HeartRateTransport",
    "IdentityStore",
    "JsonFileStore",
    "MemoryStore",
    "MonitorState",
    "Phase",
    "PulseRelayError",
    "SampleRecord",
    "SamplePipeline",
    "SessionController",
    "SessionRuntimeError",
    "SessionStartError",
    "SimulatedSensorSubsystem",
    "StateStore",
    "StopError",
    "load_config",
    "scan_hr_devices",
    "setup_logging",
]
