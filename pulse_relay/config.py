"""Configuration file loading and defaults."""

import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

from .transport import DEFAULT_BASE_URL, DEFAULT_PATH, DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "pulse-relay"


@dataclass
class EndpointConfig:
    base_url: str = DEFAULT_BASE_URL
    path: str = DEFAULT_PATH
    timeout: float = DEFAULT_TIMEOUT


@dataclass
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 8765
    broadcast_timeout: float = 0.5
    log_level: str = "INFO"


@dataclass
class BLEConfig:
    scan_timeout: float = 5.0


@dataclass
class DeviceConfig:
    address: str = ""
    name_filter: str = ""


@dataclass
class SessionConfig:
    auto_start: bool = False
    stop_on_runtime_error: bool = True
    simulate: bool = False


@dataclass
class IdentityConfig:
    path: str = str(CONFIG_DIR / "identity.json")


@dataclass
class Config:
    endpoint: EndpointConfig = field(default_factory=EndpointConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    ble: BLEConfig = field(default_factory=BLEConfig)
    device: DeviceConfig = field(default_factory=DeviceConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    identity: IdentityConfig = field(default_factory=IdentityConfig)


def load_config() -> Config:
    """Load config from file, with defaults for missing values."""
    paths = [
        Path("./config.toml"),
        CONFIG_DIR / "config.toml",
    ]

    for path in paths:
        if path.exists():
            try:
                with open(path, "rb") as f:
                    data = tomllib.load(f)
                return _parse_config(data)
            except (tomllib.TOMLDecodeError, TypeError) as e:
                logger.warning("Failed to parse config '%s': %s. Using defaults.", path, e)
                return Config()

    return Config()


def _parse_config(data: dict) -> Config:
    """Parse TOML dict into Config dataclass.

    Missing sections and keys keep their defaults. Unknown keys raise TypeError.
    """
    return Config(
        endpoint=EndpointConfig(**data.get("endpoint", {})),
        server=ServerConfig(**data.get("server", {})),
        ble=BLEConfig(**data.get("ble", {})),
        device=DeviceConfig(**data.get("device", {})),
        session=SessionConfig(**data.get("session", {})),
        identity=IdentityConfig(**data.get("identity", {})),
    )
