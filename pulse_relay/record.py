"""Wire payload for a single heart rate sample."""

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

SESSION_TYPE = "monitoring"

WIRE_KEYS = ("heart_rate", "timestamp", "device_id", "session_type", "app_state", "session_id")


class AppState(str, Enum):
    """Whether the presentation layer is in front of the user."""

    FOREGROUND = "foreground"
    BACKGROUND = "background"


def utc_timestamp(now: datetime | None = None) -> str:
    """Format a datetime as ISO-8601 UTC with second precision, e.g. 2024-05-01T12:00:00Z.

    Naive datetimes are taken to be UTC already.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass(frozen=True)
class SampleRecord:
    """One heart rate sample as posted to the collection endpoint."""

    heart_rate: float
    timestamp: str
    device_id: str
    session_id: str
    app_state: AppState = AppState.FOREGROUND
    session_type: str = SESSION_TYPE

    def to_dict(self) -> dict[str, float | str]:
        return {
            "heart_rate": self.heart_rate,
            "timestamp": self.timestamp,
            "device_id": self.device_id,
            "session_type": self.session_type,
            "app_state": AppState(self.app_state).value,
            "session_id": self.session_id,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"), allow_nan=False)

    @classmethod
    def from_dict(cls, data: dict) -> "SampleRecord":
        """Build a record from its wire representation.

        Raises:
            ValueError: If a wire key is missing or app_state is unknown
        """
        missing = [key for key in WIRE_KEYS if key not in data]
        if missing:
            raise ValueError(f"Missing sample fields: {', '.join(missing)}")
        return cls(
            heart_rate=float(data["heart_rate"]),
            timestamp=str(data["timestamp"]),
            device_id=str(data["device_id"]),
            session_id=str(data["session_id"]),
            app_state=AppState(data["app_state"]),
            session_type=str(data["session_type"]),
        )
