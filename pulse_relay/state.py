"""Observable monitoring state shared with the presentation layer."""

import logging
from collections.abc import Callable
from dataclasses import asdict, dataclass, replace
from enum import Enum

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    IDLE = "idle"
    AUTHORIZING = "authorizing"
    STARTING = "starting"
    ACTIVE = "active"
    STOPPING = "stopping"


@dataclass(frozen=True)
class MonitorState:
    """Immutable snapshot of everything a display needs."""

    heart_rate: float = 0.0
    is_active: bool = False
    is_authorized: bool = False
    status: str = "Ready"
    error: str | None = None
    success_count: int = 0
    fail_count: int = 0
    phase: Phase = Phase.IDLE
    session_id: str | None = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["phase"] = self.phase.value
        return data


StateObserver = Callable[[MonitorState], None]


class StateStore:
    """Holds the current snapshot and notifies observers on every change.

    Not thread-safe: only the session controller's task may call update().
    """

    def __init__(self, initial: MonitorState | None = None):
        self._state = initial or MonitorState()
        self._observers: list[StateObserver] = []

    @property
    def snapshot(self) -> MonitorState:
        return self._state

    def subscribe(self, observer: StateObserver) -> Callable[[], None]:
        """Register an observer. Returns a callable that removes it."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def update(self, **changes) -> MonitorState:
        """Replace the snapshot with the given fields changed and notify observers."""
        new_state = replace(self._state, **changes)
        if new_state == self._state:
            return new_state
        self._state = new_state

        for observer in list(self._observers):
            try:
                observer(new_state)
            except Exception:
                logger.exception("State observer %r failed", observer)
        return new_state

    def increment(self, field_name: str) -> MonitorState:
        """Add one to a counter field."""
        return self.update(**{field_name: getattr(self._state, field_name) + 1})
