"""Host environment queries."""

from typing import Protocol

from .record import AppState


class HostEnvironment(Protocol):
    def app_state(self) -> AppState: ...


class StaticHost:
    """Host whose foreground state is set explicitly."""

    def __init__(self, state: AppState = AppState.FOREGROUND):
        self.state = state

    def app_state(self) -> AppState:
        return self.state
