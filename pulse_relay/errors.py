"""Error types raised by the session and delivery layers."""


class PulseRelayError(Exception):
    """Base error carrying a message suitable for display."""

    def __init__(self, user_message: str, *, log_message: str | None = None) -> None:
        super().__init__(log_message or user_message)
        self.user_message = user_message


class AuthorizationError(PulseRelayError):
    """Sensor access was denied or is unavailable on this host."""


class SessionStartError(PulseRelayError):
    """Opening the sensor session or starting collection failed."""


class SessionRuntimeError(PulseRelayError):
    """The sensor subsystem reported a fatal error during a session."""


class DeliveryError(PulseRelayError):
    """A single sample could not be delivered to the endpoint."""


class StopError(PulseRelayError):
    """Finalizing the sensor session failed."""
