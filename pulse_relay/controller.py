"""Session state machine.

All commands, sensor batches, delivery outcomes and lifecycle notifications
are posted to one inbox and handled in order by a single task, so state,
session and counters only ever change on that task.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from .errors import AuthorizationError, SessionRuntimeError, SessionStartError, StopError
from .host import HostEnvironment
from .identity import IdentityStore
from .pipeline import DeliveryOutcome, SamplePipeline, SensorBatch
from .sensor import HEART_RATE, SensorSession, SensorSubsystem, SessionEvent
from .state import MonitorState, Phase, StateStore
from .transport import HeartRateTransport

logger = logging.getLogger(__name__)

REQUIRED_TYPES = frozenset({HEART_RATE})

STATUS_READY = "Ready to start"
STATUS_STARTING = "Starting..."
STATUS_MONITORING = "Monitoring..."
STATUS_ACTIVE = "Active"
STATUS_STOPPED = "Stopped"
STATUS_ENDED = "Ended"


class Command(str, Enum):
    AUTHORIZE = "authorize"
    START = "start"
    STOP = "stop"


@dataclass
class CommandMessage:
    command: Command
    future: asyncio.Future


@dataclass(frozen=True)
class LifecycleNotice:
    session_id: str
    event: SessionEvent
    detail: str | None = None


@dataclass
class MonitoringSession:
    """One monitoring run. The id is never reused."""

    session_id: str
    handle: SensorSession
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


_SHUTDOWN = object()


class SessionController:
    """Owns the monitoring session and the observable state."""

    def __init__(
        self,
        sensors: SensorSubsystem,
        transport: HeartRateTransport,
        identity: IdentityStore,
        host: HostEnvironment,
        state: StateStore | None = None,
        stop_on_runtime_error: bool = True,
    ):
        self.state = state or StateStore()
        self.stop_on_runtime_error = stop_on_runtime_error
        self._sensors = sensors
        self._inbox: asyncio.Queue = asyncio.Queue()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._runner: asyncio.Task | None = None
        self._session: MonitoringSession | None = None
        self.pipeline = SamplePipeline(transport, self.state, identity, host, self.post)

    @property
    def phase(self) -> Phase:
        return self.state.snapshot.phase

    @property
    def session(self) -> MonitoringSession | None:
        return self._session

    @property
    def snapshot(self) -> MonitorState:
        return self.state.snapshot

    # Runner lifecycle

    async def open(self) -> None:
        """Start the inbox task on the running loop."""
        if self._runner is not None:
            return
        self._loop = asyncio.get_running_loop()
        self._runner = asyncio.create_task(self._run())

    async def close(self) -> None:
        """Stop any active session, let deliveries finish, and end the inbox task."""
        if self._runner is None:
            return
        if self.phase is Phase.ACTIVE:
            await self.stop()
        await self.flush()
        self.post(_SHUTDOWN)
        await self._runner
        self._runner = None

    async def __aenter__(self) -> "SessionController":
        await self.open()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def post(self, message: object) -> None:
        """Queue a message for the controller task. Safe to call from any thread."""
        loop = self._loop
        if loop is None:
            raise RuntimeError("SessionController is not open")
        try:
            current = asyncio.get_running_loop()
        except RuntimeError:
            current = None
        if current is loop:
            self._inbox.put_nowait(message)
        else:
            loop.call_soon_threadsafe(self._inbox.put_nowait, message)

    async def flush(self) -> None:
        """Wait until the inbox is empty and no delivery is in flight."""
        while True:
            await self._inbox.join()
            if not await self.pipeline.drain():
                break

    # Commands

    async def request_authorization(self) -> bool:
        return await self._submit(Command.AUTHORIZE)

    async def start(self) -> bool:
        """Start a session. Returns False if nothing was started."""
        return await self._submit(Command.START)

    async def stop(self) -> bool:
        """Stop the active session. Returns False if none was active."""
        return await self._submit(Command.STOP)

    async def _submit(self, command: Command) -> bool:
        if self._loop is None:
            raise RuntimeError("SessionController is not open")
        future = self._loop.create_future()
        self.post(CommandMessage(command, future))
        return await future

    # Controller task

    async def _run(self) -> None:
        while True:
            message = await self._inbox.get()
            try:
                if message is _SHUTDOWN:
                    return
                await self._dispatch(message)
            finally:
                self._inbox.task_done()

    async def _dispatch(self, message: object) -> None:
        if isinstance(message, SensorBatch):
            self.pipeline.process(message)
        elif isinstance(message, DeliveryOutcome):
            self.pipeline.record_outcome(message)
        elif isinstance(message, LifecycleNotice):
            await self._handle_lifecycle(message)
        elif isinstance(message, CommandMessage):
            await self._run_command(message)
        else:
            logger.warning("Ignoring unknown message %r", message)

    async def _run_command(self, message: CommandMessage) -> None:
        handlers = {
            Command.AUTHORIZE: self._authorize,
            Command.START: self._start,
            Command.STOP: self._stop,
        }
        try:
            result = await handlers[message.command]()
        except Exception as e:
            logger.exception("Command %s failed", message.command.value)
            if not message.future.done():
                message.future.set_exception(e)
            return
        if not message.future.done():
            message.future.set_result(result)

    async def _authorize(self) -> bool:
        if self.phase is not Phase.IDLE:
            logger.debug("Authorization ignored in phase %s", self.phase.value)
            return self.state.snapshot.is_authorized

        self.state.update(phase=Phase.AUTHORIZING)
        try:
            if not await self._sensors.request_access(REQUIRED_TYPES):
                raise AuthorizationError("Authorization failed")
        except AuthorizationError as e:
            logger.warning("Authorization denied: %s", e)
            self.state.update(phase=Phase.IDLE, is_authorized=False, error=e.user_message)
            return False
        except Exception:
            self.state.update(phase=Phase.IDLE)
            raise

        logger.info("Sensor access granted")
        self.state.update(phase=Phase.IDLE, is_authorized=True, status=STATUS_READY, error=None)
        return True

    async def _start(self) -> bool:
        if self.phase is not Phase.IDLE:
            logger.debug("Start ignored in phase %s", self.phase.value)
            return False
        if not self.state.snapshot.is_authorized and not await self._authorize():
            logger.info("Start abandoned, sensor access not granted")
            return False

        session_id = str(uuid.uuid4()).upper()
        self.state.update(phase=Phase.STARTING, status=STATUS_STARTING, success_count=0, fail_count=0)

        handle: SensorSession | None = None
        try:
            handle = await self._sensors.open_session(session_id, self._lifecycle_handler(session_id))
            self.pipeline.begin(session_id)
            handle.subscribe(self.pipeline.on_sensor_event)
            await handle.start()
        except SessionStartError as e:
            logger.warning("Session start failed: %s", e)
            self._abandon_start(handle, error=e.user_message)
            return False
        except Exception:
            self._abandon_start(handle)
            raise

        self._session = MonitoringSession(session_id=session_id, handle=handle)
        logger.info("Session %s started", session_id)
        self.state.update(
            phase=Phase.ACTIVE,
            is_active=True,
            session_id=session_id,
            status=STATUS_MONITORING,
            error=None,
        )
        return True

    def _abandon_start(self, handle: SensorSession | None, **changes) -> None:
        self.pipeline.end()
        if handle is not None:
            handle.unsubscribe()
        self.state.update(phase=Phase.IDLE, is_active=False, session_id=None, status=STATUS_READY, **changes)

    async def _stop(self) -> bool:
        if self.phase is not Phase.ACTIVE or self._session is None:
            logger.debug("Stop ignored in phase %s", self.phase.value)
            return False

        session, self._session = self._session, None
        self.state.update(phase=Phase.STOPPING)
        session.handle.unsubscribe()
        self.pipeline.end()

        changes: dict = {}
        try:
            await session.handle.end()
        except StopError as e:
            logger.warning("Session %s did not finalize cleanly: %s", session.session_id, e)
            changes["error"] = e.user_message
        finally:
            # The transition to idle happens even if finalizing failed
            logger.info(
                "Session %s stopped (%d delivered, %d failed, %d in flight)",
                session.session_id,
                self.state.snapshot.success_count,
                self.state.snapshot.fail_count,
                self.pipeline.in_flight,
            )
            self.state.update(
                phase=Phase.IDLE,
                is_active=False,
                heart_rate=0.0,
                session_id=None,
                status=STATUS_STOPPED,
                **changes,
            )
        return True

    def _lifecycle_handler(self, session_id: str):
        def on_lifecycle(event: SessionEvent, detail: str | None = None) -> None:
            self.post(LifecycleNotice(session_id, SessionEvent(event), detail))

        return on_lifecycle

    async def _handle_lifecycle(self, notice: LifecycleNotice) -> None:
        session = self._session
        if session is None or session.session_id != notice.session_id:
            logger.debug("Ignoring %s for inactive session %s", notice.event.value, notice.session_id)
            return

        if notice.event is SessionEvent.RUNNING:
            self.state.update(status=STATUS_ACTIVE)
        elif notice.event is SessionEvent.ENDED:
            logger.info("Session %s ended by sensor: %s", session.session_id, notice.detail or "no detail")
            self._session = None
            session.handle.unsubscribe()
            self.pipeline.end()
            self.state.update(
                phase=Phase.IDLE,
                is_active=False,
                heart_rate=0.0,
                session_id=None,
                status=STATUS_ENDED,
            )
        elif notice.event is SessionEvent.ERROR:
            error = SessionRuntimeError(notice.detail or "Sensor session failed")
            logger.error("Session %s error: %s", session.session_id, error)
            self.state.update(error=error.user_message)
            if self.stop_on_runtime_error:
                await self._stop()
