"""WebSocket bridge between the session controller and display clients."""

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable

from websockets.asyncio.server import ServerConnection, serve
from websockets.exceptions import ConnectionClosedError

from .record import AppState
from .state import MonitorState

logger = logging.getLogger(__name__)

CommandHandler = Callable[[str], Awaitable[bool]]

COMMANDS = {"start", "stop", "authorize"}


class StateServer:
    """Broadcasts state snapshots to all clients and accepts session commands.

    Also answers the host foreground query: the app counts as foreground while
    at least one display is connected.
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 8765,
        broadcast_timeout: float = 0.5,
        on_command: CommandHandler | None = None,
    ):
        self.host = host
        self.port = port
        self.on_command = on_command
        self._broadcast_timeout = broadcast_timeout
        self._clients: set[ServerConnection] = set()
        self._server = None
        self._latest: MonitorState | None = None
        self._pending: set[asyncio.Task] = set()

    def _client_info(self, websocket: ServerConnection) -> str:
        addr = websocket.remote_address
        if addr:
            return f"{addr[0]}:{addr[1]}"
        return "unknown"

    def app_state(self) -> AppState:
        return AppState.FOREGROUND if self._clients else AppState.BACKGROUND

    async def _handler(self, websocket: ServerConnection) -> None:
        """Handle one display connection."""
        self._clients.add(websocket)
        logger.info("Client connected: %s (%d total)", self._client_info(websocket), len(self._clients))
        try:
            if self._latest is not None:
                await websocket.send(json.dumps(self._state_message(self._latest)))
            async for raw in websocket:
                reply = await self.handle_message(raw)
                await websocket.send(json.dumps(reply))
        except ConnectionClosedError:
            pass  # Client went away without a close frame
        finally:
            self._clients.discard(websocket)
            logger.info("Client disconnected: %s (%d total)", self._client_info(websocket), len(self._clients))

    async def handle_message(self, raw: str | bytes) -> dict:
        """Run a client command and build the reply."""
        try:
            message = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Malformed client message: %r", raw)
            return {"type": "error", "message": "Malformed JSON"}

        command = message.get("command") if isinstance(message, dict) else None
        if command not in COMMANDS:
            return {"type": "error", "message": f"Unknown command: {command!r}"}
        if self.on_command is None:
            return {"type": "error", "message": "Commands not supported"}

        logger.debug("Client command: %s", command)
        try:
            ok = await self.on_command(command)
        except Exception as e:
            logger.exception("Command %s failed", command)
            return {"type": "error", "message": f"Command {command} failed: {e}"}
        return {"type": "result", "command": command, "ok": bool(ok)}

    async def broadcast(self, message: dict) -> None:
        """Send a message to all connected clients."""
        if not self._clients:
            return
        clients = list(self._clients)
        data = json.dumps(message)
        try:
            results = await asyncio.wait_for(
                asyncio.gather(
                    *[client.send(data) for client in clients],
                    return_exceptions=True,
                ),
                timeout=self._broadcast_timeout,
            )
            self._remove_failed_clients(clients, results)
        except TimeoutError:
            logger.warning("Broadcast timeout, slow client(s) skipped")

    def _remove_failed_clients(self, clients: list[ServerConnection], results: list) -> None:
        for client, result in zip(clients, results, strict=True):
            if isinstance(result, Exception):
                self._clients.discard(client)
                logger.debug("Removed failed client: %s", result)

    @staticmethod
    def _state_message(state: MonitorState) -> dict:
        return {"type": "state", **state.to_dict()}

    async def broadcast_state(self, state: MonitorState) -> None:
        await self.broadcast(self._state_message(state))

    def on_state_change(self, state: MonitorState) -> None:
        """StateStore observer. Schedules a broadcast on the running loop."""
        self._latest = state
        if not self._clients:
            return
        task = asyncio.get_running_loop().create_task(self.broadcast_state(state))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def start(self) -> None:
        self._server = await serve(self._handler, self.host, self.port)
        logger.debug("Server started on %s:%d", self.host, self.port)

    async def stop(self) -> None:
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        if self._server:
            self._server.close()
            await self._server.wait_closed()
            logger.debug("Server stopped")

    @property
    def client_count(self) -> int:
        return len(self._clients)
