"""Entry point for pulse-relay."""

import argparse
import asyncio
import logging
import signal

from .ble import BleSensorSubsystem
from .config import Config, load_config
from .controller import SessionController
from .identity import IdentityStore, JsonFileStore
from .log import setup_logging
from .sensor import SensorSubsystem
from .server import StateServer
from .simulator import SimulatedSensorSubsystem
from .transport import HeartRateTransport

logger = logging.getLogger(__name__)

# Shutdown event for graceful termination
_shutdown_event: asyncio.Event | None = None


def _signal_handler() -> None:
    """Handle shutdown signals."""
    if _shutdown_event:
        logger.info("Shutdown requested...")
        _shutdown_event.set()


def build_sensors(config: Config, device: str | None, name_filter: str | None, simulate: bool) -> SensorSubsystem:
    """Pick the sensor subsystem for this run."""
    if simulate:
        logger.info("Using simulated heart rate sensor")
        return SimulatedSensorSubsystem()
    return BleSensorSubsystem(
        address=device,
        name_filter=name_filter,
        scan_timeout=config.ble.scan_timeout,
    )


async def _prepare(controller: SessionController, auto_start: bool) -> None:
    """Authorize and optionally start, keeping the relay up if either fails."""
    try:
        await controller.request_authorization()
        if auto_start:
            await controller.start()
    except Exception:
        logger.exception("Startup command failed, waiting for client commands")


async def run(
    config: Config,
    host: str,
    port: int,
    device: str | None,
    name_filter: str | None,
    *,
    endpoint: str | None = None,
    simulate: bool = False,
    auto_start: bool = False,
) -> None:
    """Run the relay until a shutdown signal arrives."""
    global _shutdown_event
    _shutdown_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _signal_handler)

    server = StateServer(
        host=host,
        port=port,
        broadcast_timeout=config.server.broadcast_timeout,
    )
    transport = HeartRateTransport(
        base_url=endpoint or config.endpoint.base_url,
        path=config.endpoint.path,
        timeout=config.endpoint.timeout,
    )
    identity = IdentityStore(JsonFileStore(config.identity.path))
    controller = SessionController(
        sensors=build_sensors(config, device, name_filter, simulate),
        transport=transport,
        identity=identity,
        host=server,
        stop_on_runtime_error=config.session.stop_on_runtime_error,
    )
    controller.state.subscribe(server.on_state_change)

    async def dispatch(command: str) -> bool:
        if command == "start":
            return await controller.start()
        if command == "stop":
            return await controller.stop()
        return await controller.request_authorization()

    server.on_command = dispatch

    # Start server first so displays can connect while the sensor is found
    await server.start()
    logger.info("WebSocket server running on ws://%s:%d", host, port)
    logger.info("Relaying samples to %s as device %s", transport.url, identity.get_or_create_device_id())

    try:
        async with controller:
            await _prepare(controller, auto_start)
            await _shutdown_event.wait()
    finally:
        await transport.close()
        await server.stop()
        logger.info("Shutdown complete")


def main() -> None:
    """CLI entry point."""
    config = load_config()

    parser = argparse.ArgumentParser(description="Heart rate relay to an HTTP collection endpoint")
    parser.add_argument("-H", "--host", default=config.server.host, help="WebSocket server host")
    parser.add_argument("-p", "--port", type=int, default=config.server.port, help="WebSocket server port")
    parser.add_argument("-d", "--device", default=config.device.address or None, help="Device address (skip scanning)")
    parser.add_argument(
        "-n",
        "--name",
        default=config.device.name_filter or None,
        help="Filter by device name (case-insensitive, uses first match)",
    )
    parser.add_argument("-e", "--endpoint", default=None, help="Collection endpoint base URL")
    parser.add_argument(
        "--simulate",
        action="store_true",
        default=config.session.simulate,
        help="Use a simulated sensor instead of BLE",
    )
    parser.add_argument(
        "--start",
        action="store_true",
        default=config.session.auto_start,
        help="Start a monitoring session immediately",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    log_level = "DEBUG" if args.verbose else config.server.log_level
    setup_logging(log_level)

    asyncio.run(
        run(
            config,
            args.host,
            args.port,
            args.device,
            args.name,
            endpoint=args.endpoint,
            simulate=args.simulate,
            auto_start=args.start,
        )
    )


if __name__ == "__main__":
    main()
