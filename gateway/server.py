#!/usr/bin/env python3
"""
TCP line-protocol gateway.

Listens for TCP clients (modem/radio peers), forwards their $PCONTROL and
$SMSSEND commands onto the message bus, answers each line with OK or ERROR,
and broadcasts telemetry and status notices from the bus to every client.

Configuration is loaded from config/gateway_config.json (see gateway.config
for every option and its default).

Usage:
    python3 -m gateway.server [config_file]
    modem-gateway [config_file]
"""

from __future__ import annotations

import argparse
import logging
import signal
import socket
import sys
import threading
import time
from typing import Callable

from gateway.config import GatewayConfig, load_config
from gateway.connections import Connection, ConnectionRegistry
from gateway.framer import FrameOverflowError
from gateway.multiplexer import ReadinessMultiplexer
from gateway.sensor_publisher import LocalSensorPublisher, instantiate_sensors
from gateway.timer import BroadcastTimer
from utils.gateway_state import BusEventCache
from utils.message_bus import MessageBus
from utils.messages import PowerChannelControl, PowerChannelOp, SmsRequest
from utils.protocol import (
    DELIMITER,
    REPLY_ERROR,
    REPLY_OK,
    ChannelControl,
    SmsSend,
    decode_line,
    format_telemetry,
    parse_command,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)
wire_logger = logging.getLogger("wire_debug")

KNOWN_CHANNEL_OPS = frozenset(op.value for op in PowerChannelOp)


class RestartNeeded(Exception):
    """The gateway cannot run and asks its host to restart it after delay seconds."""

    def __init__(self, reason: str, delay: float):
        super().__init__(reason)
        self.delay = delay


# =============================================================================
# Gateway Loop
# =============================================================================


class GatewayServer:
    """
    Single-threaded poll loop serving every TCP client.

    Each iteration polls the listening socket and all clients, accepts at
    most one new connection, answers every complete line received, writes
    pending bus notices, and broadcasts telemetry when the timer fires.

    Bus deliveries happen on another thread; they only touch the
    BusEventCache, which this loop reads between iterations.

    Example:
        server = GatewayServer(GatewayConfig(port=10000), bus, cache)
        server.run(stop_event)  # returns once stop_event is set
    """

    def __init__(
        self,
        config: GatewayConfig,
        bus: MessageBus,
        cache: BusEventCache,
        multiplexer: ReadinessMultiplexer | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._config = config
        self._bus = bus
        self._cache = cache
        self._owns_multiplexer = multiplexer is None
        self._multiplexer = multiplexer or ReadinessMultiplexer()
        self._registry = ConnectionRegistry(
            self._multiplexer, DELIMITER, config.max_line_bytes
        )
        self._timer = BroadcastTimer(config.broadcast_period_sec, clock)
        self._sock: socket.socket | None = None

    @property
    def registry(self) -> ConnectionRegistry:
        return self._registry

    @property
    def multiplexer(self) -> ReadinessMultiplexer:
        return self._multiplexer

    @property
    def address(self) -> tuple[str, int] | None:
        """Bound (host, port) of the listening socket, or None if not open."""
        if self._sock is None:
            return None
        return self._sock.getsockname()[:2]

    def open(self) -> None:
        """
        Create, bind and start listening on the server socket.

        Raises:
            RestartNeeded: If the socket cannot be set up
        """
        host, port = self._config.host, self._config.port
        delay = self._config.restart_delay_sec
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        except OSError as e:
            raise RestartNeeded(f"cannot create socket: {e}", delay) from e

        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((host, port))
            sock.listen(self._config.max_clients)
            sock.setblocking(False)
        except OSError as e:
            sock.close()
            raise RestartNeeded(f"cannot listen on {host}:{port}: {e}", delay) from e

        if not self._multiplexer.register(sock):
            sock.close()
            raise RestartNeeded("cannot poll listening socket", delay)

        self._sock = sock
        self._timer.reset()
        bound_host, bound_port = self.address
        logger.info(f"Listening on {bound_host}:{bound_port}")

    def run(self, stop_event: threading.Event) -> None:
        """Run the loop until stop_event is set, then release every socket."""
        try:
            if self._sock is None:
                self.open()
            while not stop_event.is_set():
                self.run_once()
                # Give bus deliveries a chance to land between iterations
                stop_event.wait(self._config.yield_sec)
        finally:
            self.close()

    def run_once(self) -> None:
        """Execute one loop iteration."""
        ready = self._multiplexer.poll(self._config.poll_timeout_ms / 1000)
        if ready:
            if self._sock is not None and self._sock in ready:
                self._accept()
            self._registry.for_each_ready(ready, self._service_client)

        self.flush_notices()

        if self._timer.overflow():
            self.broadcast_telemetry()
            self._timer.reset()

    def close(self) -> None:
        """Close all clients and the listening socket. Safe to call twice."""
        self._registry.close_all()
        if self._sock is not None:
            self._multiplexer.unregister(self._sock)
            self._sock.close()
            self._sock = None
            logger.info("Listening socket closed")
        if self._owns_multiplexer:
            self._multiplexer.close()
            self._owns_multiplexer = False

    # ─── Commands ───────────────────────────────────────────────────────────

    def handle_line(self, raw: bytes) -> str:
        """
        Parse one framed line, publish the resulting request, and return the
        reply to send back (OK or ERROR).
        """
        line = decode_line(raw)
        wire_logger.debug(f"RX {line!r}")
        command = parse_command(line)

        if isinstance(command, ChannelControl):
            if self._cache.is_known_channel(command.name):
                if command.operation not in KNOWN_CHANNEL_OPS:
                    logger.warning(
                        f"Forwarding unlisted op {command.operation} for channel '{command.name}'"
                    )
                reply = self._forward(
                    PowerChannelControl(name=command.name, op=command.operation)
                )
            else:
                logger.warning(f"Rejected control for unknown channel '{command.name}'")
                reply = REPLY_ERROR
        elif isinstance(command, SmsSend):
            reply = self._forward(
                SmsRequest(
                    req_id=command.request_id,
                    destination=command.destination,
                    sms_text=command.text,
                    timeout=command.timeout_seconds,
                )
            )
        else:
            logger.debug(f"Unrecognized line: {line!r}")
            reply = REPLY_ERROR

        wire_logger.debug(f"TX {reply}")
        return reply

    def _forward(self, request: PowerChannelControl | SmsRequest) -> str:
        if not self._bus.publish(request):
            return REPLY_ERROR
        logger.info(f"Forwarded {request}")
        return REPLY_OK

    # ─── Broadcasts ─────────────────────────────────────────────────────────

    def broadcast_telemetry(self) -> int:
        snapshot = self._cache.get_telemetry()
        line = format_telemetry(snapshot.temperature, snapshot.pressure, snapshot.humidity)
        wire_logger.debug(f"BROADCAST {line}")
        return self._registry.broadcast(line)

    def flush_notices(self) -> None:
        """Broadcast every notice queued by bus deliveries since the last call."""
        for line in self._cache.take_broadcasts():
            wire_logger.debug(f"BROADCAST {line}")
            self._registry.broadcast(line)

    # ─── Socket I/O ─────────────────────────────────────────────────────────

    def _accept(self) -> None:
        try:
            client, addr = self._sock.accept()
        except BlockingIOError:
            return
        except OSError as e:
            logger.error(f"Accept failed: {e}")
            return

        try:
            client.settimeout(self._config.socket_timeout_sec)
            client.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        except OSError as e:
            logger.warning(f"Failed to configure client socket: {e}")
        self._registry.accept(client, f"{addr[0]}:{addr[1]}")

    def _service_client(self, conn: Connection) -> None:
        try:
            data = conn.sock.recv(self._config.read_size)
        except (BlockingIOError, InterruptedError, socket.timeout):
            return
        except OSError as e:
            logger.warning(f"Read from {conn.address} failed: {e}")
            self._registry.remove(conn)
            return

        if not data:
            self._registry.remove(conn)
            return

        try:
            for raw in conn.framer.feed(data):
                conn.send_line(self.handle_line(raw))
        except FrameOverflowError as e:
            logger.warning(f"Dropping {conn.address}: {e}")
            self._registry.remove(conn)
        except OSError as e:
            logger.error(f"Write to {conn.address} failed: {e}")
            self._registry.remove(conn)


# =============================================================================
# Main
# =============================================================================


def _log_outbound(request: PowerChannelControl | SmsRequest) -> None:
    logger.debug(f"Bus delivered {request}")


def run_gateway(
    config: GatewayConfig,
    stop_event: threading.Event,
    verbose_logging: bool = False,
) -> bool:
    """
    Run the gateway until stop_event is set.

    Setup failures are retried after the delay each RestartNeeded carries,
    up to config.max_restarts times (0 = forever).

    Returns:
        True on a clean stop, False if restarts were exhausted
    """
    if verbose_logging:
        logger.info("Verbose logging enabled")

    bus = MessageBus(max_size=config.bus_max_queue_size)
    cache = BusEventCache()
    cache.attach(bus)
    bus.subscribe(PowerChannelControl, _log_outbound)
    bus.subscribe(SmsRequest, _log_outbound)
    bus.start()

    # Start local sensor publisher if configured
    publisher = None
    if config.local_sensors:
        local_sensors = instantiate_sensors(config.local_sensors)
        if local_sensors:
            publisher = LocalSensorPublisher(
                bus, local_sensors, config.local_sensor_interval_sec
            )
            publisher.start()

    restarts = 0
    try:
        while not stop_event.is_set():
            server = GatewayServer(config, bus, cache)
            try:
                server.run(stop_event)
            except RestartNeeded as e:
                restarts += 1
                if config.max_restarts and restarts > config.max_restarts:
                    logger.error(f"Gateway setup failed: {e}; giving up after {config.max_restarts} restarts")
                    return False
                logger.error(f"Gateway setup failed: {e}; restarting in {e.delay:.0f}s")
                stop_event.wait(e.delay)
        return True
    finally:
        logger.info("Shutting down...")
        if publisher:
            publisher.stop()
            publisher.join(timeout=2.0)
            publisher.close_sensors()
        bus.stop()


def main():
    parser = argparse.ArgumentParser(
        description="TCP line-protocol gateway for modem/radio peers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "config",
        nargs="?",
        default="config/gateway_config.json",
        help="Path to config file (default: config/gateway_config.json)",
    )
    parser.add_argument(
        "--verbose_logging",
        action="store_true",
        help="Enable debug logging for all modules",
    )
    parser.add_argument(
        "--wire-debug",
        action="store_true",
        help="Log every line received from and sent to TCP clients",
    )
    args = parser.parse_args()

    if args.verbose_logging:
        logging.getLogger().setLevel(logging.DEBUG)

    if args.wire_debug:
        # Focused wire logger with millisecond timestamps
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s.%(msecs)03d [WIRE] %(message)s", datefmt="%H:%M:%S"
            )
        )
        wire_logger.addHandler(handler)
        wire_logger.setLevel(logging.DEBUG)
        wire_logger.propagate = False

    # Load configuration
    try:
        config = GatewayConfig.from_dict(load_config(args.config))
    except (FileNotFoundError, ValueError) as e:
        logger.error(str(e))
        sys.exit(1)

    stop_event = threading.Event()

    def request_stop(signum, frame):
        logger.info(f"Received signal {signum}, stopping")
        stop_event.set()

    signal.signal(signal.SIGINT, request_stop)
    signal.signal(signal.SIGTERM, request_stop)

    if not run_gateway(config, stop_event, verbose_logging=args.verbose_logging):
        sys.exit(1)


if __name__ == "__main__":
    main()
