"""
Gateway package - TCP line-protocol gateway between modem/radio peers and
the message bus.

This package contains:
- config: JSON configuration loading and validation
- framer: Incremental CRLF line framing per connection
- multiplexer: Readiness polling over all sockets
- connections: Connection registry with broadcast
- timer: Broadcast countdown timer
- sensor_publisher: Local sensor readings published onto the bus
- server: Gateway loop orchestration and entry point
"""

from gateway.config import GatewayConfig, load_config
from gateway.connections import Connection, ConnectionRegistry
from gateway.framer import FrameOverflowError, LineFramer
from gateway.multiplexer import ReadinessMultiplexer
from gateway.sensor_publisher import LocalSensorPublisher, instantiate_sensors
from gateway.server import GatewayServer, RestartNeeded, main, run_gateway
from gateway.timer import BroadcastTimer

__all__ = [
    "BroadcastTimer",
    "Connection",
    "ConnectionRegistry",
    "FrameOverflowError",
    "GatewayConfig",
    "GatewayServer",
    "LineFramer",
    "LocalSensorPublisher",
    "ReadinessMultiplexer",
    "RestartNeeded",
    "instantiate_sensors",
    "load_config",
    "main",
    "run_gateway",
]
