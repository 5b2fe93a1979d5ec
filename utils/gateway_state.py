"""
Shared runtime state for the gateway.

The bus dispatch thread writes here as sensor and status messages arrive;
the gateway loop thread reads from here once per iteration. A single lock
guards everything so the loop never observes a half-updated value.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING

from utils.messages import (
    PowerChannelState,
    Pressure,
    RelativeHumidity,
    SmsStatus,
    SmsStatusCode,
    Temperature,
    TextMessage,
)
from utils.protocol import (
    format_channel_state,
    format_sms_received,
    format_sms_state,
)

if TYPE_CHECKING:
    from utils.message_bus import MessageBus

logger = logging.getLogger(__name__)


@dataclass
class TelemetrySnapshot:
    """Last known environment readings. Last write wins, no staleness tracking."""

    temperature: float = 0.0
    pressure: float = 0.0
    humidity: float = 0.0


class BusEventCache:
    """
    Thread-safe cache of bus-delivered state.

    Holds:
    - the telemetry snapshot (temperature, pressure, humidity)
    - the channel registry: power channel name -> last known on/off state
    - broadcast lines produced by bus deliveries, waiting for the loop
      thread to write them to clients

    Example:
        cache = BusEventCache()
        cache.attach(bus)
        ...
        for line in cache.take_broadcasts():
            registry.broadcast(line)
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._telemetry = TelemetrySnapshot()
        self._channels: dict[str, bool] = {}
        self._pending: deque[str] = deque()

    # ─── Telemetry ──────────────────────────────────────────────────────────

    def update_temperature(self, value: float) -> None:
        with self._lock:
            self._telemetry.temperature = value

    def update_pressure(self, value: float) -> None:
        with self._lock:
            self._telemetry.pressure = value

    def update_humidity(self, value: float) -> None:
        with self._lock:
            self._telemetry.humidity = value

    def get_telemetry(self) -> TelemetrySnapshot:
        """Get a copy of the telemetry snapshot (thread-safe)."""
        with self._lock:
            return TelemetrySnapshot(
                temperature=self._telemetry.temperature,
                pressure=self._telemetry.pressure,
                humidity=self._telemetry.humidity,
            )

    # ─── Channel registry ───────────────────────────────────────────────────

    def update_channel_state(self, name: str, state: bool) -> bool:
        """
        Record the state of a power channel (thread-safe).

        Returns:
            True if the channel is new or its state changed
        """
        with self._lock:
            previous = self._channels.get(name)
            self._channels[name] = state
        return previous is None or previous != state

    def is_known_channel(self, name: str) -> bool:
        """True if a state has ever been observed for this channel."""
        with self._lock:
            return name in self._channels

    def get_channel_states(self) -> dict[str, bool]:
        with self._lock:
            return dict(self._channels)

    # ─── Pending broadcasts ─────────────────────────────────────────────────

    def queue_broadcast(self, line: str) -> None:
        with self._lock:
            self._pending.append(line)

    def take_broadcasts(self) -> list[str]:
        """Remove and return all pending broadcast lines, oldest first."""
        with self._lock:
            lines = list(self._pending)
            self._pending.clear()
        return lines

    # ─── Bus wiring ─────────────────────────────────────────────────────────

    def attach(self, bus: MessageBus) -> None:
        """Subscribe to every inbound message kind the gateway tracks."""
        bus.subscribe(Temperature, self.on_temperature)
        bus.subscribe(Pressure, self.on_pressure)
        bus.subscribe(RelativeHumidity, self.on_humidity)
        bus.subscribe(PowerChannelState, self.on_channel_state)
        bus.subscribe(SmsStatus, self.on_sms_status)
        bus.subscribe(TextMessage, self.on_text_message)

    def on_temperature(self, msg: Temperature) -> None:
        self.update_temperature(msg.value)

    def on_pressure(self, msg: Pressure) -> None:
        self.update_pressure(msg.value)

    def on_humidity(self, msg: RelativeHumidity) -> None:
        self.update_humidity(msg.value)

    def on_channel_state(self, msg: PowerChannelState) -> None:
        state = bool(msg.state)
        if self.update_channel_state(msg.name, state):
            logger.info(f"Power channel '{msg.name}' is {'on' if state else 'off'}")
            self.queue_broadcast(format_channel_state(msg.name, state))

    def on_sms_status(self, msg: SmsStatus) -> None:
        try:
            status = SmsStatusCode(msg.status).name
        except ValueError:
            status = str(msg.status)
        logger.info(f"SMS request {msg.req_id}: {status}")
        self.queue_broadcast(format_sms_state(msg.req_id, msg.status, msg.info))

    def on_text_message(self, msg: TextMessage) -> None:
        logger.info(f"Text message from {msg.origin}")
        self.queue_broadcast(format_sms_received(msg.origin, msg.text))
