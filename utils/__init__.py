"""
Utility modules shared by the gateway.

This package provides the line protocol, bus message types, the in-process
message bus, and the thread-safe cache of bus-delivered state.
"""

from .config_lookup import get_nested
from .gateway_state import BusEventCache, TelemetrySnapshot
from .message_bus import MessageBus
from .protocol import (
    ChannelControl,
    Command,
    SmsSend,
    Unrecognized,
    encode_line,
    format_channel_state,
    format_sms_received,
    format_sms_state,
    format_telemetry,
    parse_command,
)

__all__ = [
    # Config
    "get_nested",
    # Bus state
    "BusEventCache",
    "TelemetrySnapshot",
    "MessageBus",
    # Commands
    "Command",
    "ChannelControl",
    "SmsSend",
    "Unrecognized",
    "parse_command",
    # Notices
    "encode_line",
    "format_channel_state",
    "format_sms_received",
    "format_sms_state",
    "format_telemetry",
]
