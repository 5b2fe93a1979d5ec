"""
Message types carried on the in-process bus.

Inbound (delivered to the gateway):
- Temperature, Pressure, RelativeHumidity: scalar sensor values
- PowerChannelState: on/off state of a named power channel
- SmsStatus: delivery status of a previously requested SMS
- TextMessage: inbound text message

Outbound (published by the gateway on behalf of TCP clients):
- PowerChannelControl: request to change a power channel
- SmsRequest: request to send an SMS
"""

from dataclasses import dataclass
from enum import IntEnum


class PowerChannelOp(IntEnum):
    """Operations understood by power channel controllers."""

    TURN_OFF = 0
    TURN_ON = 1
    TOGGLE = 2
    SCHED_ON = 3
    SCHED_OFF = 4
    SCHED_RESET = 5
    SAVE = 7


class SmsStatusCode(IntEnum):
    """SMS delivery states reported by the modem side."""

    QUEUED = 0
    SENT = 1
    INPUT_FAILURE = 101
    ERROR = 102


@dataclass(frozen=True)
class Temperature:
    value: float  # degrees Celsius


@dataclass(frozen=True)
class Pressure:
    value: float  # hPa


@dataclass(frozen=True)
class RelativeHumidity:
    value: float  # percent


@dataclass(frozen=True)
class PowerChannelState:
    name: str
    state: int  # 0 = off, 1 = on


@dataclass(frozen=True)
class SmsStatus:
    req_id: int
    status: int
    info: str = ""


@dataclass(frozen=True)
class TextMessage:
    origin: str
    text: str


@dataclass(frozen=True)
class PowerChannelControl:
    name: str
    op: int


@dataclass(frozen=True)
class SmsRequest:
    req_id: int
    destination: str
    sms_text: str
    timeout: int  # seconds
