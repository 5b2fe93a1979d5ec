"""
Line protocol spoken between the gateway and its TCP clients.

Every line is terminated by CRLF. Fields are comma-separated raw substrings
with no quoting or escaping, so a comma inside a text field shifts the
remaining fields.

Client → Gateway:
- $PCONTROL,<name>,<op>                          set a power channel
- $SMSSEND,<reqId>,<dest>,<text>,<timeoutSec>    send an SMS

Gateway → Client (reply, one per received line):
- OK / ERROR

Gateway → Client (broadcast):
- +TPH,<temp>,<pressure>,<humidity>              periodic telemetry
- +PSTATE,<name>,<state>                         power channel state
- +SMSRECV,<origin>,<text>                       inbound text message
- +SMSSTATE,<reqId>,<status>[,<info>]            SMS delivery status
"""

from dataclasses import dataclass
from typing import Union

DELIMITER = b"\r\n"
ENCODING = "utf-8"

REPLY_OK = "OK"
REPLY_ERROR = "ERROR"

PCONTROL_PREFIX = "$PCONTROL,"
SMSSEND_PREFIX = "$SMSSEND,"


# =============================================================================
# Commands (Client → Gateway)
# =============================================================================


@dataclass(frozen=True)
class ChannelControl:
    """Request to change the power state of a named channel."""

    name: str
    operation: int


@dataclass(frozen=True)
class SmsSend:
    """Request to send an SMS through the modem."""

    request_id: int
    destination: str
    text: str
    timeout_seconds: int


@dataclass(frozen=True)
class Unrecognized:
    """A line that did not parse as any known command."""

    line: str


Command = Union[ChannelControl, SmsSend, Unrecognized]


def parse_command(line: str) -> Command:
    """
    Parse one complete line (delimiter already stripped) into a Command.

    Never raises: malformed input, including integer conversion failures,
    yields Unrecognized.

    Args:
        line: Decoded line text

    Returns:
        ChannelControl, SmsSend, or Unrecognized
    """
    if line.startswith(PCONTROL_PREFIX):
        parts = line.split(",")
        if len(parts) < 3:
            return Unrecognized(line)
        try:
            operation = int(parts[2])
        except ValueError:
            return Unrecognized(line)
        return ChannelControl(name=parts[1], operation=operation)

    if line.startswith(SMSSEND_PREFIX):
        parts = line.split(",")
        if len(parts) < 5:
            return Unrecognized(line)
        try:
            request_id = int(parts[1])
            timeout_seconds = int(parts[4])
        except ValueError:
            return Unrecognized(line)
        return SmsSend(
            request_id=request_id,
            destination=parts[2],
            text=parts[3],
            timeout_seconds=timeout_seconds,
        )

    return Unrecognized(line)


def decode_line(raw: bytes) -> str:
    """Decode a framed line; undecodable bytes are replaced, not fatal."""
    return raw.decode(ENCODING, errors="replace")


# =============================================================================
# Notices (Gateway → Client)
# =============================================================================


def format_telemetry(temperature: float, pressure: float, humidity: float) -> str:
    return f"+TPH,{temperature:.2f},{pressure:.2f},{humidity:.2f}"


def format_channel_state(name: str, state: bool | int) -> str:
    return f"+PSTATE,{name},{int(state)}"


def format_sms_received(origin: str, text: str) -> str:
    return f"+SMSRECV,{origin},{text}"


def format_sms_state(req_id: int, status: int, info: str = "") -> str:
    """Format an SMS status notice. The info field is omitted when empty."""
    if info:
        return f"+SMSSTATE,{req_id},{int(status)},{info}"
    return f"+SMSSTATE,{req_id},{int(status)}"


def encode_line(line: str) -> bytes:
    """Encode a protocol line for the wire, appending the delimiter."""
    return line.encode(ENCODING) + DELIMITER
