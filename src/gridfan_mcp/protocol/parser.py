"""Reply validation for device messages.

The engine hands back raw reply bytes; the shape of a valid reply
differs per command, so each command gets its own parser here.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ..errors import InvalidReply
from .commands import PING_OK, RPM_REPLY_PREFIX, SET_SPEED_OK
from .exchange import Exchange, Outcome


class PingStatus(Enum):
    """Outcome class of a single liveness check."""

    OK = "ok"
    TIMEOUT = "timeout"
    TRANSMIT_FAILURE = "transmit_failure"
    UNEXPECTED_REPLY = "unexpected_reply"


class FanOutcome(Enum):
    """Per-fan outcome of a set-speed request."""

    OK = "ok"
    NO_RESPONSE = "no_response"
    INVALID_REPLY = "invalid_reply"
    TRANSMIT_FAILURE = "transmit_failure"
    DEVICE_UNAVAILABLE = "device_unavailable"


@dataclass
class FanTelemetry:
    """RPM reading of one fan, as of the most recent read."""

    fan_id: int
    rpm: int

    def to_dict(self) -> dict:
        return {"fan": self.fan_id, "rpm": self.rpm}


def parse_ping(exchange: Exchange) -> PingStatus:
    """Classify a PING exchange.

    Anything but the single documented success byte counts as
    ``UNEXPECTED_REPLY``: the device is alive but not in sync.
    """
    if exchange.outcome is Outcome.TRANSMIT_FAILURE:
        return PingStatus.TRANSMIT_FAILURE
    if exchange.outcome is not Outcome.SUCCESS:
        return PingStatus.TIMEOUT
    if exchange.response == bytes([PING_OK]):
        return PingStatus.OK
    return PingStatus.UNEXPECTED_REPLY


def parse_rpm(fan_id: int, response: bytes) -> FanTelemetry:
    """Parse a READ_RPM reply: ``C0 00 00 <rpm_hi> <rpm_lo>``.

    Raises:
        InvalidReply: If the reply does not match that pattern.
    """
    if len(response) != 5 or response[:3] != RPM_REPLY_PREFIX:
        raise InvalidReply(
            f"Invalid RPM reply for fan {fan_id}: "
            f"{response.hex(' ') if response else '(empty)'}",
            reply=response,
        )
    return FanTelemetry(fan_id=fan_id, rpm=int.from_bytes(response[3:5], "big"))


def parse_set_speed(exchange: Exchange) -> FanOutcome:
    """Classify a SET_VOLTAGE exchange; only a lone ``01`` is success."""
    if exchange.outcome is Outcome.TRANSMIT_FAILURE:
        return FanOutcome.TRANSMIT_FAILURE
    if not exchange.response:
        return FanOutcome.NO_RESPONSE
    if exchange.response == bytes([SET_SPEED_OK]):
        return FanOutcome.OK
    return FanOutcome.INVALID_REPLY
