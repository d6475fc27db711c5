"""Error taxonomy and exit statuses for the fan controller.

Each error carries the :class:`ExitStatus` a caller should report so that
invalid input, transmit failures and timeouts stay distinguishable.
"""

from __future__ import annotations

from enum import IntEnum


class ExitStatus(IntEnum):
    """Process-style result codes for caller surfaces."""

    SUCCESS = 0
    INVALID_INPUT = 1
    TRANSMIT_FAILURE = 2
    TIMEOUT = 3
    INVALID_REPLY = 4
    DEVICE_UNAVAILABLE = 5
    SYNC_FAILED = 6


class FanControllerError(Exception):
    """Base class for all fan controller errors."""

    exit_status: ExitStatus = ExitStatus.INVALID_INPUT


class DeviceUnavailable(FanControllerError, ConnectionError):
    """The device path is missing, not readable/writable, or busy."""

    exit_status = ExitStatus.DEVICE_UNAVAILABLE


class ConfigurationFailed(FanControllerError):
    """Applying the serial line parameters failed."""

    exit_status = ExitStatus.DEVICE_UNAVAILABLE


class MalformedInput(FanControllerError, ValueError):
    """Caller input is not a well-formed byte sequence or value."""


class InputLengthMismatch(MalformedInput):
    """Request length does not match the command definition."""


class UnknownCommand(MalformedInput):
    """Opcode is not in the command table."""


class InvalidFanId(MalformedInput):
    """Fan ID is outside 1-6."""


class InvalidSpeed(MalformedInput):
    """Percentage is not a defined fan speed level."""


class TransmitFailure(FanControllerError, OSError):
    """Writing to the device failed."""

    exit_status = ExitStatus.TRANSMIT_FAILURE


class ResponseTimeout(FanControllerError, TimeoutError):
    """The device did not reply within the exchange budget."""

    exit_status = ExitStatus.TIMEOUT


class InvalidReply(FanControllerError):
    """A reply arrived but does not have the expected shape."""

    exit_status = ExitStatus.INVALID_REPLY

    def __init__(self, message: str, reply: bytes = b"") -> None:
        super().__init__(message)
        self.reply = reply


class SyncFailed(FanControllerError):
    """The device never answered the liveness check during init."""

    exit_status = ExitStatus.SYNC_FAILED
