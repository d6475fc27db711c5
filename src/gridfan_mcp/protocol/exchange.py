"""Result of a single request/response interaction with the device."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ..errors import ResponseTimeout, TransmitFailure


class Outcome(Enum):
    """How an exchange ended.

    Malformed requests never reach the transport; they raise
    :class:`MalformedInput` from the engine instead of producing an outcome.
    """

    SUCCESS = "success"
    TIMEOUT = "timeout"
    TRANSMIT_FAILURE = "transmit_failure"


@dataclass
class Exchange:
    """One write-then-read interaction.

    ``response`` holds whatever arrived, which may be fewer bytes than
    expected (or none) when ``outcome`` is not ``SUCCESS``.
    """

    request: bytes
    response: bytes = b""
    outcome: Outcome = Outcome.SUCCESS
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.SUCCESS

    def raise_for_outcome(self) -> bytes:
        """Return the response bytes, or raise the error matching the outcome."""
        if self.outcome is Outcome.SUCCESS:
            return self.response
        if self.outcome is Outcome.TIMEOUT:
            raise ResponseTimeout(
                f"No complete reply to {self.request.hex(' ')} "
                f"(got {len(self.response)} bytes)"
            )
        raise TransmitFailure(f"Write of {self.request.hex(' ')} failed: {self.error}")

    def __repr__(self) -> str:
        return (
            f"Exchange(request={self.request.hex(' ')}, "
            f"response={self.response.hex(' ') if self.response else '(empty)'}, "
            f"outcome={self.outcome.name})"
        )
