"""Command protocol engine: validate a request, then run one exchange."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable

from ..errors import InputLengthMismatch
from .commands import ByteLike, lookup, parse_hex_byte, parse_hex_bytes
from .exchange import Exchange

if TYPE_CHECKING:
    from ..transport.serial_connection import SerialConnection

logger = logging.getLogger(__name__)


class CommandEngine:
    """Sends table-checked commands over a :class:`SerialConnection`.

    The engine never retries and never inspects reply content; callers
    validate replies with the parsers in :mod:`.parser`.
    """

    def __init__(self, connection: SerialConnection) -> None:
        self._connection = connection

    @property
    def connection(self) -> SerialConnection:
        return self._connection

    def send(
        self,
        opcode: ByteLike,
        payload: bytes | str | Iterable[ByteLike] = b"",
    ) -> Exchange:
        """Send one command and return the resulting exchange.

        Args:
            opcode: Opcode as an int or two-digit hex string.
            payload: Bytes following the opcode.

        Raises:
            MalformedInput: If any byte is not well-formed.
            UnknownCommand: If the opcode is not in the command table.
            InputLengthMismatch: If the request length is wrong for the opcode.
        """
        op = parse_hex_byte(opcode)
        body = parse_hex_bytes(payload)
        definition = lookup(op)
        request = bytes([op]) + body
        if len(request) != definition.input_length:
            raise InputLengthMismatch(
                f"Command 0x{op:02X} takes {definition.input_length} bytes, "
                f"got {len(request)}"
            )

        exchange = self._connection.exchange(request, definition.output_length)
        logger.debug("%r", exchange)
        return exchange

    def request(
        self,
        opcode: ByteLike,
        payload: bytes | str | Iterable[ByteLike] = b"",
    ) -> bytes:
        """Like :meth:`send` but return the reply bytes or raise on failure."""
        return self.send(opcode, payload).raise_for_outcome()
