"""Command table and request builders.

The wire format carries no framing, checksum or length byte. Each opcode
implies both the request length and the number of reply bytes, so this
table is the only place those sizes are defined::

    opcode  meaning            request  reply
    0xC0    ping               1        1
    0x44    set fan voltage    7        1
    0x84    unidentified       2        5
    0x85    unidentified       2        5
    0x8A    read fan RPM       2        5
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, Union

from ..errors import InvalidFanId, MalformedInput, UnknownCommand

FAN_IDS = range(1, 7)

PING_OK = 0x21
SET_SPEED_OK = 0x01
RPM_REPLY_PREFIX = b"\xC0\x00\x00"

_HEX_BYTE = re.compile(r"^(0x)?[0-9A-Fa-f]{2}$")

ByteLike = Union[int, str]


class Command(IntEnum):
    """Opcodes understood by the controller."""

    PING = 0xC0
    SET_VOLTAGE = 0x44
    UNKNOWN_84 = 0x84
    UNKNOWN_85 = 0x85
    READ_RPM = 0x8A


@dataclass(frozen=True)
class CommandDefinition:
    """Fixed request/reply sizes for one opcode."""

    opcode: int
    input_length: int  # includes the opcode byte
    output_length: int
    name: str = ""

    def __repr__(self) -> str:
        return (
            f"CommandDefinition(opcode=0x{self.opcode:02X}, "
            f"in={self.input_length}, out={self.output_length})"
        )


COMMAND_TABLE: dict[int, CommandDefinition] = {
    d.opcode: d
    for d in (
        CommandDefinition(Command.PING, 1, 1, "ping"),
        CommandDefinition(Command.SET_VOLTAGE, 7, 1, "set fan speed"),
        CommandDefinition(Command.UNKNOWN_84, 2, 5, "unidentified"),
        CommandDefinition(Command.UNKNOWN_85, 2, 5, "unidentified"),
        CommandDefinition(Command.READ_RPM, 2, 5, "read fan speed"),
    )
}


def lookup(opcode: int) -> CommandDefinition:
    """Return the definition for *opcode*.

    Raises:
        UnknownCommand: If the opcode is not in the table.
    """
    try:
        return COMMAND_TABLE[opcode]
    except KeyError:
        raise UnknownCommand(f"Unknown command 0x{opcode:02X}") from None


def parse_hex_byte(value: ByteLike) -> int:
    """Convert an int or a two-hex-digit string (``"8A"``, ``"0x8a"``) to a byte."""
    if isinstance(value, bool):
        raise MalformedInput(f"Not a byte value: {value!r}")
    if isinstance(value, int):
        if not 0 <= value <= 0xFF:
            raise MalformedInput(f"Byte value out of range: {value}")
        return value
    if isinstance(value, str) and _HEX_BYTE.match(value.strip()):
        return int(value.strip()[-2:], 16)
    raise MalformedInput(f"Not a two-digit hex byte: {value!r}")


def parse_hex_bytes(values: bytes | str | Iterable[ByteLike]) -> bytes:
    """Normalize caller input to ``bytes``.

    Accepts raw ``bytes``, a whitespace separated hex string such as
    ``"8A 01"``, or an iterable of ints / hex-byte strings.

    Raises:
        MalformedInput: If any element is not a well-formed byte.
    """
    if isinstance(values, (bytes, bytearray)):
        return bytes(values)
    if isinstance(values, str):
        values = values.split()
    return bytes(parse_hex_byte(v) for v in values)


def check_fan_id(fan_id: int) -> int:
    if isinstance(fan_id, bool) or not isinstance(fan_id, int) or fan_id not in FAN_IDS:
        raise InvalidFanId(f"Fan ID must be 1-6, got {fan_id!r}")
    return fan_id


def build_ping() -> bytes:
    """Build the one-byte liveness check."""
    return bytes([Command.PING])


def build_read_rpm(fan_id: int) -> bytes:
    """Build a READ_RPM request for one fan.

    Args:
        fan_id: Fan channel 1-6.
    """
    return bytes([Command.READ_RPM, check_fan_id(fan_id)])


def build_set_speed(fan_id: int, voltage: bytes) -> bytes:
    """Build a SET_VOLTAGE request.

    Layout: ``44 0<id> C0 00 00 <volt_hi> <volt_lo>``.

    Args:
        fan_id: Fan channel 1-6.
        voltage: The 2-byte voltage code of a fan speed level.
    """
    if len(voltage) != 2:
        raise MalformedInput(f"Voltage code must be 2 bytes, got {len(voltage)}")
    return bytes([Command.SET_VOLTAGE, check_fan_id(fan_id), 0xC0, 0x00, 0x00]) + bytes(voltage)
