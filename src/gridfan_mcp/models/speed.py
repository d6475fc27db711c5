"""Fan speed levels and their device voltage codes.

The controller takes a voltage as two bytes: whole volts, then ``0x00`` or
``0x50`` for the half volt. Speeds map linearly from 4.0 V at 20% to 12.0 V
at 100%; 0% switches the fan off.
"""

from __future__ import annotations

from enum import Enum

from ..errors import InvalidSpeed


class FanSpeed(Enum):
    """Valid speed targets, ordered by percentage."""

    OFF = (0, b"\x00\x00")
    P20 = (20, b"\x04\x00")
    P25 = (25, b"\x04\x50")
    P30 = (30, b"\x05\x00")
    P35 = (35, b"\x05\x50")
    P40 = (40, b"\x06\x00")
    P45 = (45, b"\x06\x50")
    P50 = (50, b"\x07\x00")
    P55 = (55, b"\x07\x50")
    P60 = (60, b"\x08\x00")
    P65 = (65, b"\x08\x50")
    P70 = (70, b"\x09\x00")
    P75 = (75, b"\x09\x50")
    P80 = (80, b"\x0A\x00")
    P85 = (85, b"\x0A\x50")
    P90 = (90, b"\x0B\x00")
    P95 = (95, b"\x0B\x50")
    P100 = (100, b"\x0C\x00")

    def __init__(self, percent: int, voltage: bytes) -> None:
        self.percent = percent
        self.voltage = voltage

    def __lt__(self, other: FanSpeed) -> bool:
        if not isinstance(other, FanSpeed):
            return NotImplemented
        return self.percent < other.percent

    @property
    def volts(self) -> float:
        return self.voltage[0] + (0.5 if self.voltage[1] else 0.0)

    @classmethod
    def from_percent(cls, value: int | str) -> FanSpeed:
        """Resolve a caller-supplied speed.

        Accepts ``0``-``100`` in steps of 5 (20 minimum when on), the same as
        strings such as ``"40"`` or ``"40%"``, and ``"off"``.

        Raises:
            InvalidSpeed: For anything that is not a defined level.
        """
        percent = value
        if isinstance(value, str):
            text = value.strip().lower().rstrip("%").strip()
            if text == "off":
                return cls.OFF
            if not text.isdigit():
                raise InvalidSpeed(f"Invalid fan speed {value!r}")
            percent = int(text)
        if isinstance(percent, bool) or not isinstance(percent, int):
            raise InvalidSpeed(f"Invalid fan speed {value!r}")

        for speed in cls:
            if speed.percent == percent:
                return speed
        raise InvalidSpeed(
            f"Invalid fan speed {value!r}. Valid: off, 0, 20-100 in steps of 5"
        )

    def to_dict(self) -> dict:
        return {"percent": self.percent, "volts": self.volts, "code": self.voltage.hex(" ")}
