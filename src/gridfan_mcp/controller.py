"""High-level fan control built on the command engine."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from .bootstrap import AttemptCallback, Synchronizer
from .errors import DeviceUnavailable, InvalidFanId, SyncFailed
from .models.results import SpeedBatchResult, SyncResult
from .models.speed import FanSpeed
from .protocol.commands import (
    FAN_IDS,
    Command,
    build_read_rpm,
    build_set_speed,
    check_fan_id,
)
from .protocol.engine import CommandEngine
from .protocol.parser import (
    FanOutcome,
    FanTelemetry,
    PingStatus,
    parse_ping,
    parse_rpm,
    parse_set_speed,
)
from .transport.serial_connection import SerialConnection

logger = logging.getLogger(__name__)


def resolve_fan_ids(selection: int | str | Iterable[int | str]) -> list[int]:
    """Normalize a fan selection to a sorted list of unique IDs.

    Accepts ``"all"``, a single ID, a comma separated string such as
    ``"1,3"``, or an iterable of IDs.

    Raises:
        InvalidFanId: If the selection is empty or any ID is outside 1-6.
    """
    if isinstance(selection, str):
        if selection.strip().lower() == "all":
            return list(FAN_IDS)
        selection = selection.replace(",", " ").split()
    elif isinstance(selection, int):
        selection = [selection]

    ids: set[int] = set()
    for item in selection:
        if isinstance(item, str):
            if not item.strip().isdigit():
                raise InvalidFanId(f"Fan ID must be 1-6, got {item!r}")
            item = int(item)
        ids.add(check_fan_id(item))
    if not ids:
        raise InvalidFanId("No fans selected")
    return sorted(ids)


class FanController:
    """Fan telemetry and speed control for one controller.

    Usage::

        with SerialConnection("/dev/ttyACM0") as conn:
            fans = FanController(conn)
            fans.init()
            print(fans.read_fan(1).rpm)
            fans.set_fan_speed([1, 2], 60)
    """

    def __init__(
        self,
        connection: SerialConnection,
        engine: CommandEngine | None = None,
    ) -> None:
        self._connection = connection
        self._engine = engine or CommandEngine(connection)

    @property
    def engine(self) -> CommandEngine:
        return self._engine

    def ping(self) -> PingStatus:
        """Send one liveness check."""
        return parse_ping(self._engine.send(Command.PING))

    def init(
        self,
        on_attempt: Optional[AttemptCallback] = None,
        synchronizer: Synchronizer | None = None,
    ) -> SyncResult:
        """Synchronize with the device.

        Raises:
            SyncFailed: If the device never answered within the attempt ceiling.
        """
        sync = synchronizer or Synchronizer(self._connection, self._engine)
        result = sync.run(on_attempt)
        if not result.synced:
            raise SyncFailed(f"No valid ping reply after {result.attempts} attempts")
        return result

    def read_fan(self, fan_id: int) -> FanTelemetry:
        """Read the current RPM of one fan.

        Raises:
            InvalidFanId: If ``fan_id`` is outside 1-6.
            ResponseTimeout: If the device did not reply.
            TransmitFailure: If the request could not be written.
            InvalidReply: If the reply is not ``C0 00 00 hi lo``.
        """
        request = build_read_rpm(fan_id)
        response = self._engine.request(request[0], request[1:])
        telemetry = parse_rpm(fan_id, response)
        logger.debug("Fan %d: %d RPM", fan_id, telemetry.rpm)
        return telemetry

    def set_fan_speed(
        self,
        fan_ids: int | str | Iterable[int | str],
        percent: int | str | FanSpeed,
    ) -> SpeedBatchResult:
        """Set one speed on several fans.

        Every fan is attempted even if an earlier one fails; check
        :attr:`SpeedBatchResult.ok` for the overall result.

        Raises:
            InvalidFanId: If any fan ID is invalid (before any I/O).
            InvalidSpeed: If ``percent`` is not a defined level (before any I/O).
        """
        ids = resolve_fan_ids(fan_ids)
        speed = percent if isinstance(percent, FanSpeed) else FanSpeed.from_percent(percent)

        result = SpeedBatchResult(speed=speed)
        for fan_id in ids:
            request = build_set_speed(fan_id, speed.voltage)
            try:
                outcome = parse_set_speed(self._engine.send(request[0], request[1:]))
            except DeviceUnavailable as e:
                logger.error("Fan %d: %s", fan_id, e)
                outcome = FanOutcome.DEVICE_UNAVAILABLE
            result.outcomes[fan_id] = outcome
            if outcome is not FanOutcome.OK:
                logger.warning("Setting fan %d to %d%% failed: %s", fan_id, speed.percent, outcome.value)

        return result
