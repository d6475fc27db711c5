"""Bring a freshly powered controller into a predictable state.

After power-up the controller ignores or garbles the first commands it
sees. Each sync cycle first "knocks" with a burst of throwaway pings, then
sends one real ping and checks the reply. Cycles repeat until the device
answers correctly or the attempt ceiling is hit.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from .errors import TransmitFailure
from .models.results import SyncResult, SyncState
from .protocol.commands import Command, build_ping
from .protocol.engine import CommandEngine
from .protocol.parser import PingStatus, parse_ping
from .transport.serial_connection import SerialConnection

logger = logging.getLogger(__name__)

KNOCK_COUNT = 7
KNOCK_INTERVAL = 0.1  # seconds between knocks
MAX_SYNC_ATTEMPTS = 30

AttemptCallback = Callable[[int, PingStatus], None]


class Synchronizer:
    """Knock-then-ping state machine.

    ``IDLE -> KNOCKING -> PROBING -> SYNCED``, looping back to
    ``KNOCKING`` on any bad ping reply until ``max_attempts`` is reached,
    at which point the state is ``FAILED``.
    """

    def __init__(
        self,
        connection: SerialConnection,
        engine: CommandEngine | None = None,
        knocks: int = KNOCK_COUNT,
        knock_interval: float = KNOCK_INTERVAL,
        max_attempts: int = MAX_SYNC_ATTEMPTS,
    ) -> None:
        self._connection = connection
        self._engine = engine or CommandEngine(connection)
        self._knocks = knocks
        self._knock_interval = knock_interval
        self._max_attempts = max_attempts
        self.state = SyncState.IDLE

    def _knock(self) -> None:
        self.state = SyncState.KNOCKING
        knock = build_ping()
        for _ in range(self._knocks):
            self._connection.flush_inbound()
            try:
                self._connection.write(knock)
            except TransmitFailure as e:
                logger.debug("Knock not sent: %s", e)
            time.sleep(self._knock_interval)
        self._connection.flush_inbound()

    def _ping(self) -> PingStatus:
        self.state = SyncState.PROBING
        return parse_ping(self._engine.send(Command.PING))

    def run(self, on_attempt: Optional[AttemptCallback] = None) -> SyncResult:
        """Run sync cycles until the device answers or attempts run out.

        Args:
            on_attempt: Called with ``(attempt, status)`` after every ping,
                so callers can show progress.
        """
        self.state = SyncState.IDLE
        self._connection.configure_once()
        result = SyncResult(state=self.state)

        for attempt in range(1, self._max_attempts + 1):
            self._knock()
            status = self._ping()
            result.attempts = attempt
            result.history.append(status)
            if on_attempt is not None:
                on_attempt(attempt, status)

            if status is PingStatus.OK:
                self.state = SyncState.SYNCED
                logger.info("Controller synced after %d attempt(s)", attempt)
                break
            logger.info("Sync attempt %d/%d: %s", attempt, self._max_attempts, status.value)
        else:
            self.state = SyncState.FAILED
            logger.warning("Controller did not sync after %d attempts", self._max_attempts)

        result.state = self.state
        return result
