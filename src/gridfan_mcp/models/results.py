"""Aggregated results of multi-step operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from ..errors import ExitStatus
from ..protocol.parser import FanOutcome, PingStatus
from .speed import FanSpeed

_BATCH_STATUS_ORDER = (
    (FanOutcome.DEVICE_UNAVAILABLE, ExitStatus.DEVICE_UNAVAILABLE),
    (FanOutcome.TRANSMIT_FAILURE, ExitStatus.TRANSMIT_FAILURE),
    (FanOutcome.NO_RESPONSE, ExitStatus.TIMEOUT),
    (FanOutcome.INVALID_REPLY, ExitStatus.INVALID_REPLY),
)


@dataclass
class SpeedBatchResult:
    """Per-fan outcomes of one set-speed batch."""

    speed: FanSpeed
    outcomes: dict[int, FanOutcome] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return all(o is FanOutcome.OK for o in self.outcomes.values())

    @property
    def failed_ids(self) -> list[int]:
        return [fan for fan, o in self.outcomes.items() if o is not FanOutcome.OK]

    @property
    def exit_status(self) -> ExitStatus:
        """The most severe failure class in the batch."""
        seen = set(self.outcomes.values())
        for outcome, status in _BATCH_STATUS_ORDER:
            if outcome in seen:
                return status
        return ExitStatus.SUCCESS

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "status": self.exit_status.name,
            "percent": self.speed.percent,
            "fans": {str(fan): o.value for fan, o in self.outcomes.items()},
        }


class SyncState(Enum):
    IDLE = "idle"
    KNOCKING = "knocking"
    PROBING = "probing"
    SYNCED = "synced"
    FAILED = "failed"


@dataclass
class SyncResult:
    """Final state of a synchronization run and the per-attempt history."""

    state: SyncState
    attempts: int = 0
    history: list[PingStatus] = field(default_factory=list)

    @property
    def synced(self) -> bool:
        return self.state is SyncState.SYNCED

    def to_dict(self) -> dict:
        return {
            "synced": self.synced,
            "attempts": self.attempts,
            "history": [s.value for s in self.history],
        }
