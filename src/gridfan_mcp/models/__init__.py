"""Data models for fan speeds and operation results."""

from .speed import FanSpeed
from .results import SpeedBatchResult, SyncResult, SyncState
