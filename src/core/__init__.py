"""Core module - scheduling, aggregation and session tracking"""

from .aggregator import Aggregator
from .session_tracker import SessionState, SessionTracker
from .snapshot_channel import SnapshotChannel
from .tiered_scheduler import TieredScheduler, TierRuntime, TierSpec, TierState, next_tick

__all__ = [
    "Aggregator",
    "SessionState",
    "SessionTracker",
    "SnapshotChannel",
    "TieredScheduler",
    "TierRuntime",
    "TierSpec",
    "TierState",
    "next_tick",
]
