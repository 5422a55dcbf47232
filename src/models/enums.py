"""
Enumerations for request outcomes, snapshot status and scheduling tiers
"""

from enum import Enum


class OutcomeKind(str, Enum):
    """Classification of one API call"""

    SUCCESS = "success"
    TRANSIENT = "transient"
    RATE_LIMITED = "rate_limited"
    FATAL = "fatal"

    @property
    def is_retryable(self) -> bool:
        return self in (OutcomeKind.TRANSIENT, OutcomeKind.RATE_LIMITED)


class SnapshotStatus(str, Enum):
    """Overall status of a published composite snapshot"""

    ONLINE = "Online"
    OFFLINE = "Offline"
    ERROR = "Error"


class Tier(str, Enum):
    """Polling tiers, fastest first"""

    FAST = "fast"
    MEDIUM = "medium"
    SLOW = "slow"


class Domain(str, Enum):
    """Data domains, each owned by exactly one collector"""

    PLAYER = "player"
    SOCIAL = "social"
    LIBRARY = "library"
    ACHIEVEMENTS = "achievements"


class PersonaState(int, Enum):
    """Steam persona states as reported by GetPlayerSummaries"""

    OFFLINE = 0
    ONLINE = 1
    BUSY = 2
    AWAY = 3
    SNOOZE = 4
    LOOKING_TO_TRADE = 5
    LOOKING_TO_PLAY = 6

    @classmethod
    def label(cls, value: int | None) -> str:
        """Human readable name for a raw persona state value."""
        labels = {
            cls.OFFLINE: "Offline",
            cls.ONLINE: "Online",
            cls.BUSY: "Busy",
            cls.AWAY: "Away",
            cls.SNOOZE: "Snooze",
            cls.LOOKING_TO_TRADE: "Looking to trade",
            cls.LOOKING_TO_PLAY: "Looking to play",
        }
        try:
            return labels[cls(value)]
        except ValueError:
            return "Unknown"
