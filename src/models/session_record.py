"""
Session record - read-only copy of the session tracker's state
"""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class SessionRecord:
    """
    Derived session state at one point in time.

    Durations are in minutes and only as precise as the polling cadence:
    start and end are observed at the first poll that sees the change.
    """

    is_active: bool = False
    activity_key: str | None = None
    activity_name: str = ""
    started_at: datetime | None = None
    current_duration_minutes: float = 0.0
    average_duration_minutes: float = 0.0
    completed_sessions: int = 0
    total_tracked_minutes: float = 0.0
    last_activity_key: str | None = None
    last_activity_name: str = ""
    last_ended_at: datetime | None = None
    last_duration_minutes: float = 0.0

    def to_dict(self) -> dict:
        """Convert to dictionary for logging."""
        return {
            "is_active": self.is_active,
            "activity_key": self.activity_key,
            "activity_name": self.activity_name,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "current_duration_minutes": round(self.current_duration_minutes, 2),
            "average_duration_minutes": round(self.average_duration_minutes, 2),
            "completed_sessions": self.completed_sessions,
        }
