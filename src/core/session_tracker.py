"""
Session Tracker

Reconstructs play sessions from successive player snapshots.

State Machine:
    INACTIVE -> ACTIVE -> INACTIVE
                  |  ^
                  +--+ (same activity key: duration extended)

- INACTIVE -> ACTIVE: a snapshot carries an activity key; session starts
  at that snapshot's capture time
- ACTIVE -> ACTIVE, same key: duration = capture time - start
- ACTIVE -> INACTIVE: the duration reached at the last active snapshot is
  folded into the running mean of completed sessions
- ACTIVE -> ACTIVE, different key: the old session closes and a new one
  opens in the same update

Only the fast tier feeds this tracker. Snapshots with the error marker are
ignored so a failed poll never ends a session. Precision is one polling
interval: boundaries are observed, not measured.
"""

import logging
import threading
from collections.abc import Callable
from datetime import datetime
from enum import Enum

from models.session_record import SessionRecord
from models.snapshots import PlayerSnapshot, utcnow

logger = logging.getLogger(__name__)


class SessionState(Enum):
    INACTIVE = "inactive"
    ACTIVE = "active"


class SessionTracker:
    """
    Usage:
        tracker = SessionTracker()
        tracker.on_session_ended = lambda record: print(record.last_duration_minutes)
        record = tracker.update(player_snapshot)
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._reset_state()

        # Callbacks, invoked outside the lock
        self.on_session_started: Callable[[SessionRecord], None] | None = None
        self.on_session_ended: Callable[[SessionRecord], None] | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state == SessionState.ACTIVE

    def current(self) -> SessionRecord:
        """Copy of the current session state."""
        with self._lock:
            return self._snapshot()

    def update(self, player: PlayerSnapshot) -> SessionRecord:
        """Apply one fast-tier player snapshot and return the resulting record."""
        if player.has_error:
            return self.current()

        now = player.captured_at
        key = player.activity_key
        ended: SessionRecord | None = None
        started: SessionRecord | None = None

        with self._lock:
            if self.is_active and key != self._activity_key:
                ended = self._close(now)

            if key is not None:
                if self.is_active:
                    self._current_minutes = _minutes_between(self._started_at, now)
                else:
                    self._open(key, player.current_game_name, now)
                    started = self._snapshot()

            record = self._snapshot()

        self._notify(ended, started)
        return record

    def close(self, now: datetime | None = None) -> SessionRecord:
        """Finish any active session, e.g. when the engine stops."""
        ended = None
        with self._lock:
            if self.is_active:
                ended = self._close(now or utcnow())
            record = self._snapshot()
        self._notify(ended, None)
        return record

    def reset(self):
        with self._lock:
            self._reset_state()

    def _reset_state(self):
        self._state = SessionState.INACTIVE
        self._activity_key = None
        self._activity_name = ""
        self._started_at = None
        self._current_minutes = 0.0
        self._completed = 0
        self._average_minutes = 0.0
        self._total_minutes = 0.0
        self._last_key = None
        self._last_name = ""
        self._last_ended_at = None
        self._last_minutes = 0.0

    def _open(self, key: str, name: str, now: datetime):
        self._state = SessionState.ACTIVE
        self._activity_key = key
        self._activity_name = name
        self._started_at = now
        self._current_minutes = 0.0
        logger.info(f"Session started: {name or key}", extra={"activity_key": key})

    def _close(self, now: datetime) -> SessionRecord:
        duration = self._current_minutes
        self._completed += 1
        self._average_minutes += (duration - self._average_minutes) / self._completed
        self._total_minutes += duration

        self._last_key = self._activity_key
        self._last_name = self._activity_name
        self._last_ended_at = now
        self._last_minutes = duration

        logger.info(
            f"Session ended: {self._activity_name or self._activity_key} "
            f"after {duration:.1f} min (average {self._average_minutes:.1f} min "
            f"over {self._completed} sessions)",
            extra={"activity_key": self._activity_key, "duration_minutes": duration},
        )

        self._state = SessionState.INACTIVE
        self._activity_key = None
        self._activity_name = ""
        self._started_at = None
        self._current_minutes = 0.0
        return self._snapshot()

    def _snapshot(self) -> SessionRecord:
        return SessionRecord(
            is_active=self.is_active,
            activity_key=self._activity_key,
            activity_name=self._activity_name,
            started_at=self._started_at,
            current_duration_minutes=self._current_minutes,
            average_duration_minutes=self._average_minutes,
            completed_sessions=self._completed,
            total_tracked_minutes=self._total_minutes,
            last_activity_key=self._last_key,
            last_activity_name=self._last_name,
            last_ended_at=self._last_ended_at,
            last_duration_minutes=self._last_minutes,
        )

    def _notify(self, ended: SessionRecord | None, started: SessionRecord | None):
        for callback, record in ((self.on_session_ended, ended), (self.on_session_started, started)):
            if callback is None or record is None:
                continue
            try:
                callback(record)
            except Exception as e:
                logger.error(f"Session callback failed: {e}", exc_info=True)


def _minutes_between(start: datetime | None, end: datetime) -> float:
    if start is None:
        return 0.0
    return max(0.0, (end - start).total_seconds() / 60.0)
