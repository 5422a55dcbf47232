"""
Tests for SessionTracker
"""

from datetime import UTC, datetime, timedelta

import pytest

from core.session_tracker import SessionState, SessionTracker
from models.enums import OutcomeKind
from models.snapshots import PlayerSnapshot

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)
GAMES = {"A": (620, "Portal 2"), "B": (220, "Half-Life 2")}


def observe(minute: float, game: str | None) -> PlayerSnapshot:
    app_id, name = GAMES[game] if game else (0, "")
    return PlayerSnapshot(
        captured_at=T0 + timedelta(minutes=minute),
        player_name="Gordon",
        persona_state=1,
        online_state="Online",
        current_game_name=name,
        current_game_app_id=app_id,
    )


@pytest.fixture
def tracker():
    return SessionTracker()


class TestSessionLifecycle:
    def test_starts_inactive(self, tracker):
        record = tracker.current()
        assert tracker.state == SessionState.INACTIVE
        assert not record.is_active
        assert record.completed_sessions == 0

    def test_session_opens_on_first_activity(self, tracker):
        record = tracker.update(observe(0, "A"))

        assert record.is_active
        assert record.activity_key == "620"
        assert record.activity_name == "Portal 2"
        assert record.started_at == T0
        assert record.current_duration_minutes == 0.0

    def test_same_activity_extends_duration(self, tracker):
        tracker.update(observe(0, "A"))
        record = tracker.update(observe(3, "A"))

        assert record.is_active
        assert record.current_duration_minutes == pytest.approx(3.0)
        assert record.started_at == T0

    def test_observed_sequence(self, tracker):
        """A, A, A, idle, B: A lasted two intervals, B has just started."""
        for minute, game in enumerate(["A", "A", "A", None, "B"]):
            record = tracker.update(observe(minute, game))

        assert record.completed_sessions == 1
        assert record.last_activity_key == "620"
        assert record.last_duration_minutes == pytest.approx(2.0)
        assert record.average_duration_minutes == pytest.approx(2.0)
        assert record.last_ended_at == T0 + timedelta(minutes=3)
        assert record.is_active
        assert record.activity_key == "220"
        assert record.current_duration_minutes == pytest.approx(0.0)

    def test_direct_switch_closes_and_opens(self, tracker):
        tracker.update(observe(0, "A"))
        tracker.update(observe(5, "A"))
        record = tracker.update(observe(6, "B"))

        assert record.completed_sessions == 1
        assert record.last_duration_minutes == pytest.approx(5.0)
        assert record.activity_key == "220"
        assert record.started_at == T0 + timedelta(minutes=6)

    def test_average_is_running_mean(self, tracker):
        timeline = [(0, "A"), (10, "A"), (11, None), (20, "B"), (40, "B"), (41, None)]
        for minute, game in timeline:
            record = tracker.update(observe(minute, game))

        assert record.completed_sessions == 2
        assert record.average_duration_minutes == pytest.approx(15.0)
        assert record.total_tracked_minutes == pytest.approx(30.0)
        assert not record.is_active

    def test_error_snapshot_does_not_end_session(self, tracker):
        tracker.update(observe(0, "A"))
        failed = PlayerSnapshot.failed(
            "timed out", T0 + timedelta(minutes=1), OutcomeKind.TRANSIENT
        )

        record = tracker.update(failed)

        assert record.is_active
        assert record.completed_sessions == 0

    def test_close_finishes_active_session(self, tracker):
        tracker.update(observe(0, "A"))
        tracker.update(observe(4, "A"))

        record = tracker.close(T0 + timedelta(minutes=5))

        assert not record.is_active
        assert record.completed_sessions == 1
        assert record.last_duration_minutes == pytest.approx(4.0)

    def test_close_when_idle_is_noop(self, tracker):
        record = tracker.close()
        assert record.completed_sessions == 0

    def test_reset(self, tracker):
        tracker.update(observe(0, "A"))
        tracker.reset()
        assert not tracker.is_active
        assert tracker.current().activity_key is None


class TestSessionCallbacks:
    def test_callbacks_fire_on_transitions(self, tracker):
        started, ended = [], []
        tracker.on_session_started = started.append
        tracker.on_session_ended = ended.append

        tracker.update(observe(0, "A"))
        tracker.update(observe(2, "A"))
        tracker.update(observe(3, "B"))

        assert [r.activity_key for r in started] == ["620", "220"]
        assert len(ended) == 1
        assert ended[0].last_activity_key == "620"
        assert ended[0].last_duration_minutes == pytest.approx(2.0)

    def test_failing_callback_is_contained(self, tracker):
        def broken(_record):
            raise RuntimeError("subscriber bug")

        tracker.on_session_started = broken

        record = tracker.update(observe(0, "A"))

        assert record.is_active
