# tests/test_models.py
"""Tests for data model classes."""
from datetime import date, datetime, timezone

from leitner.models import (
    CardBoxPosition,
    CounterKind,
    Rating,
    RatingEvent,
    Scope,
    ScopeType,
    SessionKind,
    SessionState,
    SessionStatus,
)

TODAY = date(2025, 1, 10)
NOW = datetime(2025, 1, 10, 12, 0, tzinfo=timezone.utc)


def test_new_position_defaults():
    p = CardBoxPosition.new(1, 2, TODAY)
    assert p.current_box == 1
    assert p.due_date == TODAY
    assert p.review_count == 0
    assert p.lapse_count == 0
    assert p.last_reviewed_at is None
    assert p.is_new
    assert p.is_due(TODAY)


def test_position_is_due():
    p = CardBoxPosition(1, 2, date(2025, 1, 12), current_box=3, review_count=1)
    assert not p.is_new
    assert not p.is_due(TODAY)
    assert p.is_due(date(2025, 1, 12))


def test_scope_constructors():
    assert Scope.deck(3) == Scope(ScopeType.DECK, 3)
    assert Scope.folder(3).kind is ScopeType.FOLDER
    assert Scope.deck(3) != Scope.folder(3)


def test_rating_event_previous_position():
    event = RatingEvent(
        user_id=1, card_id=2, rating=Rating.GOOD,
        previous_box=4, previous_interval_days=7, previous_due_date=TODAY,
        previous_review_count=3, previous_lapse_count=1, previous_last_reviewed_at=NOW,
        previous_existed=True, counter_day=TODAY, counter_kind=CounterKind.REVIEW, applied_at=NOW,
    )
    assert event.previous_position() == CardBoxPosition(
        1, 2, TODAY, current_box=4, interval_days=7, review_count=3, lapse_count=1, last_reviewed_at=NOW
    )


def test_session_state_progress():
    s = SessionState(
        session_id="s", user_id=1, scope=Scope.deck(1), kind=SessionKind.REVIEW,
        queue=[5, 6, 7], started_at=NOW, status=SessionStatus.IN_PROGRESS,
    )
    assert s.total == 3
    assert s.current_card_id == 5
    s.cursor = 2
    assert s.remaining == 1
    assert s.progress == (2, 3)
    assert s.current_card_id == 7
    s.cursor = 3
    assert s.current_card_id is None


def test_session_not_started_has_no_current_card():
    s = SessionState(
        session_id="s", user_id=1, scope=Scope.deck(1), kind=SessionKind.CRAM, queue=[5], started_at=NOW,
    )
    assert s.status is SessionStatus.NOT_STARTED
    assert s.current_card_id is None
    assert s.apply_to_srs is True
