# tests/test_integration.py
"""End-to-end test of the core workflow."""
import random
from datetime import date, timedelta

from leitner.config import EngineConfig
from leitner.cram import CramEngine, CramFilters
from leitner.db import get_connection
from leitner.models import ReviewOrder, Scope, SessionStatus
from leitner.notify import count_due_cards
from leitner.sessions import ReviewSessionEngine
from leitner.stats import box_distribution, reviews_past_days
from leitner.store import get_position


def test_week_of_study(library, clock):
    """Study a deck over several days and check boxes, due dates and counts line up."""
    db, alice = library["db_path"], library["alice"]
    engine = ReviewSessionEngine(db, EngineConfig(), rng=random.Random(5), clock=clock)
    verbs = Scope.deck(library["verbs"])
    cards = library["verb_cards"]

    # Day 1: every card is new; boxes 1 and 2 are due again the same day.
    session = engine.start(alice, verbs, ReviewOrder.OLDEST_FIRST)
    for card_id in cards:
        engine.submit_rating(session.session_id, card_id, "good")
    assert session.status is SessionStatus.COMPLETED
    assert count_due_cards(db, alice, clock.now.date()) == 10

    # Same day, second pass: GOOD moves box 2 -> 3 (3 days).
    session = engine.start(alice, verbs, ReviewOrder.OLDEST_FIRST)
    assert sorted(session.queue) == cards
    for card_id in list(session.queue):
        engine.submit_rating(session.session_id, card_id, "good")
    day1 = clock.now.date()
    conn = get_connection(db)
    assert all(get_position(conn, alice, c).due_date == day1 + timedelta(days=3) for c in cards)
    conn.close()

    # Nothing in the deck is due until day 4.
    assert engine.start(alice, verbs).total == 0
    clock.advance(days=3)
    session = engine.start(alice, verbs, ReviewOrder.OLDEST_FIRST)
    assert session.total == 5

    ratings = ["again", "hard", "good", "easy", "good"]
    for card_id, rating in zip(list(session.queue), ratings):
        engine.submit_rating(session.session_id, card_id, rating)
    assert box_distribution(db, alice, verbs) == {1: 1, 2: 0, 3: 0, 4: 3, 5: 1, 6: 0, 7: 0}

    # Cram practice on the same day does not move anything.
    cram = CramEngine(engine)
    practice = cram.start(alice, verbs, CramFilters(include_learned=True))
    for card_id in list(practice.queue):
        cram.sessions.submit_rating(practice.session_id, card_id, "again")
    assert box_distribution(db, alice, verbs) == {1: 1, 2: 0, 3: 0, 4: 3, 5: 1, 6: 0, 7: 0}

    today = clock.now.date()
    assert today == date(2025, 1, 13)
    assert reviews_past_days(db, alice, today, days=4) == [10, 0, 0, 5]
