from datetime import datetime, timedelta, timezone

import pytest

from leitner.db import get_connection, init_db, transaction
from leitner.library import add_card, add_deck, add_folder, add_user
from leitner.models import CardBoxPosition
from leitner.store import put_position

NOW = datetime(2025, 1, 10, 12, 0, tzinfo=timezone.utc)
TODAY = NOW.date()


class FakeClock:
    """Callable clock for the session engine; tests move it by hand."""

    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_leitner.db")
    return db_path


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def library(tmp_db):
    """Two users and a small folder tree.

    alice: Languages/ (Nouns deck: 3 cards)
               Spanish/ (Verbs deck: 5 cards)
           Loose deck (2 cards, no folder)
    bob:   Bob deck (1 card)
    """
    init_db(tmp_db)
    alice = add_user(tmp_db, "alice")
    bob = add_user(tmp_db, "bob")
    languages = add_folder(tmp_db, alice, "Languages")
    spanish = add_folder(tmp_db, alice, "Spanish", languages)
    verbs = add_deck(tmp_db, alice, "Verbs", spanish)
    nouns = add_deck(tmp_db, alice, "Nouns", languages)
    loose = add_deck(tmp_db, alice, "Loose")
    bob_deck = add_deck(tmp_db, bob, "Bob deck")

    base = datetime(2025, 1, 1, tzinfo=timezone.utc)
    verb_cards = [
        add_card(tmp_db, verbs, f"verb {i}", f"meaning {i}", base + timedelta(minutes=i)) for i in range(5)
    ]
    noun_cards = [
        add_card(tmp_db, nouns, f"noun {i}", f"meaning {i}", base + timedelta(minutes=10 + i)) for i in range(3)
    ]
    loose_cards = [
        add_card(tmp_db, loose, f"loose {i}", f"meaning {i}", base + timedelta(minutes=20 + i)) for i in range(2)
    ]
    bob_cards = [add_card(tmp_db, bob_deck, "hola", "hello", base)]
    return {
        "db_path": tmp_db,
        "alice": alice,
        "bob": bob,
        "languages": languages,
        "spanish": spanish,
        "verbs": verbs,
        "nouns": nouns,
        "loose": loose,
        "bob_deck": bob_deck,
        "verb_cards": verb_cards,
        "noun_cards": noun_cards,
        "loose_cards": loose_cards,
        "bob_cards": bob_cards,
    }


@pytest.fixture
def place(tmp_db):
    """Write a card's scheduling state directly, as if it had been reviewed before."""

    def _place(user_id, card_id, box, due_date, review_count=1, lapse_count=0, interval_days=0,
               last_reviewed_at=NOW - timedelta(days=1)):
        position = CardBoxPosition(
            user_id=user_id,
            card_id=card_id,
            due_date=due_date,
            current_box=box,
            interval_days=interval_days,
            review_count=review_count,
            lapse_count=lapse_count,
            last_reviewed_at=last_reviewed_at,
        )
        with transaction(tmp_db) as conn:
            put_position(conn, position)
        return position

    return _place


def dump_state(db_path):
    """Every row of the scheduling tables, for before/after comparisons."""
    conn = get_connection(db_path)
    state = {
        table: [tuple(r) for r in conn.execute(f"SELECT * FROM {table} ORDER BY 1, 2").fetchall()]
        for table in ("card_box_positions", "daily_counters", "rating_events", "review_log")
    }
    conn.close()
    return state


@pytest.fixture
def snapshot(tmp_db):
    return lambda: dump_state(tmp_db)
