"""Row-level reads and writes for scheduling state.

Every function takes an open connection so callers can group several of
them into one transaction (see `leitner.db.transaction`).
"""
import sqlite3
from datetime import date, datetime
from typing import Iterable, Optional

from leitner.models import CardBoxPosition, CounterKind, DailyCounters, Rating, RatingEvent

# Stay well below SQLite's bound-parameter limit for IN (...) lists.
CHUNK_SIZE = 500


def _ts(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def chunked(items: list, size: int = CHUNK_SIZE):
    for start in range(0, len(items), size):
        yield items[start:start + size]


# --- Card box positions ---


def _position_from_row(row: sqlite3.Row) -> CardBoxPosition:
    return CardBoxPosition(
        user_id=row["user_id"],
        card_id=row["card_id"],
        due_date=date.fromisoformat(row["due_date"]),
        current_box=row["current_box"],
        interval_days=row["interval_days"],
        review_count=row["review_count"],
        lapse_count=row["lapse_count"],
        last_reviewed_at=_parse_ts(row["last_reviewed_at"]),
    )


def get_position(conn: sqlite3.Connection, user_id: int, card_id: int) -> Optional[CardBoxPosition]:
    row = conn.execute(
        "SELECT * FROM card_box_positions WHERE user_id = ? AND card_id = ?",
        (user_id, card_id),
    ).fetchone()
    return _position_from_row(row) if row else None


def get_positions(conn: sqlite3.Connection, user_id: int, card_ids: Iterable[int]) -> dict[int, CardBoxPosition]:
    """Stored positions for `card_ids`, keyed by card id. Absent cards are left out."""
    positions = {}
    for chunk in chunked(sorted(set(card_ids))):
        placeholders = ",".join("?" * len(chunk))
        rows = conn.execute(
            f"SELECT * FROM card_box_positions WHERE user_id = ? AND card_id IN ({placeholders})",
            (user_id, *chunk),
        ).fetchall()
        for row in rows:
            positions[row["card_id"]] = _position_from_row(row)
    return positions


def put_position(conn: sqlite3.Connection, position: CardBoxPosition) -> None:
    conn.execute(
        """INSERT INTO card_box_positions
        (user_id, card_id, current_box, interval_days, due_date, review_count, lapse_count, last_reviewed_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(user_id, card_id) DO UPDATE SET
            current_box=excluded.current_box,
            interval_days=excluded.interval_days,
            due_date=excluded.due_date,
            review_count=excluded.review_count,
            lapse_count=excluded.lapse_count,
            last_reviewed_at=excluded.last_reviewed_at""",
        (
            position.user_id,
            position.card_id,
            position.current_box,
            position.interval_days,
            position.due_date.isoformat(),
            position.review_count,
            position.lapse_count,
            _ts(position.last_reviewed_at),
        ),
    )


def delete_position(conn: sqlite3.Connection, user_id: int, card_id: int) -> None:
    conn.execute(
        "DELETE FROM card_box_positions WHERE user_id = ? AND card_id = ?",
        (user_id, card_id),
    )


# --- Rating events (one per user) ---


def get_rating_event(conn: sqlite3.Connection, user_id: int) -> Optional[RatingEvent]:
    row = conn.execute("SELECT * FROM rating_events WHERE user_id = ?", (user_id,)).fetchone()
    if row is None:
        return None
    return RatingEvent(
        user_id=row["user_id"],
        card_id=row["card_id"],
        rating=Rating(row["rating"]),
        previous_box=row["previous_box"],
        previous_interval_days=row["previous_interval_days"],
        previous_due_date=date.fromisoformat(row["previous_due_date"]),
        previous_review_count=row["previous_review_count"],
        previous_lapse_count=row["previous_lapse_count"],
        previous_last_reviewed_at=_parse_ts(row["previous_last_reviewed_at"]),
        previous_existed=bool(row["previous_existed"]),
        counter_day=date.fromisoformat(row["counter_day"]),
        counter_kind=CounterKind(row["counter_kind"]),
        applied_at=_parse_ts(row["applied_at"]),
        review_log_id=row["review_log_id"],
    )


def put_rating_event(conn: sqlite3.Connection, event: RatingEvent) -> None:
    """Store `event` as the user's only rating event, replacing any earlier one."""
    conn.execute(
        """INSERT OR REPLACE INTO rating_events
        (user_id, card_id, rating, previous_box, previous_interval_days, previous_due_date,
         previous_review_count, previous_lapse_count, previous_last_reviewed_at,
         previous_existed, counter_day, counter_kind, applied_at, review_log_id)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            event.user_id,
            event.card_id,
            event.rating.value,
            event.previous_box,
            event.previous_interval_days,
            event.previous_due_date.isoformat(),
            event.previous_review_count,
            event.previous_lapse_count,
            _ts(event.previous_last_reviewed_at),
            int(event.previous_existed),
            event.counter_day.isoformat(),
            event.counter_kind.value,
            _ts(event.applied_at),
            event.review_log_id,
        ),
    )


def delete_rating_event(conn: sqlite3.Connection, user_id: int) -> None:
    conn.execute("DELETE FROM rating_events WHERE user_id = ?", (user_id,))


# --- Daily counters ---

_COUNTER_COLUMNS = {
    CounterKind.NEW: "new_cards_consumed",
    CounterKind.REVIEW: "reviews_consumed",
}


def get_counters(conn: sqlite3.Connection, user_id: int, day: date) -> DailyCounters:
    row = conn.execute(
        "SELECT * FROM daily_counters WHERE user_id = ? AND day = ?",
        (user_id, day.isoformat()),
    ).fetchone()
    if row is None:
        return DailyCounters(user_id=user_id, day=day)
    return DailyCounters(
        user_id=user_id,
        day=day,
        new_cards_consumed=row["new_cards_consumed"],
        reviews_consumed=row["reviews_consumed"],
    )


def increment_counter(conn: sqlite3.Connection, user_id: int, day: date, kind: CounterKind) -> None:
    column = _COUNTER_COLUMNS[CounterKind(kind)]
    conn.execute(
        "INSERT OR IGNORE INTO daily_counters (user_id, day) VALUES (?, ?)",
        (user_id, day.isoformat()),
    )
    conn.execute(
        f"UPDATE daily_counters SET {column} = {column} + 1 WHERE user_id = ? AND day = ?",
        (user_id, day.isoformat()),
    )


def decrement_counter(conn: sqlite3.Connection, user_id: int, day: date, kind: CounterKind) -> None:
    """Take one back from the counter, never going below zero."""
    column = _COUNTER_COLUMNS[CounterKind(kind)]
    conn.execute(
        f"UPDATE daily_counters SET {column} = MAX({column} - 1, 0) WHERE user_id = ? AND day = ?",
        (user_id, day.isoformat()),
    )


# --- Review log ---


def append_review_log(
    conn: sqlite3.Connection,
    user_id: int,
    card_id: int,
    rating: Rating,
    previous_box: int,
    position: CardBoxPosition,
    review_day: date,
    reviewed_at: datetime,
) -> int:
    """Record an applied rating. Returns the new row id."""
    cursor = conn.execute(
        """INSERT INTO review_log
        (user_id, card_id, rating, previous_box, new_box, interval_days, due_date, review_day, reviewed_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            user_id,
            card_id,
            Rating(rating).value,
            previous_box,
            position.current_box,
            position.interval_days,
            position.due_date.isoformat(),
            review_day.isoformat(),
            _ts(reviewed_at),
        ),
    )
    return cursor.lastrowid


def delete_review_log(conn: sqlite3.Connection, log_id: int) -> None:
    conn.execute("DELETE FROM review_log WHERE id = ?", (log_id,))
