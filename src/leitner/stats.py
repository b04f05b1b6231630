"""Study statistics: box distribution, review history and today's counters."""
from datetime import date, timedelta
from typing import Optional

from leitner.config import SrsSettings, read_settings
from leitner.db import get_connection
from leitner.intervals import BoxIntervalTable
from leitner.models import Scope
from leitner.scope import resolve_scope
from leitner.selector import remaining_allowance
from leitner.store import get_counters, get_positions


def box_distribution(
    db_path: str,
    user_id: int,
    scope: Optional[Scope] = None,
    table: Optional[BoxIntervalTable] = None,
) -> dict[int, int]:
    """Count cards per box, with every box from 1 to the last present.

    Without a scope only live cards the user has rated are counted. With a
    scope, unrated cards in it are counted in box 1.
    """
    table = table or BoxIntervalTable()
    distribution = {box: 0 for box in range(1, table.max_box + 1)}
    conn = get_connection(db_path)
    try:
        if scope is None:
            rows = conn.execute(
                """SELECT p.current_box, COUNT(*) AS n FROM card_box_positions p
                JOIN cards c ON p.card_id = c.id
                JOIN decks d ON c.deck_id = d.id
                WHERE p.user_id = ? AND d.user_id = p.user_id
                AND c.deleted_at IS NULL AND d.deleted_at IS NULL
                GROUP BY p.current_box""",
                (user_id,),
            ).fetchall()
            for r in rows:
                distribution[r["current_box"]] = r["n"]
        else:
            card_ids = resolve_scope(conn, user_id, scope)
            positions = get_positions(conn, user_id, card_ids)
            for card_id in card_ids:
                box = positions[card_id].current_box if card_id in positions else 1
                distribution[box] = distribution.get(box, 0) + 1
    finally:
        conn.close()
    return distribution


def reviews_past_days(db_path: str, user_id: int, today: date, days: int = 7) -> list[int]:
    """Reviews per day for the `days` days ending on `today`, oldest first."""
    start = today - timedelta(days=days - 1)
    conn = get_connection(db_path)
    rows = conn.execute(
        """SELECT review_day, COUNT(*) AS n FROM review_log
        WHERE user_id = ? AND review_day BETWEEN ? AND ?
        GROUP BY review_day""",
        (user_id, start.isoformat(), today.isoformat()),
    ).fetchall()
    conn.close()
    counts = {r["review_day"]: r["n"] for r in rows}
    return [counts.get((start + timedelta(days=i)).isoformat(), 0) for i in range(days)]


def today_summary(db_path: str, user_id: int, today: date, default: Optional[SrsSettings] = None) -> dict:
    conn = get_connection(db_path)
    settings = read_settings(conn, user_id, default)
    counters = get_counters(conn, user_id, today)
    conn.close()
    new_left, review_left = remaining_allowance(counters, settings)
    return {
        "day": today.isoformat(),
        "new_cards_consumed": counters.new_cards_consumed,
        "reviews_consumed": counters.reviews_consumed,
        "new_cards_remaining": new_left,
        "reviews_remaining": review_left,
        "new_cards_per_day": settings.new_cards_per_day,
        "max_reviews_per_day": settings.max_reviews_per_day,
    }
