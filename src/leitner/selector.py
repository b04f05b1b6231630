"""Due card selection under the daily new/review caps."""
import logging
import random
import sqlite3
from datetime import date
from itertools import zip_longest
from typing import Iterable, Optional

from leitner.config import BATCH_SIZE, SrsSettings, read_settings
from leitner.db import get_connection
from leitner.errors import DailyLimitExceededError
from leitner.hierarchy import card_creation_order
from leitner.models import CardBoxPosition, DailyCounters, QueueMix, ReviewOrder, Scope
from leitner.scope import resolve_scope
from leitner.store import get_counters, get_positions

logger = logging.getLogger(__name__)


def partition_due(
    conn: sqlite3.Connection,
    user_id: int,
    card_ids: Iterable[int],
    today: date,
) -> tuple[list[CardBoxPosition], list[CardBoxPosition]]:
    """Split cards into (new, review) partitions, without any cap.

    New cards have never been rated (no stored position, or review_count 0).
    Review cards have been rated and are due on or before `today`. Cards
    that are neither are left out.
    """
    card_ids = sorted(set(card_ids))
    stored = get_positions(conn, user_id, card_ids)
    new, review = [], []
    for card_id in card_ids:
        position = stored.get(card_id) or CardBoxPosition.new(user_id, card_id, today)
        if position.is_new:
            new.append(position)
        elif position.is_due(today):
            review.append(position)
    return new, review


def remaining_allowance(counters: DailyCounters, settings: SrsSettings) -> tuple[int, int]:
    """(new, review) cards the user may still study today, never negative."""
    return (
        max(0, settings.new_cards_per_day - counters.new_cards_consumed),
        max(0, settings.max_reviews_per_day - counters.reviews_consumed),
    )


def check_daily_allowance(
    conn: sqlite3.Connection,
    user_id: int,
    is_new: bool,
    day: date,
    settings: SrsSettings,
) -> None:
    """Raise DailyLimitExceededError if one more new/review card would break the cap."""
    counters = get_counters(conn, user_id, day)
    new_left, review_left = remaining_allowance(counters, settings)
    if is_new and new_left == 0:
        raise DailyLimitExceededError("new card", settings.new_cards_per_day, counters.new_cards_consumed)
    if not is_new and review_left == 0:
        raise DailyLimitExceededError("review", settings.max_reviews_per_day, counters.reviews_consumed)


def _reviewed_key(position: CardBoxPosition) -> tuple:
    # Never-reviewed cards sort ahead of reviewed ones.
    if position.last_reviewed_at is None:
        return (0, "")
    return (1, position.last_reviewed_at.isoformat())


def order_positions(
    positions: list[CardBoxPosition],
    review_order: ReviewOrder,
    creation: dict[int, tuple],
    rng: random.Random,
) -> list[CardBoxPosition]:
    """Order one partition. Sorting by card id first keeps ties deterministic."""
    ordered = sorted(positions, key=lambda p: p.card_id)
    review_order = ReviewOrder(review_order)
    if review_order is ReviewOrder.RANDOM:
        rng.shuffle(ordered)
    elif review_order is ReviewOrder.OLDEST_FIRST:
        ordered.sort(key=lambda p: (p.due_date, _reviewed_key(p), creation.get(p.card_id, ("", p.card_id))))
    else:
        ordered.sort(key=lambda p: creation.get(p.card_id, ("", p.card_id))[0], reverse=True)
    return ordered


def merge_partitions(new: list[int], review: list[int], queue_mix: QueueMix) -> list[int]:
    queue_mix = QueueMix(queue_mix)
    if queue_mix is QueueMix.NEW_FIRST:
        return new + review
    if queue_mix is QueueMix.REVIEW_FIRST:
        return review + new
    merged = []
    for new_id, review_id in zip_longest(new, review):
        if new_id is not None:
            merged.append(new_id)
        if review_id is not None:
            merged.append(review_id)
    return merged


def select_due_in(
    conn: sqlite3.Connection,
    user_id: int,
    scope: Scope,
    today: date,
    review_order: Optional[ReviewOrder] = None,
    *,
    settings: Optional[SrsSettings] = None,
    rng: Optional[random.Random] = None,
    batch_size: int = BATCH_SIZE,
) -> list[int]:
    """Same as select_due, on an already open connection."""
    settings = settings or read_settings(conn, user_id)
    rng = rng or random.Random()
    review_order = ReviewOrder(review_order or settings.review_order)

    card_ids = resolve_scope(conn, user_id, scope)
    new, review = partition_due(conn, user_id, card_ids, today)
    new_left, review_left = remaining_allowance(get_counters(conn, user_id, today), settings)

    creation = {}
    if review_order is not ReviewOrder.RANDOM:
        creation = card_creation_order(conn, card_ids)
    new = order_positions(new, review_order, creation, rng)[:new_left]
    review = order_positions(review, review_order, creation, rng)[:review_left]

    queue = merge_partitions([p.card_id for p in new], [p.card_id for p in review], settings.queue_mix)
    queue = queue[:batch_size]
    logger.debug(
        "event=select_due user_id=%s scope=%s in_scope=%d new=%d review=%d selected=%d",
        user_id, scope, len(card_ids), len(new), len(review), len(queue),
    )
    return queue


def select_due(
    db_path: str,
    user_id: int,
    scope: Scope,
    today: date,
    review_order: Optional[ReviewOrder] = None,
    *,
    settings: Optional[SrsSettings] = None,
    rng: Optional[random.Random] = None,
    batch_size: int = BATCH_SIZE,
) -> list[int]:
    """Return the ordered card ids to study in `scope` on `today`.

    Args:
        db_path: Path to the SQLite database.
        user_id: The studying user.
        scope: Deck or folder to draw cards from.
        today: The user's local calendar date.
        review_order: Overrides the user's preferred ordering when given.
        settings: The user's SrsSettings; read from the database when omitted.
        rng: Random source for RANDOM ordering. Pass a seeded one for
            reproducible queues.
        batch_size: Upper bound on the length of the returned queue.

    Returns:
        Card ids, at most the remaining new allowance of new cards plus at
        most the remaining review allowance of review cards, merged according
        to the user's queue mix.
    """
    conn = get_connection(db_path)
    try:
        return select_due_in(
            conn, user_id, scope, today, review_order,
            settings=settings, rng=rng, batch_size=batch_size,
        )
    finally:
        conn.close()
