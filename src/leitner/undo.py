"""Single-step undo of the most recent rating."""
import logging
import sqlite3
from datetime import datetime
from typing import Optional

from leitner.config import as_utc, utc_now
from leitner.db import transaction
from leitner.errors import NothingToUndoError, UndoWindowExpiredError
from leitner.models import RatingEvent
from leitner.store import (
    decrement_counter,
    delete_position,
    delete_rating_event,
    delete_review_log,
    get_rating_event,
    put_position,
)

logger = logging.getLogger(__name__)


def revert_last_rating(
    conn: sqlite3.Connection,
    user_id: int,
    *,
    now: Optional[datetime] = None,
    window_seconds: Optional[int] = None,
) -> RatingEvent:
    """Roll back the user's latest rating on `conn` and return its event.

    Restores the card's previous position (or removes it if the card had
    none), gives back one unit of the counter the rating consumed, and drops
    the review log row and the event itself. The caller owns the transaction.
    """
    event = get_rating_event(conn, user_id)
    if event is None:
        raise NothingToUndoError()
    if window_seconds is not None:
        age = as_utc(now or utc_now()) - as_utc(event.applied_at)
        if age.total_seconds() > window_seconds:
            raise UndoWindowExpiredError(window_seconds)

    if event.previous_existed:
        put_position(conn, event.previous_position())
    else:
        delete_position(conn, user_id, event.card_id)
    decrement_counter(conn, user_id, event.counter_day, event.counter_kind)
    if event.review_log_id is not None:
        delete_review_log(conn, event.review_log_id)
    delete_rating_event(conn, user_id)
    return event


def undo_last_review(
    db_path: str,
    user_id: int,
    *,
    now: Optional[datetime] = None,
    window_seconds: Optional[int] = None,
) -> int:
    """Undo the user's most recent rating. Returns the affected card id.

    Raises:
        NothingToUndoError: there is no rating to undo, or it was already undone.
        UndoWindowExpiredError: `window_seconds` is set and the rating is older.
    """
    with transaction(db_path) as conn:
        event = revert_last_rating(conn, user_id, now=now, window_seconds=window_seconds)
    logger.info(
        "event=review_undone user_id=%s card_id=%s rating=%s restored_box=%s",
        user_id, event.card_id, event.rating.value, event.previous_box,
    )
    return event.card_id
