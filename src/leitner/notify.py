"""Due-card counts for the daily reminder."""
import logging
from datetime import date, datetime
from typing import Callable, Optional

from leitner.config import SrsSettings, read_settings, user_today
from leitner.db import get_connection
from leitner.hierarchy import list_user_card_ids, list_user_ids
from leitner.selector import partition_due

logger = logging.getLogger(__name__)


def count_due_cards(
    db_path: str,
    user_id: int,
    today: Optional[date] = None,
    default: Optional[SrsSettings] = None,
) -> int:
    """Number of new plus due review cards across all of the user's decks.

    Daily caps are not applied. `today` defaults to the user's local date.
    """
    conn = get_connection(db_path)
    try:
        if today is None:
            today = user_today(read_settings(conn, user_id, default))
        new, review = partition_due(conn, user_id, list_user_card_ids(conn, user_id), today)
    finally:
        conn.close()
    return len(new) + len(review)


def dispatch_reminders(
    db_path: str,
    notify: Callable[[int, int], None],
    *,
    now: Optional[datetime] = None,
    default: Optional[SrsSettings] = None,
) -> int:
    """Call `notify(user_id, due_count)` for every user who has cards due.

    Users with notifications turned off are skipped. Returns the number of
    calls made.
    """
    conn = get_connection(db_path)
    try:
        pending = []
        for user_id in list_user_ids(conn):
            settings = read_settings(conn, user_id, default)
            if settings.notification_enabled:
                pending.append((user_id, user_today(settings, now)))
    finally:
        conn.close()

    sent = 0
    for user_id, today in pending:
        due = count_due_cards(db_path, user_id, today)
        if due == 0:
            continue
        notify(user_id, due)
        sent += 1
        logger.info("event=reminder_sent user_id=%s due=%d", user_id, due)
    return sent
