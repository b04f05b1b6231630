"""Cram mode: practise any cards in a scope, regardless of due dates."""
import logging
import random
import sqlite3
from dataclasses import dataclass
from typing import Optional

from leitner.config import CRAM_LIMIT, LEARNED_BOX_THRESHOLD, read_settings, user_today
from leitner.db import get_connection
from leitner.errors import ConfigError
from leitner.models import Scope, SessionKind, SessionState
from leitner.scope import resolve_scope
from leitner.selector import check_daily_allowance
from leitner.sessions import ReviewSessionEngine
from leitner.store import get_positions

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CramFilters:
    """Box filters for a cram session. Unrated cards count as box 1."""
    min_box: Optional[int] = None
    max_box: Optional[int] = None
    include_learned: bool = False

    def validate(self, max_box: int) -> None:
        for name in ("min_box", "max_box"):
            value = getattr(self, name)
            if value is not None and not 1 <= value <= max_box:
                raise ConfigError(f"{name} must be between 1 and {max_box}, got {value!r}")
        if self.min_box is not None and self.max_box is not None and self.min_box > self.max_box:
            raise ConfigError(f"min_box ({self.min_box}) is greater than max_box ({self.max_box})")

    def accepts(self, box: int, learned_box_threshold: int = LEARNED_BOX_THRESHOLD) -> bool:
        if self.min_box is not None and box < self.min_box:
            return False
        if self.max_box is not None and box > self.max_box:
            return False
        return self.include_learned or box < learned_box_threshold


def select_cram_cards(
    conn: sqlite3.Connection,
    user_id: int,
    scope: Scope,
    filters: Optional[CramFilters] = None,
    *,
    rng: Optional[random.Random] = None,
    limit: int = CRAM_LIMIT,
    learned_box_threshold: int = LEARNED_BOX_THRESHOLD,
) -> list[int]:
    """Shuffled card ids in `scope` that pass `filters`, at most `limit` of them.

    Due dates and daily caps are ignored.
    """
    filters = filters or CramFilters()
    rng = rng or random.Random()
    card_ids = sorted(resolve_scope(conn, user_id, scope))
    positions = get_positions(conn, user_id, card_ids)
    selected = [
        card_id for card_id in card_ids
        if filters.accepts(positions[card_id].current_box if card_id in positions else 1, learned_box_threshold)
    ]
    rng.shuffle(selected)
    return selected[:limit]


class CramEngine:
    """Starts cram sessions on top of a ReviewSessionEngine.

    Ratings, skips and undo go through the session engine as usual. A cram
    session only touches the schedule when it was started with
    `apply_to_srs=True`.
    """

    def __init__(self, sessions: ReviewSessionEngine):
        self.sessions = sessions

    def start(
        self,
        user_id: int,
        scope: Scope,
        filters: Optional[CramFilters] = None,
        apply_to_srs: bool = False,
    ) -> SessionState:
        """Open a cram session.

        Raises:
            ScopeNotFoundError: the scope is missing or not the user's.
            DailyLimitExceededError: `apply_to_srs` is set and today's
                review cap is already used up.
        """
        config = self.sessions.config
        filters = filters or CramFilters()
        filters.validate(self.sessions.table.max_box)

        conn = get_connection(self.sessions.db_path)
        try:
            if apply_to_srs:
                settings = read_settings(conn, user_id, config.default_settings)
                today = user_today(settings, self.sessions.now())
                check_daily_allowance(conn, user_id, False, today, settings)
            queue = select_cram_cards(
                conn, user_id, scope, filters,
                rng=self.sessions.rng,
                limit=config.cram_limit,
                learned_box_threshold=config.learned_box_threshold,
            )
        finally:
            conn.close()

        logger.info(
            "event=cram_started user_id=%s scope=%s cards=%d filters=%s apply_to_srs=%s",
            user_id, scope, len(queue), filters, apply_to_srs,
        )
        return self.sessions.open_session(user_id, scope, SessionKind.CRAM, queue, apply_to_srs=apply_to_srs)
