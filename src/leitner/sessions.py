"""Review sessions: an ordered queue of due cards rated one at a time."""
import logging
import random
import threading
import uuid
from datetime import date, datetime
from typing import Callable, Optional

from leitner.config import EngineConfig, SrsSettings, as_utc, get_settings, read_settings, user_today, utc_now
from leitner.db import transaction
from leitner.errors import (
    CardNotDueForReviewError,
    CardNotFoundError,
    NothingToUndoError,
    OutOfOrderSubmissionError,
    SessionNotActiveError,
    SessionNotFoundError,
)
from leitner.hierarchy import get_owned_card
from leitner.models import (
    CardBoxPosition,
    CounterKind,
    Rating,
    RatingEvent,
    RatingResult,
    ReviewOrder,
    Scope,
    SessionKind,
    SessionState,
    SessionStatus,
)
from leitner.selector import check_daily_allowance, select_due
from leitner.store import append_review_log, get_position, increment_counter, put_position, put_rating_event
from leitner.transitions import apply_rating
from leitner.undo import revert_last_rating

logger = logging.getLogger(__name__)


class UserLocks:
    """One re-entrant lock per user id, created on first use."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[int, threading.RLock] = {}

    def for_user(self, user_id: int) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = self._locks[user_id] = threading.RLock()
            return lock


class ReviewSessionEngine:
    """Runs review sessions against one database.

    Sessions live in memory. Every write for a user happens under that
    user's lock and inside a single SQLite write transaction.
    """

    def __init__(
        self,
        db_path: str,
        config: Optional[EngineConfig] = None,
        *,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db_path = db_path
        self.config = config or EngineConfig()
        self.table = self.config.table
        self.rng = rng or random.Random()
        self.clock = clock or utc_now
        self.locks = UserLocks()
        self._sessions: dict[str, SessionState] = {}

    def now(self) -> datetime:
        return as_utc(self.clock())

    def settings_for(self, user_id: int) -> SrsSettings:
        return get_settings(self.db_path, user_id, self.config.default_settings)

    def today_for(self, user_id: int) -> date:
        return user_today(self.settings_for(user_id), self.now())

    # --- Session lifecycle ---

    def start(self, user_id: int, scope: Scope, review_order: Optional[ReviewOrder] = None) -> SessionState:
        """Open a session over the cards due in `scope` today."""
        settings = self.settings_for(user_id)
        today = user_today(settings, self.now())
        queue = select_due(
            self.db_path, user_id, scope, today, review_order,
            settings=settings, rng=self.rng, batch_size=self.config.batch_size,
        )
        return self.open_session(
            user_id, scope, SessionKind.REVIEW, queue,
            review_order=ReviewOrder(review_order or settings.review_order),
        )

    def open_session(
        self,
        user_id: int,
        scope: Scope,
        kind: SessionKind,
        queue: list[int],
        apply_to_srs: bool = True,
        review_order: Optional[ReviewOrder] = None,
    ) -> SessionState:
        session = SessionState(
            session_id=str(uuid.uuid4()),
            user_id=user_id,
            scope=scope,
            kind=kind,
            queue=list(queue),
            started_at=self.now(),
            apply_to_srs=apply_to_srs,
            review_order=review_order,
            status=SessionStatus.IN_PROGRESS if queue else SessionStatus.COMPLETED,
        )
        self._sessions[session.session_id] = session
        logger.info(
            "event=session_started session_id=%s user_id=%s kind=%s scope=%s total=%d apply_to_srs=%s",
            session.session_id, user_id, kind.value, scope, session.total, apply_to_srs,
        )
        return session

    def get(self, session_id: str) -> SessionState:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def end(self, session_id: str) -> SessionState:
        """Close the session and forget it. Ratings already applied stay applied."""
        session = self.get(session_id)
        with self.locks.for_user(session.user_id):
            session.status = SessionStatus.COMPLETED
            del self._sessions[session_id]
        logger.info(
            "event=session_ended session_id=%s completed=%d total=%d",
            session_id, session.completed, session.total,
        )
        return session

    # --- Ratings ---

    def _check_turn(self, session: SessionState, card_id: int) -> None:
        if session.status is not SessionStatus.IN_PROGRESS:
            raise SessionNotActiveError(session.session_id, session.status)
        if card_id not in session.queue:
            raise CardNotDueForReviewError(card_id, session.session_id)
        if card_id != session.current_card_id:
            raise OutOfOrderSubmissionError(card_id, session.current_card_id)

    def _advance(self, session: SessionState) -> None:
        if session.cursor >= session.total:
            session.status = SessionStatus.COMPLETED
            logger.info(
                "event=session_completed session_id=%s total=%d ratings=%s",
                session.session_id, session.total,
                {rating.value: count for rating, count in session.ratings.items()},
            )

    def submit_rating(self, session_id: str, card_id: int, rating) -> RatingResult:
        """Rate the card at the session's cursor and move on to the next one.

        Raises:
            SessionNotActiveError: the session is not in progress.
            CardNotDueForReviewError: `card_id` is not part of the session.
            OutOfOrderSubmissionError: `card_id` is not the current card.
            CardNotFoundError: the card was deleted after the session started.
            DailyLimitExceededError: another session already used up the
                matching daily cap. The cursor stays on the card.
        """
        rating = Rating.parse(rating)
        session = self.get(session_id)
        with self.locks.for_user(session.user_id):
            self._check_turn(session, card_id)
            position = None
            if session.apply_to_srs:
                position = self.apply(session.user_id, card_id, rating, enforce_allowance=True)
            session.ratings[rating] += 1
            session.last_rated = (card_id, rating)
            session.cursor += 1
            self._advance(session)
            return RatingResult(
                card_id=card_id,
                rating=rating,
                next_card_id=session.current_card_id,
                remaining=session.remaining,
                progress=session.progress,
                status=session.status,
                position=position,
            )

    def skip_card(self, session_id: str, card_id: int) -> SessionState:
        """Drop the current card from the session. Nothing is persisted."""
        session = self.get(session_id)
        with self.locks.for_user(session.user_id):
            self._check_turn(session, card_id)
            session.queue.pop(session.cursor)
            self._advance(session)
        logger.info("event=card_skipped session_id=%s card_id=%s", session_id, card_id)
        return session

    def force_review(self, user_id: int, card_id: int, rating) -> CardBoxPosition:
        """Rate a single card outside any session, within today's caps.

        Raises:
            CardNotFoundError: the card does not exist or is not the user's.
            DailyLimitExceededError: the matching daily cap is used up.
        """
        rating = Rating.parse(rating)
        return self.apply(user_id, card_id, rating, enforce_allowance=True)

    def apply(self, user_id: int, card_id: int, rating: Rating, *, enforce_allowance: bool = False) -> CardBoxPosition:
        """Persist one rating: undo snapshot, new position, counter and log row.

        Raises:
            CardNotFoundError: the card was deleted or is not the user's.
            DailyLimitExceededError: `enforce_allowance` is set and the
                matching daily cap is used up.
        """
        now = self.now()
        with self.locks.for_user(user_id), transaction(self.db_path) as conn:
            if get_owned_card(conn, user_id, card_id) is None:
                raise CardNotFoundError(card_id)
            settings = read_settings(conn, user_id, self.config.default_settings)
            today = user_today(settings, now)
            stored = get_position(conn, user_id, card_id)
            previous = stored or CardBoxPosition.new(user_id, card_id, today)
            kind = CounterKind.NEW if previous.is_new else CounterKind.REVIEW
            if enforce_allowance:
                check_daily_allowance(conn, user_id, previous.is_new, today, settings)

            updated = apply_rating(
                previous, rating, settings, self.table, today, now, self.config.hard_penalty_factor
            )
            put_position(conn, updated)
            increment_counter(conn, user_id, today, kind)
            log_id = append_review_log(conn, user_id, card_id, rating, previous.current_box, updated, today, now)
            put_rating_event(conn, RatingEvent(
                user_id=user_id,
                card_id=card_id,
                rating=rating,
                previous_box=previous.current_box,
                previous_interval_days=previous.interval_days,
                previous_due_date=previous.due_date,
                previous_review_count=previous.review_count,
                previous_lapse_count=previous.lapse_count,
                previous_last_reviewed_at=previous.last_reviewed_at,
                previous_existed=stored is not None,
                counter_day=today,
                counter_kind=kind,
                applied_at=now,
                review_log_id=log_id,
            ))
        logger.info(
            "event=rating_applied user_id=%s card_id=%s rating=%s box=%s->%s due=%s",
            user_id, card_id, rating.value, previous.current_box, updated.current_box, updated.due_date,
        )
        return updated

    # --- Undo ---

    def undo_last_review(self, session_id: str) -> int:
        """Undo the most recent rating and step the session back onto that card.

        For sessions that write to the schedule this rolls back the user's
        latest persisted rating. Sessions that do not (cram practice) only
        forget their own last rating. Returns the card id.
        """
        session = self.get(session_id)
        with self.locks.for_user(session.user_id):
            if session.apply_to_srs:
                with transaction(self.db_path) as conn:
                    event = revert_last_rating(
                        conn, session.user_id, now=self.now(),
                        window_seconds=self.config.undo_window_seconds,
                    )
                card_id, rating = event.card_id, event.rating
                logger.info(
                    "event=review_undone user_id=%s card_id=%s rating=%s restored_box=%s",
                    session.user_id, card_id, rating.value, event.previous_box,
                )
            elif session.last_rated is not None:
                card_id, rating = session.last_rated
            else:
                raise NothingToUndoError()

            if session.cursor > 0 and session.queue[session.cursor - 1] == card_id:
                session.cursor -= 1
                session.status = SessionStatus.IN_PROGRESS
                session.ratings[rating] -= 1
                if session.ratings[rating] <= 0:
                    del session.ratings[rating]
            session.last_rated = None
            return card_id
