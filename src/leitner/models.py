"""Data classes and enums for the scheduling domain."""
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional

from leitner.errors import InvalidRatingError


class Rating(str, Enum):
    AGAIN = "AGAIN"
    HARD = "HARD"
    GOOD = "GOOD"
    EASY = "EASY"

    @classmethod
    def parse(cls, value) -> "Rating":
        """Accept a Rating or its name in any case."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                pass
        raise InvalidRatingError(value)


class ReviewOrder(str, Enum):
    RANDOM = "RANDOM"
    OLDEST_FIRST = "OLDEST_FIRST"
    NEWEST_FIRST = "NEWEST_FIRST"


class QueueMix(str, Enum):
    NEW_FIRST = "NEW_FIRST"
    REVIEW_FIRST = "REVIEW_FIRST"
    INTERLEAVED = "INTERLEAVED"


class ForgottenCardAction(str, Enum):
    MOVE_TO_BOX_1 = "MOVE_TO_BOX_1"
    MOVE_DOWN_N_BOXES = "MOVE_DOWN_N_BOXES"


class ScopeType(str, Enum):
    DECK = "DECK"
    FOLDER = "FOLDER"


class CounterKind(str, Enum):
    NEW = "NEW"
    REVIEW = "REVIEW"


class SessionKind(str, Enum):
    REVIEW = "REVIEW"
    CRAM = "CRAM"


class SessionStatus(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


@dataclass(frozen=True)
class Scope:
    kind: ScopeType
    id: int

    @classmethod
    def deck(cls, deck_id: int) -> "Scope":
        return cls(ScopeType.DECK, deck_id)

    @classmethod
    def folder(cls, folder_id: int) -> "Scope":
        return cls(ScopeType.FOLDER, folder_id)


@dataclass(frozen=True)
class CardBoxPosition:
    """Scheduling state of one card for one user."""
    user_id: int
    card_id: int
    due_date: date
    current_box: int = 1
    interval_days: int = 0
    review_count: int = 0
    lapse_count: int = 0
    last_reviewed_at: Optional[datetime] = None

    @classmethod
    def new(cls, user_id: int, card_id: int, today: date) -> "CardBoxPosition":
        """State of a card the user has never rated."""
        return cls(user_id=user_id, card_id=card_id, due_date=today)

    @property
    def is_new(self) -> bool:
        return self.review_count == 0

    def is_due(self, today: date) -> bool:
        return self.due_date <= today


@dataclass(frozen=True)
class RatingEvent:
    """Snapshot taken right before a rating mutates a CardBoxPosition.

    Only the latest event per user is kept; it is what undo restores.
    """
    user_id: int
    card_id: int
    rating: Rating
    previous_box: int
    previous_interval_days: int
    previous_due_date: date
    previous_review_count: int
    previous_lapse_count: int
    previous_last_reviewed_at: Optional[datetime]
    previous_existed: bool
    counter_day: date
    counter_kind: CounterKind
    applied_at: datetime
    review_log_id: Optional[int] = None

    def previous_position(self) -> CardBoxPosition:
        return CardBoxPosition(
            user_id=self.user_id,
            card_id=self.card_id,
            due_date=self.previous_due_date,
            current_box=self.previous_box,
            interval_days=self.previous_interval_days,
            review_count=self.previous_review_count,
            lapse_count=self.previous_lapse_count,
            last_reviewed_at=self.previous_last_reviewed_at,
        )


@dataclass(frozen=True)
class DailyCounters:
    user_id: int
    day: date
    new_cards_consumed: int = 0
    reviews_consumed: int = 0


@dataclass
class SessionState:
    session_id: str
    user_id: int
    scope: Scope
    kind: SessionKind
    queue: list[int]
    started_at: datetime
    apply_to_srs: bool = True
    review_order: Optional[ReviewOrder] = None
    cursor: int = 0
    status: SessionStatus = SessionStatus.NOT_STARTED
    ratings: Counter = field(default_factory=Counter)
    # Last (card_id, rating) handled in this session, cleared by undo.
    last_rated: Optional[tuple[int, Rating]] = None

    @property
    def total(self) -> int:
        return len(self.queue)

    @property
    def completed(self) -> int:
        return self.cursor

    @property
    def remaining(self) -> int:
        return self.total - self.cursor

    @property
    def current_card_id(self) -> Optional[int]:
        if self.status is not SessionStatus.IN_PROGRESS or self.cursor >= self.total:
            return None
        return self.queue[self.cursor]

    @property
    def progress(self) -> tuple[int, int]:
        return self.completed, self.total


@dataclass(frozen=True)
class RatingResult:
    card_id: int
    rating: Rating
    next_card_id: Optional[int]
    remaining: int
    progress: tuple[int, int]
    status: SessionStatus
    position: Optional[CardBoxPosition] = None

    @property
    def is_complete(self) -> bool:
        return self.status is SessionStatus.COMPLETED
