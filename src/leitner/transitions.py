"""Rating state machine over Leitner boxes."""
from dataclasses import dataclass, replace
from datetime import date, datetime

from leitner.errors import InvalidBoxError
from leitner.intervals import HARD_PENALTY_FACTOR, BoxIntervalTable, assigned_interval, compute_due_date
from leitner.models import CardBoxPosition, ForgottenCardAction, Rating


@dataclass(frozen=True)
class Transition:
    new_box: int
    hard_penalty: bool = False
    lapsed: bool = False


def next_box(
    current_box: int,
    rating,
    max_box: int,
    forgotten_card_action: ForgottenCardAction = ForgottenCardAction.MOVE_TO_BOX_1,
    move_down_boxes: int = 1,
) -> Transition:
    """Compute the box a card moves to for a rating.

    AGAIN applies the forgotten-card action, HARD and GOOD move up one box,
    EASY moves up two. Forward moves stop at `max_box`.
    """
    rating = Rating.parse(rating)
    if not 1 <= current_box <= max_box:
        raise InvalidBoxError(current_box, max_box)

    if rating is Rating.AGAIN:
        if ForgottenCardAction(forgotten_card_action) is ForgottenCardAction.MOVE_DOWN_N_BOXES:
            return Transition(max(1, current_box - move_down_boxes), lapsed=True)
        return Transition(1, lapsed=True)
    if rating is Rating.HARD:
        return Transition(min(max_box, current_box + 1), hard_penalty=True)
    if rating is Rating.GOOD:
        return Transition(min(max_box, current_box + 1))
    return Transition(min(max_box, current_box + 2))


def apply_rating(
    position: CardBoxPosition,
    rating,
    settings,
    table: BoxIntervalTable,
    today: date,
    now: datetime,
    penalty_factor: float = HARD_PENALTY_FACTOR,
) -> CardBoxPosition:
    """Return the position after `rating`; the input is left untouched."""
    transition = next_box(
        position.current_box,
        rating,
        table.max_box,
        settings.forgotten_card_action,
        settings.move_down_boxes,
    )
    interval = assigned_interval(table, transition.new_box, transition.hard_penalty, penalty_factor)
    return replace(
        position,
        current_box=transition.new_box,
        interval_days=interval,
        due_date=compute_due_date(table, transition.new_box, transition.hard_penalty, today, penalty_factor),
        review_count=position.review_count + 1,
        lapse_count=position.lapse_count + (1 if transition.lapsed else 0),
        last_reviewed_at=now,
    )
