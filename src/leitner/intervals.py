"""Box interval table and due-date calculation."""
import math
from datetime import date, timedelta
from fractions import Fraction

from leitner.errors import ConfigError, InvalidBoxError

# Boxes 1 and 2 are due again the same day.
DEFAULT_BOX_INTERVALS = (0, 0, 3, 7, 14, 30, 60)
HARD_PENALTY_FACTOR = 0.7


class BoxIntervalTable:
    """Interval length in days for each box, box numbers starting at 1."""

    def __init__(self, intervals=DEFAULT_BOX_INTERVALS):
        intervals = tuple(intervals)
        if not intervals:
            raise ConfigError("Box interval table must have at least one box")
        for value in intervals:
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ConfigError(f"Box intervals must be non-negative integers, got {value!r}")
        if any(later < earlier for earlier, later in zip(intervals, intervals[1:])):
            raise ConfigError(f"Box intervals must not decrease: {list(intervals)}")
        self._intervals = intervals

    @property
    def max_box(self) -> int:
        return len(self._intervals)

    def interval_days(self, box: int) -> int:
        if isinstance(box, bool) or not isinstance(box, int) or not 1 <= box <= self.max_box:
            raise InvalidBoxError(box, self.max_box)
        return self._intervals[box - 1]

    def as_dict(self) -> dict[int, int]:
        return {box: days for box, days in enumerate(self._intervals, start=1)}

    def __eq__(self, other):
        return isinstance(other, BoxIntervalTable) and self._intervals == other._intervals

    def __repr__(self):
        return f"BoxIntervalTable({list(self._intervals)})"


def assigned_interval(
    table: BoxIntervalTable,
    box: int,
    hard_penalty: bool,
    penalty_factor: float = HARD_PENALTY_FACTOR,
) -> int:
    """Number of days until the card is due again after landing in `box`."""
    days = table.interval_days(box)
    if days == 0 or not hard_penalty:
        return days
    # Fraction(str(...)) keeps 10 * 0.7 at exactly 7 before the ceiling.
    return math.ceil(days * Fraction(str(penalty_factor)))


def compute_due_date(
    table: BoxIntervalTable,
    box: int,
    hard_penalty: bool,
    today: date,
    penalty_factor: float = HARD_PENALTY_FACTOR,
) -> date:
    """Calculate the next due date for a card in `box`.

    Args:
        table: Interval table to read the box's interval from.
        box: Box the card is in after the rating.
        hard_penalty: True when the rating was HARD; shortens the interval
            to ceil(interval * penalty_factor).
        today: The user's local calendar date.
        penalty_factor: Fraction of the interval kept on a HARD rating.

    Returns:
        `today` for zero-interval boxes, otherwise `today` plus the
        (possibly penalised) interval.
    """
    return today + timedelta(days=assigned_interval(table, box, hard_penalty, penalty_factor))
