"""Leitner box scheduling engine for flashcard review."""

__version__ = "0.1.0"

from leitner.models import CardBoxPosition, Rating, ReviewOrder, Scope
from leitner.sessions import ReviewSessionEngine
from leitner.cram import CramEngine, CramFilters

__all__ = [
    "CardBoxPosition",
    "CramEngine",
    "CramFilters",
    "Rating",
    "ReviewOrder",
    "ReviewSessionEngine",
    "Scope",
]
