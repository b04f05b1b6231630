"""Turn a deck or folder scope into the set of card ids it covers."""
import sqlite3

from leitner.errors import ScopeNotFoundError
from leitner.hierarchy import (
    get_owned_deck,
    get_owned_folder,
    list_cards_in_deck,
    list_descendant_scope_ids,
)
from leitner.models import Scope, ScopeType


def resolve_scope(conn: sqlite3.Connection, user_id: int, scope: Scope) -> set[int]:
    """Card ids reachable from `scope` for `user_id`.

    A deck scope yields the deck's live cards. A folder scope yields the
    cards of every live deck in the folder and its live sub-folders.

    Raises:
        ScopeNotFoundError: the deck or folder does not exist, is deleted,
            or belongs to someone else.
    """
    kind = ScopeType(scope.kind)
    if kind is ScopeType.DECK:
        if get_owned_deck(conn, user_id, scope.id) is None:
            raise ScopeNotFoundError(scope)
        return set(list_cards_in_deck(conn, scope.id))

    if get_owned_folder(conn, user_id, scope.id) is None:
        raise ScopeNotFoundError(scope)
    card_ids = set()
    for deck_scope in list_descendant_scope_ids(conn, scope.id):
        card_ids.update(list_cards_in_deck(conn, deck_scope.id))
    return card_ids
