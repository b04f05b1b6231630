"""Read-only queries over the folder/deck/card hierarchy.

The tables are owned by the library layer; nothing here writes to them.
Soft-deleted folders, decks and cards are invisible to every query.
"""
import sqlite3
from typing import Iterable, Optional

from leitner.models import Scope
from leitner.store import chunked

MAX_FOLDER_DEPTH = 10


def get_owned_deck(conn: sqlite3.Connection, user_id: int, deck_id: int) -> Optional[sqlite3.Row]:
    return conn.execute(
        "SELECT * FROM decks WHERE id = ? AND user_id = ? AND deleted_at IS NULL",
        (deck_id, user_id),
    ).fetchone()


def get_owned_folder(conn: sqlite3.Connection, user_id: int, folder_id: int) -> Optional[sqlite3.Row]:
    return conn.execute(
        "SELECT * FROM folders WHERE id = ? AND user_id = ? AND deleted_at IS NULL",
        (folder_id, user_id),
    ).fetchone()


def get_owned_card(conn: sqlite3.Connection, user_id: int, card_id: int) -> Optional[sqlite3.Row]:
    return conn.execute(
        """SELECT c.* FROM cards c
        JOIN decks d ON c.deck_id = d.id
        WHERE c.id = ? AND d.user_id = ? AND c.deleted_at IS NULL AND d.deleted_at IS NULL""",
        (card_id, user_id),
    ).fetchone()


def list_cards_in_deck(conn: sqlite3.Connection, deck_id: int) -> list[int]:
    rows = conn.execute(
        "SELECT id FROM cards WHERE deck_id = ? AND deleted_at IS NULL ORDER BY id",
        (deck_id,),
    ).fetchall()
    return [r["id"] for r in rows]


def list_descendant_scope_ids(conn: sqlite3.Connection, folder_id: int) -> set[Scope]:
    """Deck scopes for every live deck under `folder_id`, at any depth.

    The walk goes at most MAX_FOLDER_DEPTH levels below the starting folder.
    """
    decks = set()
    frontier = [folder_id]
    seen = {folder_id}
    for _ in range(MAX_FOLDER_DEPTH + 1):
        if not frontier:
            break
        placeholders = ",".join("?" * len(frontier))
        for row in conn.execute(
            f"SELECT id FROM decks WHERE folder_id IN ({placeholders}) AND deleted_at IS NULL",
            frontier,
        ).fetchall():
            decks.add(Scope.deck(row["id"]))
        children = conn.execute(
            f"SELECT id FROM folders WHERE parent_id IN ({placeholders}) AND deleted_at IS NULL",
            frontier,
        ).fetchall()
        frontier = [r["id"] for r in children if r["id"] not in seen]
        seen.update(frontier)
    return decks


def list_user_card_ids(conn: sqlite3.Connection, user_id: int) -> list[int]:
    """Every live card in every live deck the user owns."""
    rows = conn.execute(
        """SELECT c.id FROM cards c
        JOIN decks d ON c.deck_id = d.id
        WHERE d.user_id = ? AND d.deleted_at IS NULL AND c.deleted_at IS NULL
        ORDER BY c.id""",
        (user_id,),
    ).fetchall()
    return [r["id"] for r in rows]


def list_user_ids(conn: sqlite3.Connection) -> list[int]:
    return [r["id"] for r in conn.execute("SELECT id FROM users ORDER BY id").fetchall()]


def card_creation_order(conn: sqlite3.Connection, card_ids: Iterable[int]) -> dict[int, tuple]:
    """Map card id to a sort key for its creation time (ties broken by id)."""
    order = {}
    for chunk in chunked(sorted(set(card_ids))):
        placeholders = ",".join("?" * len(chunk))
        for row in conn.execute(
            f"SELECT id, created_at FROM cards WHERE id IN ({placeholders})",
            chunk,
        ).fetchall():
            order[row["id"]] = (row["created_at"], row["id"])
    return order
