"""Users, folders, decks and cards: minimal management and YAML loading."""
from datetime import datetime
from pathlib import Path
from typing import Optional

import yaml

from leitner.config import utc_now
from leitner.db import get_connection
from leitner.errors import ConfigError, FolderTooDeepError, ScopeNotFoundError
from leitner.hierarchy import MAX_FOLDER_DEPTH
from leitner.models import Scope


def add_user(db_path: str, username: str) -> int:
    conn = get_connection(db_path)
    cursor = conn.execute(
        "INSERT INTO users (username, created_at) VALUES (?, ?)",
        (username, utc_now().isoformat()),
    )
    conn.commit()
    conn.close()
    return cursor.lastrowid


def get_or_create_user(db_path: str, username: str) -> int:
    conn = get_connection(db_path)
    row = conn.execute("SELECT id FROM users WHERE username = ?", (username,)).fetchone()
    conn.close()
    if row:
        return row["id"]
    return add_user(db_path, username)


def add_folder(db_path: str, user_id: int, name: str, parent_id: Optional[int] = None) -> int:
    """Create a folder, optionally inside `parent_id`. Returns its id."""
    conn = get_connection(db_path)
    depth = 0
    if parent_id is not None:
        parent = conn.execute(
            "SELECT depth FROM folders WHERE id = ? AND user_id = ? AND deleted_at IS NULL",
            (parent_id, user_id),
        ).fetchone()
        if parent is None:
            conn.close()
            raise ScopeNotFoundError(Scope.folder(parent_id))
        depth = parent["depth"] + 1
        if depth > MAX_FOLDER_DEPTH:
            conn.close()
            raise FolderTooDeepError(MAX_FOLDER_DEPTH)
    cursor = conn.execute(
        "INSERT INTO folders (user_id, parent_id, name, depth) VALUES (?, ?, ?, ?)",
        (user_id, parent_id, name, depth),
    )
    conn.commit()
    conn.close()
    return cursor.lastrowid


def add_deck(db_path: str, user_id: int, name: str, folder_id: Optional[int] = None) -> int:
    conn = get_connection(db_path)
    cursor = conn.execute(
        "INSERT INTO decks (user_id, folder_id, name) VALUES (?, ?, ?)",
        (user_id, folder_id, name),
    )
    conn.commit()
    conn.close()
    return cursor.lastrowid


def add_card(db_path: str, deck_id: int, front: str, back: str, created_at: Optional[datetime] = None) -> int:
    conn = get_connection(db_path)
    cursor = conn.execute(
        "INSERT INTO cards (deck_id, front, back, created_at) VALUES (?, ?, ?, ?)",
        (deck_id, front, back, (created_at or utc_now()).isoformat()),
    )
    conn.commit()
    conn.close()
    return cursor.lastrowid


def get_card(db_path: str, card_id: int):
    conn = get_connection(db_path)
    card = conn.execute("SELECT * FROM cards WHERE id = ?", (card_id,)).fetchone()
    conn.close()
    return card


def list_decks(db_path: str, user_id: int) -> list:
    """Live decks of a user with their live card counts."""
    conn = get_connection(db_path)
    decks = conn.execute(
        """SELECT d.id, d.name, d.folder_id, COUNT(c.id) AS card_count
        FROM decks d
        LEFT JOIN cards c ON c.deck_id = d.id AND c.deleted_at IS NULL
        WHERE d.user_id = ? AND d.deleted_at IS NULL
        GROUP BY d.id
        ORDER BY d.name""",
        (user_id,),
    ).fetchall()
    conn.close()
    return decks


def list_folders(db_path: str, user_id: int) -> list:
    conn = get_connection(db_path)
    folders = conn.execute(
        "SELECT * FROM folders WHERE user_id = ? AND deleted_at IS NULL ORDER BY depth, name",
        (user_id,),
    ).fetchall()
    conn.close()
    return folders


def _soft_delete(db_path: str, table: str, row_id: int) -> None:
    conn = get_connection(db_path)
    conn.execute(
        f"UPDATE {table} SET deleted_at = ? WHERE id = ? AND deleted_at IS NULL",
        (utc_now().isoformat(), row_id),
    )
    conn.commit()
    conn.close()


def delete_card(db_path: str, card_id: int) -> None:
    """Soft-delete a card. Its scheduling state is kept but no longer selected."""
    _soft_delete(db_path, "cards", card_id)


def delete_deck(db_path: str, deck_id: int) -> None:
    _soft_delete(db_path, "decks", deck_id)


def delete_folder(db_path: str, folder_id: int) -> None:
    _soft_delete(db_path, "folders", folder_id)


def purge_card(db_path: str, card_id: int) -> None:
    """Hard-delete a card; its positions and undo record go with it."""
    conn = get_connection(db_path)
    conn.execute("DELETE FROM cards WHERE id = ?", (card_id,))
    conn.commit()
    conn.close()


# --- YAML loading ---


def _load_decks(db_path: str, user_id: int, decks: list, folder_id: Optional[int], counts: dict) -> None:
    for deck in decks or []:
        deck_id = add_deck(db_path, user_id, deck["name"], folder_id)
        counts["decks"] += 1
        for card in deck.get("cards") or []:
            add_card(db_path, deck_id, str(card["front"]), str(card["back"]))
            counts["cards"] += 1


def _load_folders(db_path: str, user_id: int, folders: list, parent_id: Optional[int], counts: dict) -> None:
    for folder in folders or []:
        folder_id = add_folder(db_path, user_id, folder["name"], parent_id)
        counts["folders"] += 1
        _load_decks(db_path, user_id, folder.get("decks"), folder_id, counts)
        _load_folders(db_path, user_id, folder.get("folders"), folder_id, counts)


def load_library(db_path: str, user_id: int, file_path: str) -> dict:
    """Create folders, decks and cards from a YAML file.

    The file holds top-level `folders` and/or `decks` lists. A folder has a
    `name` and optional nested `folders` and `decks`; a deck has a `name`
    and a list of `cards`, each with `front` and `back`.

    Returns:
        Counts of created folders, decks and cards.
    """
    path = Path(file_path)
    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping with 'folders' and/or 'decks'")
    try:
        counts = {"folders": 0, "decks": 0, "cards": 0}
        _load_folders(db_path, user_id, data.get("folders"), None, counts)
        _load_decks(db_path, user_id, data.get("decks"), None, counts)
    except (KeyError, TypeError, AttributeError) as e:
        raise ConfigError(f"Malformed library file {path}: {e!r}") from e
    return counts
