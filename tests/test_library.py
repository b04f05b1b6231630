# tests/test_library.py
import pytest

from leitner.db import get_connection, init_db
from leitner.errors import ConfigError, ScopeNotFoundError
from leitner.library import (
    add_folder,
    add_user,
    get_or_create_user,
    list_decks,
    list_folders,
    load_library,
)
from leitner.models import Scope
from leitner.scope import resolve_scope

LIBRARY_YAML = """
folders:
  - name: Languages
    decks:
      - name: Nouns
        cards:
          - {front: casa, back: house}
          - {front: perro, back: dog}
    folders:
      - name: Spanish
        decks:
          - name: Verbs
            cards:
              - {front: ser, back: to be}
decks:
  - name: Numbers
    cards:
      - {front: 1, back: one}
"""


def test_load_library(tmp_path, tmp_db):
    init_db(tmp_db)
    user_id = add_user(tmp_db, "alice")
    f = tmp_path / "library.yaml"
    f.write_text(LIBRARY_YAML)

    counts = load_library(tmp_db, user_id, str(f))

    assert counts == {"folders": 2, "decks": 3, "cards": 4}
    decks = {d["name"]: d for d in list_decks(tmp_db, user_id)}
    assert decks["Nouns"]["card_count"] == 2
    assert decks["Numbers"]["folder_id"] is None
    folders = {f["name"]: f for f in list_folders(tmp_db, user_id)}
    assert folders["Spanish"]["depth"] == 1
    assert folders["Spanish"]["parent_id"] == folders["Languages"]["id"]

    conn = get_connection(tmp_db)
    cards = resolve_scope(conn, user_id, Scope.folder(folders["Languages"]["id"]))
    front = conn.execute("SELECT front FROM cards WHERE deck_id = ?", (decks["Numbers"]["id"],)).fetchone()
    conn.close()
    assert len(cards) == 3
    assert front["front"] == "1"


def test_load_library_rejects_malformed_files(tmp_path, tmp_db):
    init_db(tmp_db)
    user_id = add_user(tmp_db, "alice")
    f = tmp_path / "library.yaml"
    for text in ("- a\n- b\n", "decks:\n  - cards: []\n", "decks: [unclosed\n"):
        f.write_text(text)
        with pytest.raises(ConfigError):
            load_library(tmp_db, user_id, str(f))


def test_get_or_create_user(tmp_db):
    init_db(tmp_db)
    first = get_or_create_user(tmp_db, "alice")
    assert get_or_create_user(tmp_db, "alice") == first
    assert get_or_create_user(tmp_db, "bob") != first


def test_folder_parent_must_belong_to_user(tmp_db):
    init_db(tmp_db)
    alice = add_user(tmp_db, "alice")
    bob = add_user(tmp_db, "bob")
    folder = add_folder(tmp_db, alice, "Mine")
    with pytest.raises(ScopeNotFoundError):
        add_folder(tmp_db, bob, "Sneaky", folder)
