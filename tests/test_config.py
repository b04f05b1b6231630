# tests/test_config.py
from datetime import date, datetime, timezone

import pytest

from leitner import config as config_module
from leitner.config import (
    EngineConfig,
    SrsSettings,
    get_settings,
    load_config,
    parse_config,
    save_settings,
    user_today,
)
from leitner.db import init_db
from leitner.errors import ConfigError
from leitner.intervals import BoxIntervalTable
from leitner.library import add_user
from leitner.models import ForgottenCardAction, QueueMix, ReviewOrder


def test_defaults():
    config = EngineConfig()
    assert config.table == BoxIntervalTable()
    assert config.hard_penalty_factor == 0.7
    assert config.batch_size == 200
    assert config.cram_limit == 500
    assert config.learned_box_threshold == 5
    assert config.undo_window_seconds is None
    settings = config.default_settings
    assert settings.review_order is ReviewOrder.RANDOM
    assert settings.forgotten_card_action is ForgottenCardAction.MOVE_TO_BOX_1
    assert settings.new_cards_per_day == 20
    assert settings.max_reviews_per_day == 200


def test_missing_default_file_means_defaults(tmp_path, monkeypatch):
    monkeypatch.setattr(config_module, "DEFAULT_CONFIG_PATH", str(tmp_path / "config.yaml"))
    assert load_config() == EngineConfig()


def test_missing_explicit_file(tmp_path):
    with pytest.raises(ConfigError):
        load_config(str(tmp_path / "nope.yaml"))


def test_load_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "box_intervals: [0, 1, 3, 8]\n"
        "hard_penalty_factor: 0.5\n"
        "learned_box_threshold: 3\n"
        "undo_window_seconds: 120\n"
        "default_settings:\n"
        "  new_cards_per_day: 5\n"
        "  queue_mix: INTERLEAVED\n"
    )
    config = load_config(str(path))
    assert config.table.max_box == 4
    assert config.box_intervals == (0, 1, 3, 8)
    assert config.hard_penalty_factor == 0.5
    assert config.undo_window_seconds == 120
    assert config.default_settings.new_cards_per_day == 5
    assert config.default_settings.queue_mix is QueueMix.INTERLEAVED


def test_empty_yaml_means_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("")
    assert load_config(str(path)) == EngineConfig()


def test_invalid_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("box_intervals: [0, 1\n")
    with pytest.raises(ConfigError):
        load_config(str(path))
    path.write_text("- just\n- a list\n")
    with pytest.raises(ConfigError):
        load_config(str(path))


def test_parse_config_rejects_bad_values():
    bad = [
        {"unknown_key": 1},
        {"default_settings": {"colour": "blue"}},
        {"box_intervals": [0, 5, 2]},
        {"hard_penalty_factor": 0},
        {"hard_penalty_factor": 1.5},
        {"batch_size": 0},
        {"box_intervals": [0, 1, 2], "learned_box_threshold": 5},
        {"undo_window_seconds": -1},
        {"default_settings": {"new_cards_per_day": 0}},
        {"default_settings": {"max_reviews_per_day": 501}},
        {"default_settings": {"move_down_boxes": 4}},
        {"default_settings": {"review_order": "ALPHABETICAL"}},
        {"default_settings": {"timezone": "Mars/Olympus_Mons"}},
    ]
    for data in bad:
        with pytest.raises(ConfigError):
            parse_config(data)


def test_parse_config_rejects_wrong_types():
    bad = [
        {"hard_penalty_factor": "0.7"},
        {"hard_penalty_factor": True},
        {"batch_size": "200"},
        {"cram_limit": 2.5},
        {"learned_box_threshold": None},
        {"undo_window_seconds": "2m"},
        {"box_intervals": 5},
        {"box_intervals": ["0", "1"]},
        {"default_settings": "strict"},
        {"default_settings": {"new_cards_per_day": "20"}},
    ]
    for data in bad:
        with pytest.raises(ConfigError):
            parse_config(data)
    assert parse_config({"undo_window_seconds": None}).undo_window_seconds is None
    assert parse_config({"hard_penalty_factor": 1}).hard_penalty_factor == 1


def test_settings_round_trip(tmp_db):
    init_db(tmp_db)
    user_id = add_user(tmp_db, "alice")
    assert get_settings(tmp_db, user_id) == SrsSettings()

    custom = SrsSettings(
        review_order="OLDEST_FIRST",
        forgotten_card_action=ForgottenCardAction.MOVE_DOWN_N_BOXES,
        move_down_boxes=2,
        new_cards_per_day=10,
        timezone="Europe/Berlin",
        notification_enabled=False,
    )
    saved = save_settings(tmp_db, user_id, custom)
    assert saved.review_order is ReviewOrder.OLDEST_FIRST
    assert get_settings(tmp_db, user_id) == saved

    save_settings(tmp_db, user_id, SrsSettings(new_cards_per_day=15))
    assert get_settings(tmp_db, user_id).new_cards_per_day == 15


def test_get_settings_falls_back_to_given_default(tmp_db):
    init_db(tmp_db)
    default = SrsSettings(new_cards_per_day=7)
    assert get_settings(tmp_db, 42, default) == default


def test_save_settings_validates(tmp_db):
    init_db(tmp_db)
    user_id = add_user(tmp_db, "alice")
    with pytest.raises(ConfigError):
        save_settings(tmp_db, user_id, SrsSettings(max_reviews_per_day=0))
    assert get_settings(tmp_db, user_id) == SrsSettings()


def test_user_today():
    now = datetime(2025, 1, 10, 23, 30, tzinfo=timezone.utc)
    assert user_today(SrsSettings(), now) == date(2025, 1, 10)
    assert user_today(SrsSettings(timezone="Asia/Tokyo"), now) == date(2025, 1, 11)
    assert user_today(SrsSettings(timezone="America/New_York"), now) == date(2025, 1, 10)
    assert user_today(SrsSettings(), datetime(2025, 1, 10, 23, 30)) == date(2025, 1, 10)
