"""Engine configuration and per-user review settings."""
import sqlite3
from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Optional

import pytz
import yaml

from leitner.db import get_connection
from leitner.errors import ConfigError
from leitner.intervals import DEFAULT_BOX_INTERVALS, HARD_PENALTY_FACTOR, BoxIntervalTable
from leitner.models import ForgottenCardAction, QueueMix, ReviewOrder

DEFAULT_CONFIG_PATH = str(Path.home() / ".leitner" / "config.yaml")

BATCH_SIZE = 200
CRAM_LIMIT = 500
LEARNED_BOX_THRESHOLD = 5

NEW_CARDS_PER_DAY_RANGE = (1, 100)
MAX_REVIEWS_PER_DAY_RANGE = (1, 500)
MOVE_DOWN_BOXES_RANGE = (1, 3)


@dataclass(frozen=True)
class SrsSettings:
    review_order: ReviewOrder = ReviewOrder.RANDOM
    queue_mix: QueueMix = QueueMix.NEW_FIRST
    forgotten_card_action: ForgottenCardAction = ForgottenCardAction.MOVE_TO_BOX_1
    move_down_boxes: int = 1
    new_cards_per_day: int = 20
    max_reviews_per_day: int = 200
    timezone: str = "UTC"
    notification_enabled: bool = True

    def validated(self) -> "SrsSettings":
        """Return a copy with enum fields coerced, or raise ConfigError."""
        try:
            settings = replace(
                self,
                review_order=ReviewOrder(self.review_order),
                queue_mix=QueueMix(self.queue_mix),
                forgotten_card_action=ForgottenCardAction(self.forgotten_card_action),
            )
        except ValueError as e:
            raise ConfigError(str(e)) from e
        _check_range("move_down_boxes", settings.move_down_boxes, MOVE_DOWN_BOXES_RANGE)
        _check_range("new_cards_per_day", settings.new_cards_per_day, NEW_CARDS_PER_DAY_RANGE)
        _check_range("max_reviews_per_day", settings.max_reviews_per_day, MAX_REVIEWS_PER_DAY_RANGE)
        zone_for(settings.timezone)
        return settings


@dataclass(frozen=True)
class EngineConfig:
    """Process-wide configuration, read once at startup."""
    box_intervals: tuple = DEFAULT_BOX_INTERVALS
    hard_penalty_factor: float = HARD_PENALTY_FACTOR
    batch_size: int = BATCH_SIZE
    cram_limit: int = CRAM_LIMIT
    learned_box_threshold: int = LEARNED_BOX_THRESHOLD
    undo_window_seconds: Optional[int] = None
    default_settings: SrsSettings = field(default_factory=SrsSettings)

    @property
    def table(self) -> BoxIntervalTable:
        return BoxIntervalTable(self.box_intervals)


def _check_range(name: str, value, bounds: tuple[int, int]) -> None:
    low, high = bounds
    if isinstance(value, bool) or not isinstance(value, int) or not low <= value <= high:
        raise ConfigError(f"{name} must be an integer between {low} and {high}, got {value!r}")


def zone_for(name: str):
    try:
        return pytz.timezone(name)
    except (pytz.UnknownTimeZoneError, AttributeError) as e:
        raise ConfigError(f"Unknown timezone: {name!r}") from e


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def user_today(settings: SrsSettings, now: Optional[datetime] = None) -> date:
    """The user's local calendar date at `now` (defaults to the current time)."""
    now = as_utc(now or utc_now())
    return now.astimezone(zone_for(settings.timezone)).date()


def parse_config(data: dict) -> EngineConfig:
    """Build an EngineConfig from a mapping (e.g. a parsed YAML document)."""
    data = dict(data or {})
    known = {f.name for f in fields(EngineConfig)}
    unknown = set(data) - known
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(sorted(unknown))}")

    defaults = data.pop("default_settings", None) or {}
    if not isinstance(defaults, dict):
        raise ConfigError("default_settings must be a mapping")
    settings_keys = {f.name for f in fields(SrsSettings)}
    unknown = set(defaults) - settings_keys
    if unknown:
        raise ConfigError(f"Unknown default_settings keys: {', '.join(sorted(unknown))}")

    if "box_intervals" in data:
        if not isinstance(data["box_intervals"], (list, tuple)):
            raise ConfigError("box_intervals must be a list")
        data["box_intervals"] = tuple(data["box_intervals"])
    for name in ("batch_size", "cram_limit", "learned_box_threshold", "undo_window_seconds"):
        value = data.get(name, 0)
        if value is None and name == "undo_window_seconds":
            continue
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigError(f"{name} must be an integer, got {value!r}")
    factor = data.get("hard_penalty_factor", HARD_PENALTY_FACTOR)
    if isinstance(factor, bool) or not isinstance(factor, (int, float)):
        raise ConfigError(f"hard_penalty_factor must be a number, got {factor!r}")
    config = EngineConfig(default_settings=SrsSettings(**defaults).validated(), **data)

    table = config.table  # validates the intervals
    if not 0 < config.hard_penalty_factor <= 1:
        raise ConfigError(f"hard_penalty_factor must be in (0, 1], got {config.hard_penalty_factor!r}")
    for name in ("batch_size", "cram_limit"):
        if getattr(config, name) < 1:
            raise ConfigError(f"{name} must be positive")
    if not 1 <= config.learned_box_threshold <= table.max_box:
        raise ConfigError(f"learned_box_threshold must be between 1 and {table.max_box}")
    if config.undo_window_seconds is not None and config.undo_window_seconds < 0:
        raise ConfigError("undo_window_seconds must not be negative")
    return config


def load_config(path: Optional[str] = None) -> EngineConfig:
    """Load engine configuration from YAML; missing file means defaults."""
    config_path = Path(path or DEFAULT_CONFIG_PATH)
    if not config_path.exists():
        if path is not None:
            raise ConfigError(f"Config file not found: {config_path}")
        return EngineConfig()
    try:
        data = yaml.safe_load(config_path.read_text())
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e
    if data is not None and not isinstance(data, dict):
        raise ConfigError(f"{config_path} must contain a mapping")
    return parse_config(data or {})


def settings_from_row(row: sqlite3.Row) -> SrsSettings:
    return SrsSettings(
        review_order=ReviewOrder(row["review_order"]),
        queue_mix=QueueMix(row["queue_mix"]),
        forgotten_card_action=ForgottenCardAction(row["forgotten_card_action"]),
        move_down_boxes=row["move_down_boxes"],
        new_cards_per_day=row["new_cards_per_day"],
        max_reviews_per_day=row["max_reviews_per_day"],
        timezone=row["timezone"],
        notification_enabled=bool(row["notification_enabled"]),
    )


def read_settings(conn: sqlite3.Connection, user_id: int, default: Optional[SrsSettings] = None) -> SrsSettings:
    row = conn.execute("SELECT * FROM srs_settings WHERE user_id = ?", (user_id,)).fetchone()
    if row is None:
        return default or SrsSettings()
    return settings_from_row(row)


def get_settings(db_path: str, user_id: int, default: Optional[SrsSettings] = None) -> SrsSettings:
    conn = get_connection(db_path)
    settings = read_settings(conn, user_id, default)
    conn.close()
    return settings


def save_settings(db_path: str, user_id: int, settings: SrsSettings) -> SrsSettings:
    settings = settings.validated()
    conn = get_connection(db_path)
    conn.execute(
        """INSERT INTO srs_settings
        (user_id, review_order, queue_mix, forgotten_card_action, move_down_boxes,
         new_cards_per_day, max_reviews_per_day, timezone, notification_enabled)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(user_id) DO UPDATE SET
            review_order=excluded.review_order,
            queue_mix=excluded.queue_mix,
            forgotten_card_action=excluded.forgotten_card_action,
            move_down_boxes=excluded.move_down_boxes,
            new_cards_per_day=excluded.new_cards_per_day,
            max_reviews_per_day=excluded.max_reviews_per_day,
            timezone=excluded.timezone,
            notification_enabled=excluded.notification_enabled""",
        (
            user_id,
            settings.review_order.value,
            settings.queue_mix.value,
            settings.forgotten_card_action.value,
            settings.move_down_boxes,
            settings.new_cards_per_day,
            settings.max_reviews_per_day,
            settings.timezone,
            int(settings.notification_enabled),
        ),
    )
    conn.commit()
    conn.close()
    return settings
