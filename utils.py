"""Utility functions for worklog reconciliation and OnePoint sync."""

import json
import os
from datetime import datetime
from urllib.parse import urlparse

from patterns import Patterns

# File paths
CONFIG_FILE = "config.json"
DB_FILE = "worklogs.db"
STATE_FILE = os.path.join("~", ".onepoint-sync", "auth-state.json")

DEFAULT_ONEPOINT_URL = "https://onepoint.virtual7.io/onepoint/faces/home"
HOME_PATH = "/onepoint/faces/home"
WIRE_DAY_FORMAT = "%d-%m-%Y"
SUPPORTED_MAPPERS = ("epm", "generic", "atwork")


def load_config(path: str = CONFIG_FILE) -> dict:
    """Load config.json with OnePoint URL and rules."""
    with open(path, encoding="utf-8") as f:
        config = json.load(f)
    config.setdefault("onepoint", {}).setdefault("url", DEFAULT_ONEPOINT_URL)
    config.setdefault("rules", [])
    return config


def validate_config(config: dict) -> list[str]:
    """Validate config structure and return list of error messages.

    Returns:
        Empty list if valid, otherwise list of error messages.
    """
    errors = []

    url = (config.get("onepoint") or {}).get("url", "")
    parsed = urlparse(str(url).strip())
    if not url:
        errors.append("Missing onepoint.url")
    elif parsed.scheme not in ("http", "https") or not parsed.netloc:
        errors.append(f"onepoint.url is not a valid URL: {url!r}")

    rules = config.get("rules", [])
    if not isinstance(rules, list):
        errors.append("rules must be a list")
        return errors

    seen: set[str] = set()
    for i, rule in enumerate(rules):
        name = str(rule.get("name", "")).strip()
        if not name:
            errors.append(f"rules[{i}].name is required")
        elif name.lower() in seen:
            errors.append(f"Duplicate rule name '{name}'")
        else:
            seen.add(name.lower())

        mapper = str(rule.get("mapper", "epm")).strip().lower()
        if mapper not in SUPPORTED_MAPPERS:
            errors.append(
                f"rules[{i}].mapper '{mapper}' is not supported (use one of: {', '.join(SUPPORTED_MAPPERS)})"
            )

        if not str(rule.get("file_template", "")).strip():
            errors.append(f"rules[{i}].file_template is required")

        if not all(str(rule.get(key, "")).strip() for key in ("project", "activity", "skill")):
            errors.append(f"rules[{i}] requires project/activity/skill names")

        try:
            ids_ok = all(int(rule.get(key, 0)) > 0 for key in ("project_id", "activity_id", "skill_id"))
        except (TypeError, ValueError):
            ids_ok = False
        if not ids_ok:
            errors.append(f"rules[{i}] requires project_id/activity_id/skill_id > 0")

    return errors


def load_config_safe(path: str = CONFIG_FILE) -> dict | None:
    """Load config with user-friendly error messages.

    Returns:
        Config dict if valid, None if errors occurred.
    """
    if not os.path.exists(path):
        print(f"[!] ERROR: {path} not found!")
        print()
        print("    Create config.json based on config.example.json:")
        print("    $ cp config.example.json config.json")
        print()
        return None

    try:
        config = load_config(path)
    except json.JSONDecodeError as e:
        print(f"[!] ERROR: {path} is not valid JSON!")
        print(f"    Line {e.lineno}, column {e.colno}: {e.msg}")
        print()
        print("    Check for missing commas, quotes, or brackets.")
        return None

    errors = validate_config(config)
    if errors:
        print(f"[!] ERROR: {path} is incomplete:")
        for err in errors:
            print(f"    - {err}")
        print()
        print("    See config.example.json for the required structure.")
        return None

    return config


def resolve_onepoint_urls(url: str) -> tuple[str, str, str]:
    """Split a configured OnePoint URL into (api base, home URL, host)."""
    parsed = urlparse(url.strip())
    if not parsed.scheme or not parsed.hostname:
        raise ValueError(f"Invalid OnePoint URL {url!r}")
    base = f"{parsed.scheme}://{parsed.netloc}"
    return base, base + HOME_PATH, parsed.hostname


def default_state_file() -> str:
    return os.path.expanduser(STATE_FILE)


# ============================================================================
# Time helpers
# ============================================================================


def to_local(value: datetime) -> datetime:
    """Convert an aware datetime to local time; naive values are already local."""
    if value.tzinfo is None:
        return value
    return value.astimezone()


def start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def same_day(a: datetime, b: datetime) -> bool:
    return a.date() == b.date()


def minutes_from_midnight(value: datetime) -> int:
    return value.hour * 60 + value.minute


def format_day(day: datetime) -> str:
    """Format a day in the OnePoint wire format (DD-MM-YYYY)."""
    return day.strftime(WIRE_DAY_FORMAT)


def parse_day(value: str) -> datetime:
    value = value.strip()
    if not Patterns.WIRE_DAY.match(value):
        raise ValueError(f"Invalid day {value!r}, expected DD-MM-YYYY")
    return datetime.strptime(value, WIRE_DAY_FORMAT)


def parse_cli_day(value: str) -> datetime:
    value = value.strip()
    if not Patterns.DATE_FORMAT.match(value):
        raise ValueError(f"Invalid date {value!r}, expected YYYY-MM-DD")
    return datetime.strptime(value, "%Y-%m-%d")


def format_minutes(value: int | None) -> str:
    """Render minutes from midnight as HH:MM."""
    if value is None:
        return "?"
    if value < 0:
        return str(value)
    return f"{value // 60:02d}:{value % 60:02d}"


# ============================================================================
# Name normalization
# ============================================================================


def normalize_name(value: str) -> str:
    return Patterns.WHITESPACE.sub(" ", (value or "").strip()).lower()


def normalize_mapper(value: str) -> str:
    return (value or "").strip().lower()
