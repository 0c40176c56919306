"""Pre-DB bootstrap configuration. Zero imports from the rest of the app.

Stores user preferences that must be known before opening the DB (db_folder,
log_level) and the tunable goal temperature thresholds.
Config lives in ~/.billfold/config.json to avoid a bootstrapping problem.
"""
import json
import os
from pathlib import Path

CONFIG_DIR = Path.home() / ".billfold"
CONFIG_FILE = CONFIG_DIR / "config.json"

DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_GOAL_THRESHOLDS = {"on_track_ratio": 0.75, "ahead_ratio": 1.10}


def load_config() -> dict:
    """Returns {} on missing or corrupt file, never raises."""
    try:
        with open(CONFIG_FILE, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError):
        return {}
    return data if isinstance(data, dict) else {}


def save_config(config: dict) -> None:
    """Creates ~/.billfold/ if needed; atomic write via .tmp + os.replace()."""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    tmp = CONFIG_FILE.with_suffix(".tmp")
    try:
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(config, f, indent=2)
        os.replace(tmp, CONFIG_FILE)
    except OSError:
        tmp.unlink(missing_ok=True)
        raise


def get_db_folder() -> str | None:
    """Return config["db_folder"] or None if not set."""
    return load_config().get("db_folder")


def set_db_folder(path: str | None) -> None:
    """Update db_folder in config and save."""
    config = load_config()
    if path is None:
        config.pop("db_folder", None)
    else:
        config["db_folder"] = path
    save_config(config)


def get_log_level() -> str:
    level = load_config().get("log_level") or DEFAULT_LOG_LEVEL
    return str(level).upper()


def get_goal_thresholds() -> tuple[float, float]:
    """Return (on_track_ratio, ahead_ratio); bad values fall back to defaults."""
    raw = load_config().get("goal_thresholds") or {}
    try:
        on_track = float(raw.get("on_track_ratio", DEFAULT_GOAL_THRESHOLDS["on_track_ratio"]))
        ahead = float(raw.get("ahead_ratio", DEFAULT_GOAL_THRESHOLDS["ahead_ratio"]))
    except (TypeError, ValueError, AttributeError):
        return DEFAULT_GOAL_THRESHOLDS["on_track_ratio"], DEFAULT_GOAL_THRESHOLDS["ahead_ratio"]
    if on_track <= 0 or ahead < on_track:
        return DEFAULT_GOAL_THRESHOLDS["on_track_ratio"], DEFAULT_GOAL_THRESHOLDS["ahead_ratio"]
    return on_track, ahead
