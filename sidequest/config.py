"""
Engine configuration persistence.

Stores tracking thresholds and context-budget tunables in a JSON file
inside the data directory. Missing or unreadable files fall back to defaults.
"""

import json
import logging
import os
from pathlib import Path
from typing import TypedDict

logger = logging.getLogger(__name__)


class Config(TypedDict, total=False):
    """Engine configuration."""
    min_distance_meters: float      # Record if moved at least this far
    min_interval_seconds: float     # Or if this much time passed
    max_accuracy_meters: float      # Samples worse than this are noise
    watch_timeout_seconds: float    # Per-fix timeout for continuous watch
    refresh_timeout_seconds: float  # One-shot refresh tolerates more latency
    image_tokens: int               # Estimated cost per embedded image
    history_full_limit: int         # Newest quests rendered in full
    history_summary_limit: int      # Older quests rendered as one line each
    journey_sample_points: int      # GPS points shown in the journey section


DEFAULT_CONFIG: Config = {
    "min_distance_meters": 20.0,
    "min_interval_seconds": 30.0,
    "max_accuracy_meters": 50.0,
    "watch_timeout_seconds": 10.0,
    "refresh_timeout_seconds": 15.0,
    "image_tokens": 2500,
    "history_full_limit": 10,
    "history_summary_limit": 40,
    "journey_sample_points": 20,
}

CONFIG_FILENAME = ".sidequest_config.json"


def get_data_dir(data_dir: Path | str | None = None) -> Path:
    """Resolve the data directory (argument, then SIDEQUEST_DATA_DIR, then ./sidequest_data)."""
    if data_dir is not None:
        return Path(data_dir)
    return Path(os.environ.get("SIDEQUEST_DATA_DIR", "sidequest_data"))


def get_config_path(data_dir: Path | str | None = None) -> Path:
    """Get path to config file."""
    return get_data_dir(data_dir) / CONFIG_FILENAME


def load_config(data_dir: Path | str | None = None) -> Config:
    """Load config from file, or return defaults if not found."""
    path = get_config_path(data_dir)

    if not path.exists():
        return DEFAULT_CONFIG.copy()

    try:
        with open(path, "r", encoding="utf-8") as f:
            saved = json.load(f)
        # Merge with defaults to handle missing keys
        config = DEFAULT_CONFIG.copy()
        config.update({k: v for k, v in saved.items() if k in DEFAULT_CONFIG})
        return config
    except (json.JSONDecodeError, AttributeError, OSError) as e:
        logger.warning(f"Ignoring unreadable config {path}: {e}")
        return DEFAULT_CONFIG.copy()


def save_config(config: Config, data_dir: Path | str | None = None) -> bool:
    """Save config to file. Returns True on success."""
    path = get_config_path(data_dir)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(config, f, indent=2)
        return True
    except OSError as e:
        logger.warning(f"Could not save config to {path}: {e}")
        return False


def set_value(key: str, value: float | int, data_dir: Path | str | None = None) -> bool:
    """Update a single known setting. Unknown keys are rejected."""
    if key not in DEFAULT_CONFIG:
        return False
    config = load_config(data_dir)
    config[key] = value
    return save_config(config, data_dir)
