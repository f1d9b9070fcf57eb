"""Utility functions for disco."""

import os
from pathlib import Path


def ensure_dir(path: Path) -> Path:
    """Ensure a directory exists, creating it if necessary."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_path() -> Path:
    """Get the disco data directory (~/.disco or DISCO_DATA_DIR)."""
    override = (os.environ.get("DISCO_DATA_DIR") or "").strip() or None
    return ensure_dir(Path(override) if override else Path.home() / ".disco")


def format_duration(total_seconds: int) -> str:
    """
    Format a duration for the timer display.

    Returns ``M:SS`` below one hour and ``H:MM:SS`` from one hour on.
    Negative input is clamped to zero.
    """
    s = max(0, int(total_seconds))
    hours = s // 3600
    minutes = (s % 3600) // 60
    seconds = s % 60
    if hours > 0:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes}:{seconds:02d}"
