"""Utility functions for disco."""

from disco.utils.helpers import ensure_dir, format_duration, get_data_path

__all__ = ["ensure_dir", "format_duration", "get_data_path"]
