"""Image history enumeration."""

from .history import MISSING_LAYER_ID, HistoryEntry, load_image_history, parse_history_lines

__all__ = ["HistoryEntry", "MISSING_LAYER_ID", "load_image_history", "parse_history_lines"]
