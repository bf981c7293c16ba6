"""Utility functions for tapback."""

from pathlib import Path
from urllib.parse import quote


def ensure_dir(path: Path) -> Path:
    """Ensure a directory exists, creating it if necessary."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def truncate_string(s: str | None, max_len: int = 50, suffix: str = "...") -> str:
    """Truncate a string to max length, adding suffix if truncated."""
    s = s or ""
    if len(s) <= max_len:
        return s
    return s[:max_len] + suffix


def safe_filename(name: str) -> str:
    """Percent-encode a string into a filename. Distinct names never collide."""
    return quote(name, safe="") or "%"
