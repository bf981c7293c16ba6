"""Utility functions."""

from tapback.utils.helpers import ensure_dir, safe_filename, truncate_string

__all__ = ["ensure_dir", "safe_filename", "truncate_string"]
