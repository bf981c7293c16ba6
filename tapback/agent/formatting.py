"""Turn model output into text-message-shaped strings."""

import re

from tapback.agent.plan import MESSAGE_DELIMITER

_LIST_DASH_RE = re.compile(r"\n\s*-\s*")
_UNDERSCORE_RE = re.compile(r"(?<!\w)_([^_]+)_(?!\w)")
_BOLD_RE = re.compile(r"\*\*([^*]+)\*\*")
_ASTERISK_RE = re.compile(r"(?<!\w)\*([^*]+)\*(?!\w)")
_SPACES_RE = re.compile(r"  +")
_BLANK_LINES_RE = re.compile(r"\n{3,}")


def clean_message(text: str) -> str:
    """Strip markdown leftovers the model slips into a text message."""
    t = _LIST_DASH_RE.sub(" - ", text)
    t = _UNDERSCORE_RE.sub(r"\1", t)
    t = _BOLD_RE.sub(r"\1", t)
    t = _ASTERISK_RE.sub(r"\1", t)
    t = _SPACES_RE.sub(" ", t)
    t = _BLANK_LINES_RE.sub("\n\n", t)
    return t.strip()


def split_messages(text: str | None) -> list[str]:
    """Split on the delimiter first (cleaning would mangle it), then clean each part."""
    if not text:
        return []
    parts = (clean_message(part) for part in text.split(MESSAGE_DELIMITER))
    return [part for part in parts if part]
