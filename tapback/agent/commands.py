"""Control inputs that bypass the model entirely."""

from enum import Enum

from loguru import logger

from tapback.store.base import MemoryStore


class Command(str, Enum):
    HELP = "help"
    CLEAR = "clear"
    FORGET = "forget"


_COMMANDS: dict[str, Command] = {
    "/help": Command.HELP,
    "/clear": Command.CLEAR,
    "/reset": Command.CLEAR,
    "/forget me": Command.FORGET,
    "/forgetme": Command.FORGET,
}

HELP_TEXT = (
    "commands:\n"
    "/clear - reset our conversation\n"
    "/forget me - erase what i know about you\n"
    "/help - this message"
)
CLEARED_TEXT = "conversation cleared, fresh start 🧹"
FORGOTTEN_TEXT = "done, i've forgotten everything about you. we're strangers now 👋"
FORGET_UNKNOWN_TEXT = "hmm couldn't figure out who you are to forget you"
FORGET_FAILED_TEXT = "hmm something went wrong forgetting you, try again?"


def parse_command(text: str | None) -> Command | None:
    """Match a control input (case-insensitive, surrounding whitespace ignored)."""
    return _COMMANDS.get((text or "").strip().lower())


async def run_command(
    command: Command,
    store: MemoryStore,
    conversation_id: str,
    sender: str | None,
) -> str:
    """Apply a control input and return the fixed reply."""
    if command is Command.HELP:
        return HELP_TEXT

    if command is Command.CLEAR:
        await store.clear_history(conversation_id)
        logger.info(f"Cleared conversation {conversation_id}")
        return CLEARED_TEXT

    if not sender:
        return FORGET_UNKNOWN_TEXT
    if await store.clear_profile(sender):
        return FORGOTTEN_TEXT
    return FORGET_FAILED_TEXT
