"""Local console transport used by ``tapback chat``."""

from rich.console import Console

from tapback import __logo__
from tapback.agent.types import ChatInfo, MessageEffect, Reaction
from tapback.channels.base import BaseChannel


class ConsoleChannel(BaseChannel):
    """
    Renders outbound actions to a rich console.

    The roster is fixed at construction so a group conversation can be
    simulated by passing more than two handles.
    """

    name = "console"

    def __init__(
        self,
        console: Console | None = None,
        handles: list[str] | None = None,
        display_name: str | None = None,
    ):
        self.console = console or Console()
        self.handles = list(handles or ["+15550000000", "+15550000001"])
        self.display_name = display_name

    async def send_message(
        self,
        chat_id: str,
        text: str,
        effect: MessageEffect | None = None,
        reply_to: str | None = None,
        media_urls: list[str] | None = None,
    ) -> None:
        tags = []
        if effect:
            tags.append(f"{effect.family.value}:{effect.name}")
        if reply_to:
            tags.append(f"reply to {reply_to}")
        suffix = f" [dim]({', '.join(tags)})[/dim]" if tags else ""
        if text:
            self.console.print(f"{__logo__} {text}{suffix}", highlight=False)
        for url in media_urls or []:
            self.console.print(f"{__logo__} [cyan]🖼  {url}[/cyan]{suffix if not text else ''}")

    async def send_reaction(self, message_id: str, reaction: Reaction) -> None:
        self.console.print(f"[magenta]  ↳ reacted {reaction.display} to {message_id}[/magenta]")

    async def mark_read(self, chat_id: str) -> None:
        return None

    async def start_typing(self, chat_id: str) -> None:
        self.console.print("[dim]  ...[/dim]")

    async def get_chat(self, chat_id: str) -> ChatInfo:
        return ChatInfo(chat_id=chat_id, handles=list(self.handles), display_name=self.display_name)

    async def rename_chat(self, chat_id: str, name: str) -> None:
        self.display_name = name
        self.console.print(f"[yellow]  chat renamed to \"{name}\"[/yellow]")

    async def set_chat_icon(self, chat_id: str, image_url: str) -> None:
        self.console.print(f"[yellow]  group icon set: {image_url}[/yellow]")

    async def share_contact_card(self, chat_id: str) -> None:
        self.console.print("[dim]  (contact card shared)[/dim]")
