"""CLI commands for tapback."""

import asyncio
import itertools
import sys
from datetime import datetime

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from tapback import __logo__, __version__

app = typer.Typer(
    name="tapback",
    help=f"{__logo__} tapback - text message bridge for a language model",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} tapback v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-V", callback=version_callback, is_eager=True
    ),
):
    """tapback - text message bridge for a language model."""
    pass


def _configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level)


# ============================================================================
# Onboard / Setup
# ============================================================================


@app.command()
def onboard():
    """Initialize tapback configuration and data directory."""
    from tapback.config.loader import get_config_path, get_env_path, read_secrets, save_config
    from tapback.config.schema import Config
    from tapback.utils.helpers import ensure_dir

    config_path = get_config_path()

    if config_path.exists():
        console.print(f"[yellow]Config already exists at {config_path}[/yellow]")
        if not typer.confirm("Overwrite?"):
            raise typer.Exit()

    config = Config()
    save_config(config)
    console.print(f"[green]✓[/green] Created config at {config_path}")
    console.print(f"[green]✓[/green] Created secrets file at {get_env_path()} (mode 600)")
    kept = read_secrets()
    if kept:
        console.print(f"[green]✓[/green] Kept {len(kept)} existing secret(s)")

    data_dir = ensure_dir(config.data_path)
    console.print(f"[green]✓[/green] Created data directory at {data_dir}")

    console.print(f"\n{__logo__} tapback is ready!")
    console.print("\nNext steps:")
    console.print("  1. Add your keys to [cyan]~/.tapback/.env[/cyan]")
    console.print("     TAPBACK_PROVIDERS__ANTHROPIC__API_KEY=sk-ant-xxx")
    console.print("     TAPBACK_PROVIDERS__OPENAI__API_KEY=sk-xxx  (images + voice memos)")
    console.print("     TAPBACK_LINQ__TOKEN=xxx")
    console.print("  2. Try it locally: [cyan]tapback chat[/cyan]")
    console.print("  3. Serve the webhook: [cyan]tapback serve[/cyan]")


# ============================================================================
# Shared Bridge Factory
# ============================================================================


def _create_provider(config):
    """Create the chat provider, picking credentials from the chat model's family."""
    from tapback.providers.litellm_provider import LiteLLMProvider

    model = config.models.chat
    if "gpt" in model or model.startswith("openai/"):
        creds, env_name = config.providers.openai, "OPENAI"
    else:
        creds, env_name = config.providers.anthropic, "ANTHROPIC"

    if not creds.api_key:
        console.print(f"[red]Error: No API key configured for {model}.[/red]")
        console.print(f"Set one in ~/.tapback/.env: TAPBACK_PROVIDERS__{env_name}__API_KEY=your-key")
        raise typer.Exit(1)

    return LiteLLMProvider(api_key=creds.api_key, api_base=creds.api_base, default_model=model)


def _create_bridge(config, transport, store):
    """Wire provider, media adapters, orchestrator, triage and dispatcher.

    Shared by ``serve`` and ``chat`` so component wiring lives in one place.
    """
    from tapback.agent.bridge import Bridge, ContactCardCadence
    from tapback.agent.context import ContextBuilder
    from tapback.agent.dispatcher import ActionDispatcher
    from tapback.agent.orchestrator import TurnOrchestrator
    from tapback.agent.triage import GroupTriage

    provider = _create_provider(config)

    transcriber = image_generator = None
    if config.providers.openai.api_key:
        from tapback.media import create_media_adapters

        transcriber, image_generator = create_media_adapters(config)
    else:
        console.print("[yellow]Warning: no OpenAI key, voice memos and image generation are off[/yellow]")

    assistant = config.assistant
    orchestrator = TurnOrchestrator(
        provider=provider,
        store=store,
        transcriber=transcriber,
        context=ContextBuilder(name=assistant.name, display_name=assistant.display_name),
        model=config.models.chat,
        fast_model=config.models.fast,
        max_tokens=config.models.max_tokens,
        temperature=config.models.temperature,
        web_search=config.models.web_search,
    )
    triage = GroupTriage(
        provider=provider,
        store=store,
        assistant_name=assistant.name,
        aliases=assistant.aliases,
        model=config.models.fast,
    )
    dispatcher = ActionDispatcher(
        transport=transport,
        store=store,
        image_generator=image_generator,
        pace_min=config.dispatch.pace_min,
        pace_max=config.dispatch.pace_max,
        image_delay=config.dispatch.image_delay,
    )
    return Bridge(
        transport=transport,
        store=store,
        orchestrator=orchestrator,
        dispatcher=dispatcher,
        triage=triage,
        cadence=ContactCardCadence(assistant.contact_card_interval),
    )


# ============================================================================
# Gateway / Server
# ============================================================================


@app.command()
def serve(
    port: int | None = typer.Option(None, "--port", "-p", help="Webhook port (defaults to config.gateway.port)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Start the webhook server for Linq Blue."""
    import uvicorn

    from tapback.channels.linq import LinqChannel
    from tapback.config.loader import load_config
    from tapback.gateway.api import create_gateway_app
    from tapback.store import create_store

    _configure_logging("DEBUG" if verbose else "INFO")
    config = load_config()

    if not config.linq.token:
        console.print("[red]Error: No Linq token configured.[/red]")
        console.print("Set one in ~/.tapback/.env: TAPBACK_LINQ__TOKEN=your-token")
        raise typer.Exit(1)

    port = port or int(config.gateway.port)
    transport = LinqChannel(config.linq)
    store = create_store(config)
    bridge = _create_bridge(config, transport, store)
    api_app = create_gateway_app(bridge, own_number=config.linq.phone_number)

    console.print(f"{__logo__} Starting tapback on http://{config.gateway.host}:{port}")
    console.print("  POST /webhook  - Linq Blue webhook receiver")
    console.print("  GET  /health   - Health check")
    console.print(f"[green]✓[/green] Store: {config.store.backend}")

    uvicorn.run(api_app, host=config.gateway.host, port=port, log_level="warning", access_log=False)


# ============================================================================
# Local Chat
# ============================================================================


@app.command()
def chat(
    message: str = typer.Option(None, "--message", "-m", help="Send one message and exit"),
    chat_id: str = typer.Option("console", "--chat", "-c", help="Conversation id"),
    sender: str = typer.Option("+15550000001", "--from", "-f", help="Sender handle"),
    participant: list[str] = typer.Option(
        [], "--participant", "-P", help="Extra participant handle (two or more simulate a group)"
    ),
    service: str = typer.Option("iMessage", "--service", help="iMessage, RCS or SMS"),
    persist: bool = typer.Option(False, "--persist", help="Use the configured store instead of memory"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show log output"),
):
    """Talk to the assistant in the terminal."""
    from tapback.agent.types import InboundMessage, MessageService
    from tapback.channels.console import ConsoleChannel
    from tapback.config.loader import load_config
    from tapback.providers.base import ProviderError
    from tapback.store import InMemoryStore, create_store

    _configure_logging("DEBUG" if verbose else "WARNING")
    config = load_config()

    handles = ["+15550000000", sender, *participant]
    transport = ConsoleChannel(console=console, handles=handles)
    if persist:
        store = create_store(config)
    else:
        store = InMemoryStore(
            history_limit=config.store.history_limit,
            conversation_ttl=config.store.conversation_ttl,
        )
    bridge = _create_bridge(config, transport, store)
    ids = itertools.count(1)

    async def send(text: str) -> None:
        msg = InboundMessage(
            chat_id=chat_id,
            sender=sender,
            message_id=f"msg-{next(ids)}",
            text=text,
            service=MessageService.parse(service),
        )
        try:
            await bridge.handle(msg)
        except ProviderError as e:
            console.print(f"[red]Model call failed: {e}[/red]")

    if message:
        asyncio.run(send(message))
        return

    mode = "group" if len(handles) > 2 else "direct"
    console.print(f"{__logo__} Interactive {mode} chat as {sender} (Ctrl+C to exit)\n")

    async def run_interactive():
        while True:
            try:
                user_input = console.input("[bold blue]You:[/bold blue] ")
            except (KeyboardInterrupt, EOFError):
                console.print("\nGoodbye!")
                break
            if user_input.strip():
                await send(user_input)
                console.print()

    asyncio.run(run_interactive())


# ============================================================================
# Memory Commands
# ============================================================================


@app.command()
def reset(chat_id: str = typer.Argument(..., help="Conversation id")):
    """Clear the stored history of a conversation."""
    from tapback.config.loader import load_config
    from tapback.store import create_store

    store = create_store(load_config())
    asyncio.run(store.clear_history(chat_id))
    console.print(f"[green]✓[/green] Cleared history for {chat_id}")


@app.command()
def forget(handle: str = typer.Argument(..., help="Participant handle")):
    """Erase everything remembered about a participant."""
    from tapback.config.loader import load_config
    from tapback.store import create_store

    store = create_store(load_config())
    if asyncio.run(store.clear_profile(handle)):
        console.print(f"[green]✓[/green] Forgot {handle}")
    else:
        console.print(f"[red]Could not clear the profile for {handle}[/red]")
        raise typer.Exit(1)


def _fmt_time(ts: float) -> str:
    return datetime.fromtimestamp(ts).strftime("%Y-%m-%d %H:%M") if ts else "-"


@app.command()
def profile(handle: str = typer.Argument(..., help="Participant handle")):
    """Show what is remembered about a participant."""
    from tapback.config.loader import load_config
    from tapback.store import create_store

    store = create_store(load_config())
    found = asyncio.run(store.get_profile(handle))
    if found is None:
        console.print(f"No profile for {handle}.")
        return

    table = Table(title=f"Profile: {handle}")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Name", found.name or "[dim]unknown[/dim]")
    table.add_row("First seen", _fmt_time(found.first_seen))
    table.add_row("Last seen", _fmt_time(found.last_seen))
    for i, fact in enumerate(found.facts, 1):
        table.add_row(f"Fact {i}", fact)
    console.print(table)


if __name__ == "__main__":
    app()
