"""CLI entry point for Nexus."""

import asyncio
import json
import signal
from pathlib import Path
from typing import Optional

import click
import structlog

from ..config.key_store import ApiKeyStore, KeyValueStore
from ..config.settings import settings
from ..core.conversation_store import ConversationStore
from ..core.errors import DeviceUnavailableError, UnauthorizedError
from ..core.models import SystemConfig
from ..core.oneshot import run_one_shot
from ..core.voice_session import VoiceSession, VoiceSessionMachine, VoiceStatus
from ..providers import registry
from ..providers.gateway.base import AssistantGateway
from ..utils.formatting import render_message
from ..utils.logging import setup_logging


logger = structlog.get_logger()


MOCK_UTTERANCES = [
    "Hello, how are you today?",
    "Tell me something interesting.",
]

STATUS_LABELS = {
    VoiceStatus.STANDBY: ("READY", "white"),
    VoiceStatus.LISTENING: ("LISTENING", "red"),
    VoiceStatus.PROCESSING: ("PROCESSING", "blue"),
    VoiceStatus.SPEAKING: ("SPEAKING", "green"),
}

CHAT_HELP = (
    "Commands: /new, /list, /switch N, /rename TITLE, /delete, /help, /quit"
)


def get_key_store() -> ApiKeyStore:
    return ApiKeyStore(KeyValueStore(settings.storage.key_path))


def load_system_config() -> SystemConfig:
    """Stored API key plus the configured remote endpoint."""
    return SystemConfig(
        user_api_key=get_key_store().load(),
        remote_endpoint=settings.gateway.remote_endpoint,
    )


def build_gateway(mock: bool, config: SystemConfig) -> AssistantGateway:
    """Create the configured gateway, or the mock gateway in mock mode."""
    if mock:
        from mocks.providers import MockGateway

        return MockGateway(api_key=config.user_api_key)

    options = {"api_key": config.user_api_key}
    if settings.gateway.provider == "remote" and config.remote_endpoint:
        options["endpoint"] = config.remote_endpoint
    return registry.get_gateway(settings.gateway.provider, **options)


def validate_gateway(ctx, param, value):
    """Validate gateway selection."""
    if value is None:
        return value
    valid = registry.list_gateways()
    if value not in valid:
        raise click.BadParameter(
            f"Invalid gateway '{value}'. Available options: {', '.join(valid)}"
        )
    return value


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--mock", is_flag=True, help="Use mock gateway and devices (no API calls)")
@click.option(
    "--config", type=click.Path(exists=True), help="Path to configuration file"
)
@click.option(
    "--gateway", callback=validate_gateway, default=None, help="Gateway to use"
)
@click.pass_context
def cli(ctx, debug: bool, mock: bool, config: Optional[str], gateway: Optional[str]):
    """Nexus: chat and live voice sessions with an assistant."""
    if config:
        settings.config_file = Path(config)
        settings.load_from_file()
    if gateway:
        settings.gateway.provider = gateway

    setup_logging(
        debug=debug,
        log_file=settings.logging.file_enabled,
        log_level=settings.logging.level,
        log_format=settings.logging.format,
        log_dir=settings.logging.log_dir,
        file_rotation_mb=settings.logging.file_rotation_mb,
        file_backup_count=settings.logging.file_backup_count,
    )

    for issue in settings.validate():
        logger.warning("Configuration issue", issue=issue)

    ctx.ensure_object(dict)
    ctx.obj["mock"] = mock


@cli.command()
@click.pass_context
def chat(ctx):
    """Start an interactive chat session."""
    gateway = build_gateway(ctx.obj["mock"], load_system_config())
    store = ConversationStore(gateway)
    asyncio.run(_chat_loop(store))


async def _chat_loop(store: ConversationStore) -> None:
    thread = store.start()
    click.echo(click.style(f"💬 {thread.title}", fg="green", bold=True))
    click.echo(CHAT_HELP)
    for message in thread.messages:
        click.echo(render_message(message))

    try:
        while True:
            try:
                text = click.prompt("\n>", prompt_suffix=" ", default="", show_default=False)
            except click.Abort:
                break

            if not text.strip():
                continue
            if text.startswith("/"):
                if not _run_chat_command(store, text):
                    break
                continue

            thread = store.active_thread
            before = len(thread.messages)
            if not await store.send_user_text(thread.id, text):
                click.echo(click.style("Still waiting for the previous reply.", fg="yellow"))
                continue
            for message in thread.messages[before + 1:]:
                click.echo(render_message(message))
    finally:
        await store.gateway.close()

    click.echo("\n👋 Goodbye!")


def _run_chat_command(store: ConversationStore, line: str) -> bool:
    """Handle a slash command. Returns False when the session should end."""
    command, _, argument = line.partition(" ")
    argument = argument.strip()

    if command in ("/quit", "/exit"):
        return False

    if command == "/help":
        click.echo(CHAT_HELP)
    elif command == "/new":
        thread = store.create_thread()
        click.echo(click.style(f"💬 {thread.title}", fg="green", bold=True))
        click.echo(render_message(thread.messages[0]))
    elif command == "/list":
        for index, thread in enumerate(store.threads, start=1):
            marker = "*" if thread.id == store.active_id else " "
            click.echo(f"{marker} {index}. {thread.title} ({len(thread.messages)} messages)")
    elif command == "/switch":
        threads = store.threads
        if not argument.isdigit() or not 1 <= int(argument) <= len(threads):
            click.echo(click.style(f"Pick a conversation between 1 and {len(threads)}.", fg="red"))
        else:
            thread = threads[int(argument) - 1]
            store.select_thread(thread.id)
            click.echo(click.style(f"💬 {thread.title}", fg="green", bold=True))
            for message in thread.messages:
                click.echo(render_message(message))
    elif command == "/rename":
        if store.rename_thread(store.active_id, argument):
            click.echo(f"Renamed to {argument}")
        else:
            click.echo(click.style("Usage: /rename TITLE", fg="red"))
    elif command == "/delete":
        store.delete_thread(store.active_id)
        click.echo(f"Deleted. Now in: {store.active_thread.title}")
    else:
        click.echo(click.style(f"Unknown command {command}. {CHAT_HELP}", fg="red"))
    return True


@cli.command()
@click.option(
    "--max-turns",
    type=int,
    default=None,
    help="Stop after this many spoken replies (default: run until Ctrl+C)",
)
@click.pass_context
def live(ctx, max_turns: Optional[int]):
    """Start a live voice session."""
    mock = ctx.obj["mock"]
    gateway = build_gateway(mock, load_system_config())

    if mock:
        from mocks.providers import MockCaptureDevice, MockPlaybackDevice

        capture = MockCaptureDevice(script=MOCK_UTTERANCES)
        playback = MockPlaybackDevice(auto_finish=True)
        if max_turns is None:
            max_turns = len(MOCK_UTTERANCES)
        click.echo(click.style("⚠️  Running in MOCK mode - no API calls will be made", fg="yellow"))
    else:
        try:
            capture = registry.get_capture_device(settings.voice.capture_provider)
            playback = registry.get_playback_device(settings.voice.playback_provider)
        except (ImportError, OSError) as e:
            # sounddevice raises OSError when PortAudio is missing
            logger.error("Could not load audio providers", error=str(e))
            click.echo(click.style(f"❌ Audio Hardware Unavailable: {e}", fg="red"), err=True)
            ctx.exit(1)
            return

    machine = VoiceSessionMachine(
        capture,
        playback,
        gateway,
        locale=settings.voice.locale,
        preferred_voice=settings.voice.preferred_voice,
    )

    try:
        turns = asyncio.run(_live_loop(machine, max_turns))
    except DeviceUnavailableError as e:
        click.echo(click.style(f"❌ Audio Hardware Unavailable: {e}", fg="red"), err=True)
        ctx.exit(1)
        return

    click.echo(f"\nTurns completed: {turns}")
    click.echo("👋 Goodbye!")


async def _live_loop(machine: VoiceSessionMachine, max_turns: Optional[int]) -> int:
    done = asyncio.Event()
    turns = 0

    def on_change(session: VoiceSession) -> None:
        nonlocal turns
        label, color = STATUS_LABELS[session.status]
        if session.status is VoiceStatus.PROCESSING:
            click.echo(f'🎙️  "{session.live_transcript}"')
        elif session.status is VoiceStatus.SPEAKING:
            turns += 1
            click.echo(f"🔊 {session.last_reply}")
        click.echo(click.style(f"[{label}]", fg=color))

        if max_turns is not None and turns >= max_turns and session.status is VoiceStatus.LISTENING:
            done.set()

    machine.add_listener(on_change)
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, done.set)
    except (NotImplementedError, RuntimeError, ValueError):
        # Signal handlers only work on the main thread of a Unix loop
        pass

    machine.start_session()
    click.echo("Press Ctrl+C to stop the session.\n")
    try:
        await done.wait()
    finally:
        machine.stop_session()
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError, ValueError):
            pass
        await machine.wait_for_reply()
        await machine.gateway.close()
    return turns


@cli.command()
@click.option("--key", "-k", required=True, help="API key generated with 'nexus key generate'")
@click.option("--prompt", "-p", "-q", "prompt", required=True, help="Prompt to send")
@click.pass_context
def ask(ctx, key: str, prompt: str):
    """Make one authenticated request and print the raw JSON reply."""
    gateway = build_gateway(ctx.obj["mock"], load_system_config())

    async def run():
        try:
            return await run_one_shot(gateway, key, prompt)
        finally:
            await gateway.close()

    try:
        reply = asyncio.run(run())
    except UnauthorizedError as e:
        click.echo(click.style(str(e), fg="red"), err=True)
        ctx.exit(1)
        return
    except Exception as e:
        logger.error("One-shot request failed", error=str(e))
        click.echo(json.dumps({"error": str(e)}, indent=2))
        ctx.exit(1)
        return

    click.echo(json.dumps(reply.to_dict(), indent=2, ensure_ascii=False))


@cli.group()
def key():
    """Manage the API key used by 'nexus ask'."""


@key.command("show")
def key_show():
    """Show the current API key."""
    current = get_key_store().load()
    click.echo(current or "Not generated")


@key.command("generate")
def key_generate():
    """Generate (or regenerate) the API key."""
    config = load_system_config().with_key(get_key_store().regenerate())
    click.echo(click.style(config.user_api_key, fg="green"))
    click.echo("Keep this key private. It allows external access to the Nexus engine.")


@cli.command()
def providers():
    """List available providers."""
    click.echo("🔌 Available Providers")
    click.echo("-" * 50)

    for title, names in (
        ("Gateways", registry.list_gateways()),
        ("Capture devices", registry.list_capture_devices()),
        ("Playback devices", registry.list_playback_devices()),
    ):
        click.echo(f"\n{title} ({len(names)})")
        for name in names:
            click.echo(f"  - {name}")


if __name__ == "__main__":
    cli()
