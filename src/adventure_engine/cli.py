"""
Command-line interface for Adventure-Engine.
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

import structlog

from .config import get_settings
from .errors import AdventureEngineError, map_error
from .session import (
    ErrorEvent,
    ResponseDelta,
    ResponseEnd,
    SessionEvent,
    SessionManager,
    StatusEvent,
    StatusKind,
    ToolStatus,
)

logger = structlog.get_logger()


def configure_logging(level: str = "INFO") -> None:
    """Route structlog through stdlib logging with console rendering."""
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level.upper())
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def main() -> None:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        prog="adventure-engine",
        description="Adventure-Engine - turn-based text adventures with an AI game master",
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL for this run")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("new", help="Create a new adventure and print its id")

    play_parser = subparsers.add_parser("play", help="Play an adventure in the console")
    play_parser.add_argument("session_id", help="Adventure id (from 'new')")

    compact_parser = subparsers.add_parser("compact", help="Compact an adventure's history now")
    compact_parser.add_argument("session_id", help="Adventure id")

    subparsers.add_parser("list", help="List stored adventures")

    config_parser = subparsers.add_parser("config", help="Show configuration")
    config_parser.add_argument("--check", action="store_true", help="Check configuration validity")

    subparsers.add_parser("init", help="Initialize (create .env and data directory)")

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    settings = get_settings()
    default_level = "DEBUG" if settings.debug else settings.log_level
    if args.command == "play" and not settings.debug:
        default_level = "WARNING"
    configure_logging(args.log_level or default_level)

    try:
        if args.command == "new":
            asyncio.run(new_session())
        elif args.command == "play":
            asyncio.run(play(args.session_id))
        elif args.command == "compact":
            asyncio.run(compact_session(args.session_id))
        elif args.command == "list":
            asyncio.run(list_sessions())
        elif args.command == "config":
            show_config(args.check)
        elif args.command == "init":
            init_engine()
        else:
            parser.print_help()
    except AdventureEngineError as e:
        details = map_error(e)
        print(f"❌ {details.user_message}", file=sys.stderr)
        logger.debug("Command failed", error_code=details.code, technical_details=details.technical_details)
        sys.exit(1)


async def new_session() -> None:
    """Create a new adventure."""
    manager = SessionManager()
    session = await manager.create_session()
    print(session.session_id)


async def list_sessions() -> None:
    """List stored adventures."""
    manager = SessionManager()
    session_ids = await manager.list_sessions()

    if not session_ids:
        print("No adventures yet. Run: adventure-engine new")
        return

    print(f"\n{'Adventure ID':<40} {'Entries':<10} {'Last Active':<25}")
    print("-" * 75)

    for session_id in session_ids:
        record = await manager.store.get(session_id)
        if record is None:
            continue
        last_active = record.last_active_at.strftime("%Y-%m-%d %H:%M:%S")
        print(f"{session_id:<40} {len(record.entries):<10} {last_active:<25}")


async def compact_session(session_id: str) -> None:
    """Run a manual compaction."""
    manager = SessionManager()
    session = await manager.open_session(session_id)
    await session.wait_idle()

    before = len(session.history)
    if await session.compact_now():
        print(f"✅ Compacted {before} entries down to {len(session.history)}")
    else:
        print("ℹ️  Nothing was compacted")


class ConsoleSink:
    """Renders session events on stdout."""

    async def __call__(self, event: SessionEvent) -> None:
        if isinstance(event, ResponseDelta):
            print(event.text, end="", flush=True)
        elif isinstance(event, ResponseEnd):
            print(" [interrupted]" if event.truncated else "", flush=True)
            print()
        elif isinstance(event, ToolStatus):
            if event.state == "active":
                print(f"\n({event.description})", flush=True)
        elif isinstance(event, StatusEvent):
            if event.kind == StatusKind.RECOVERY_STARTED:
                print("\n(Reconnecting to your adventure...)", flush=True)
            elif event.kind == StatusKind.COMPACTION_STARTED:
                print("(Condensing your adventure history...)", flush=True)
            elif event.kind == StatusKind.INPUTS_DISCARDED:
                print(f"(Discarded {event.detail} queued input(s))", flush=True)
        elif isinstance(event, ErrorEvent):
            hint = " You can try again." if event.retryable else ""
            print(f"\n⚠️  {event.message}{hint}", flush=True)


async def play(session_id: str) -> None:
    """Interactive console loop."""
    manager = SessionManager()
    session = await manager.open_session(session_id, sink=ConsoleSink())
    loop = asyncio.get_running_loop()

    def on_interrupt() -> None:
        if session.is_idle:
            print("\n(Type /quit to leave the adventure)", flush=True)
        else:
            loop.create_task(session.abort())

    try:
        loop.add_signal_handler(signal.SIGINT, on_interrupt)
    except (NotImplementedError, RuntimeError):
        logger.debug("Signal handlers unavailable, Ctrl-C will exit")

    print(f"=== Adventure {session_id} ===")
    print(session.record.scene_summary)
    print("Commands: /compact, /quit. Ctrl-C interrupts the game master.\n")

    try:
        while True:
            await session.wait_idle()
            try:
                text = await asyncio.to_thread(input, "> ")
            except EOFError:
                break

            command = text.strip()
            if command == "/quit":
                break
            if command == "/compact":
                if await session.compact_now():
                    print("(History condensed)")
                else:
                    print("(Nothing to condense)")
                continue
            if not command:
                continue

            await session.submit_input(text)
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass
        await manager.close_all()
        print("Farewell, adventurer.")


def show_config(check: bool) -> None:
    """Show current configuration."""
    settings = get_settings()

    def mask(value: str) -> str:
        if not value:
            return "(not set)"
        return value[:4] + "..." + value[-4:] if len(value) > 10 else "****"

    agent_config = settings.get_agent_config()
    summary_config = settings.get_summary_config()

    print("\n=== Adventure-Engine Configuration ===\n")

    print("General:")
    print(f"  Data Dir: {settings.data_dir}")
    print(f"  Debug: {settings.debug}")
    print(f"  Log Level: {settings.log_level}")

    print("\nGame Master:")
    print(f"  Provider: {agent_config.provider}")
    print(f"  Model: {agent_config.model}")
    print(f"  Max Tokens: {agent_config.max_tokens}")

    print("\nSummarizer:")
    print(f"  Provider: {summary_config.provider}")
    print(f"  Model: {summary_config.model}")

    print("\nLLM Keys:")
    print(f"  Anthropic Key: {mask(settings.anthropic_api_key)}")
    print(f"  OpenAI Key: {mask(settings.openai_api_key)}")

    print("\nHistory:")
    print(f"  Compaction Threshold: {settings.compaction_char_threshold} chars")
    print(f"  Retained Entries: {settings.retained_entry_count}")
    print(f"  Input Timeout: {settings.input_timeout_seconds:g}s")

    if check:
        print("\n=== Configuration Check ===\n")
        errors = []
        warnings = []

        for role, config in (("Game master", agent_config), ("Summarizer", summary_config)):
            if config.provider != "mock" and not config.api_key:
                errors.append(f"{role} uses {config.provider} but {config.provider.upper()}_API_KEY is not set")

        if agent_config.provider == "anthropic":
            warnings.append("The anthropic provider cannot resume conversations; full context is replayed each turn")
        if agent_config.provider == "mock":
            warnings.append("Game master is the offline mock provider")

        if errors:
            print("❌ Errors:")
            for e in errors:
                print(f"   - {e}")

        if warnings:
            print("⚠️  Warnings:")
            for w in warnings:
                print(f"   - {w}")

        if not errors and not warnings:
            print("✅ Configuration looks good!")
        elif not errors:
            print("\n✅ Configuration is valid (with warnings)")
        else:
            print("\n❌ Configuration has errors - fix them before playing")


def init_engine() -> None:
    """Create a starter .env and the data directory."""
    env_file = Path(".env")
    data_dir = Path("data")

    data_dir.mkdir(exist_ok=True)

    if not env_file.exists():
        env_content = """# Adventure-Engine Configuration

# LLM API Keys (set the ones your providers need)
ANTHROPIC_API_KEY=
OPENAI_API_KEY=

# Game master (anthropic | openai | mock)
AGENT_PROVIDER=anthropic
# AGENT_MODEL=claude-sonnet-4-20250514

# Summarizer used for history compaction
SUMMARY_PROVIDER=anthropic
# SUMMARY_MODEL=claude-3-5-haiku-latest

# History
COMPACTION_CHAR_THRESHOLD=100000
RETAINED_ENTRY_COUNT=20

# Turns
INPUT_TIMEOUT_SECONDS=60
MAX_INPUT_LENGTH=2000

# Storage
DATA_DIR=./data
LOG_LEVEL=INFO
"""
        env_file.write_text(env_content)
        print(f"✅ Created {env_file}")
    else:
        print(f"ℹ️  {env_file} already exists")

    print(f"✅ Created {data_dir}")
    print("\n=== Next Steps ===")
    print("1. Edit .env and add an API key (or set AGENT_PROVIDER=mock to play offline)")
    print("2. Run: adventure-engine new")
    print("3. Run: adventure-engine play <adventure id>")


if __name__ == "__main__":
    main()
