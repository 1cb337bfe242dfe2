"""Command-line entry point: hotkey service, one-off corrections and maintenance."""
from __future__ import annotations

import argparse
import asyncio
import getpass
import json
import logging
import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .config_manager import CONFIG_SCHEMA, ConfigManager, validate_config_value
from .exceptions import ValidationError
from .logger import CorrectifyLogger, get_logger
from .models import MODELS, available_models, parse_provider
from .orchestrator import CorrectionOrchestrator
from .prompts import WritingStyle, get_style_options
from .providers import create_corrector
from .secure_keys import FileKeyStore, KeyStore, MemoryKeyStore, migrate_legacy_keys
from .usage_ledger import UsageLedger

logger = get_logger(__name__)

DEFAULT_DATA_DIR = Path.home() / ".correctify"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="correctify",
        description="Correctify - AI-powered text correction from a global shortcut",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose debug output")
    parser.add_argument("-q", "--quiet", action="store_true", help="Suppress all console output except errors")
    parser.add_argument("--log-file", type=str, default=None, help="Write logs to specified file")
    parser.add_argument("--data-dir", type=str, default=None,
                        help="Directory for settings, keys and usage history (default: ~/.correctify)")

    sub = parser.add_subparsers(dest="command")

    sub.add_parser("run", help="Start the hotkey correction service (default)")

    correct = sub.add_parser("correct", help="Correct text once")
    correct.add_argument("text", help="Text to correct, or '-' to read from stdin")
    correct.add_argument("--model", default=None, help="Model id (default: configured model)")
    style_help = "; ".join(f"{option['key']}: {option['description']}" for option in get_style_options())
    correct.add_argument("--style", choices=[style.value for style in WritingStyle], default=None,
                         help=f"Writing style (default: configured style). {style_help}")
    correct.add_argument("--rules", default=None, help="Custom rules (default: configured rules)")
    correct.add_argument("--no-fallback", action="store_true", help="Do not offer a free fallback model")
    correct.add_argument("-y", "--yes", action="store_true", help="Accept the fallback model without asking")

    models = sub.add_parser("models", help="List models")
    models.add_argument("--all", action="store_true", help="Include models without a configured key")

    usage = sub.add_parser("usage", help="Show usage statistics")
    usage.add_argument("--days", type=int, default=None, help="Only count the last N days")
    usage.add_argument("--clear", action="store_true", help="Delete all usage history")
    usage.add_argument("-y", "--yes", action="store_true", help="Do not ask before clearing")
    usage.add_argument("--export", type=str, default=None, metavar="FILE", help="Export history to CSV")

    keys = sub.add_parser("keys", help="Manage provider API keys")
    keys_sub = keys.add_subparsers(dest="keys_command", required=True)
    keys_sub.add_parser("list", help="Show which providers have a key")
    keys_set = keys_sub.add_parser("set", help="Store a key (prompted when VALUE is omitted)")
    keys_set.add_argument("provider")
    keys_set.add_argument("value", nargs="?", default=None)
    keys_delete = keys_sub.add_parser("delete", help="Remove a stored key")
    keys_delete.add_argument("provider")

    settings = sub.add_parser("settings", help="Show or change settings")
    settings_sub = settings.add_subparsers(dest="settings_command", required=True)
    settings_sub.add_parser("show", help="Print current settings")
    settings_set = settings_sub.add_parser("set", help="Change one setting")
    settings_set.add_argument("key", choices=sorted(CONFIG_SCHEMA))
    settings_set.add_argument("value")
    settings_sub.add_parser("reset", help="Restore default settings")

    serve = sub.add_parser("serve", help="Serve the HTTP correction endpoint")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=5000)

    return parser


def configure_logging(args: argparse.Namespace) -> None:
    command = args.command or "run"
    if args.quiet:
        log_level = logging.ERROR
    elif args.verbose:
        log_level = logging.DEBUG
    elif command in ("run", "serve"):
        log_level = logging.INFO
    else:
        log_level = logging.WARNING
    log_file = Path(args.log_file) if args.log_file else None

    CorrectifyLogger.setup(level=log_level, log_file=log_file, console=not args.quiet)
    CorrectifyLogger.set_level(log_level)


class Context:
    """Stores shared by every command, rooted in one data directory."""

    def __init__(self, data_dir: Path) -> None:
        self.data_dir = data_dir
        self.config = ConfigManager(config_dir=data_dir)
        self.key_store: KeyStore = FileKeyStore(data_dir / "keys.json")
        self.ledger = UsageLedger(data_dir / "usage_history.db")

    def orchestrator(self) -> CorrectionOrchestrator:
        return CorrectionOrchestrator(
            self.key_store,
            self.ledger,
            corrector_factory=create_corrector,
            timeout=self.config.get_request_timeout(),
        )


def _confirm(prompt: str, assume_yes: bool) -> bool:
    if assume_yes:
        return True
    try:
        answer = input(f"{prompt} [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def cmd_correct(args: argparse.Namespace, ctx: Context) -> int:
    text = sys.stdin.read() if args.text == "-" else args.text
    settings = ctx.config.snapshot()
    model_id = args.model or settings.model_id
    style = args.style or settings.writing_style
    rules = args.rules if args.rules is not None else (settings.custom_rules or None)
    orchestrator = ctx.orchestrator()

    try:
        outcome = asyncio.run(orchestrator.correct_interactive(text, style, rules, model_id))
        tried = {model_id}
        while not outcome.ok:
            print(f"[ERROR] {outcome.error}", file=sys.stderr)
            if not outcome.error.retryable:
                provider = outcome.provider.value
                print(f"[INFO] Add a key with: correctify keys set {provider}", file=sys.stderr)
            fallback = outcome.fallback_model_id
            if args.no_fallback or not fallback or fallback in tried:
                return 1
            if not _confirm(f"Retry with free model {fallback}?", args.yes):
                return 1
            tried.add(fallback)
            outcome = asyncio.run(orchestrator.retry_with_fallback(outcome))
    except ValidationError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 2

    print(outcome.result.text)
    return 0


def cmd_models(args: argparse.Namespace, ctx: Context) -> int:
    flags = asyncio.run(ctx.key_store.key_flags())
    models = list(MODELS) if args.all else available_models(flags)
    if not models:
        print("No models available. Add an API key with: correctify keys set <provider>")
        return 0

    selected = ctx.config.get_selected_model()
    for model in models:
        marker = "*" if model.id == selected else " "
        key_note = "" if flags[model.provider] else "  (no key)"
        print(f"{marker} {model.id:42s} {model.display_name:22s} {model.provider.value:10s} "
              f"{model.tier.value}{key_note}")
    return 0


def cmd_usage(args: argparse.Namespace, ctx: Context) -> int:
    if args.clear:
        if not _confirm("Delete all usage history? This cannot be undone.", args.yes):
            print("Aborted.")
            return 1
        return 0 if ctx.ledger.clear() else 1

    if args.export:
        if not ctx.ledger.export_to_csv(Path(args.export)):
            return 1
        print(f"Exported usage history to {args.export}")

    try:
        stats = ctx.ledger.stats() if args.days is None else ctx.ledger.stats_for_window(args.days)
    except ValidationError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 2

    window = "all time" if args.days is None else f"last {args.days} day(s)"
    print(f"Usage ({window})")
    print(f"  Requests:       {stats.total_requests} "
          f"({stats.successful_requests} ok, {stats.failed_requests} failed)")
    print(f"  Tokens (est.):  {stats.total_tokens}")
    print(f"  Time:           {stats.total_duration_ms / 1000:.1f}s")
    print(f"  Cost (est.):    ${stats.estimated_cost_usd:.4f}")
    for provider, usage in stats.by_provider.items():
        if usage.requests:
            print(f"  {provider.label:14s}  {usage.requests} request(s), {usage.tokens} tokens, "
                  f"${usage.cost_usd:.4f}")
    return 0


def cmd_keys(args: argparse.Namespace, ctx: Context) -> int:
    if args.keys_command == "list":
        flags = asyncio.run(ctx.key_store.key_flags())
        for provider, has_key in flags.items():
            print(f"{provider.label:12s} {'configured' if has_key else 'not set'}")
        return 0

    try:
        provider = parse_provider(args.provider)
    except ValidationError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 2

    if args.keys_command == "set":
        value = args.value if args.value is not None else getpass.getpass(f"{provider.label} API key: ")
        if not value.strip():
            print("[ERROR] API key cannot be empty", file=sys.stderr)
            return 2
        asyncio.run(ctx.key_store.set(provider.key_name, value.strip()))
        print(f"Saved {provider.label} API key")
        return 0

    asyncio.run(ctx.key_store.delete(provider.key_name))
    print(f"Removed {provider.label} API key")
    return 0


def _parse_setting(raw: str):
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def cmd_settings(args: argparse.Namespace, ctx: Context) -> int:
    if args.settings_command == "show":
        print(json.dumps(ctx.config.config, indent=2, sort_keys=True))
        return 0
    if args.settings_command == "reset":
        return 0 if ctx.config.reset_to_defaults() else 1

    expected_type = CONFIG_SCHEMA[args.key][0]
    value = args.value if expected_type is str else _parse_setting(args.value)
    is_valid, error = validate_config_value(args.key, value)
    if not is_valid:
        print(f"[ERROR] {error}", file=sys.stderr)
        return 2
    ctx.config.set(args.key, value)
    print(f"{args.key} = {json.dumps(value)}")
    return 0


def cmd_serve(args: argparse.Namespace, ctx: Context) -> int:
    from .server import create_app

    # Keys arrive with each request; the local key store is not exposed.
    app = create_app(CorrectionOrchestrator(
        MemoryKeyStore(),
        ctx.ledger,
        corrector_factory=create_corrector,
        timeout=ctx.config.get_request_timeout(),
    ))
    logger.info(f"Serving correction endpoint on http://{args.host}:{args.port}")
    app.run(host=args.host, port=args.port)
    return 0


async def run_service(ctx: Context) -> None:
    """Run the hotkey pipeline until the tray's Exit item is chosen."""
    from .desktop_host import DesktopHost
    from .pipeline import HotkeyPipeline
    from .tray_icon import TrayIcon

    loop = asyncio.get_running_loop()
    stop = asyncio.Event()
    await migrate_legacy_keys(ctx.config, ctx.key_store)
    settings = ctx.config.snapshot()

    host: Optional[DesktopHost] = None

    def on_toggle_sound(enabled: bool) -> None:
        ctx.config.set_sound_enabled(enabled)
        asyncio.run_coroutine_threadsafe(host.set_sound_enabled(enabled), loop)

    def on_toggle_auto_paste(enabled: bool) -> None:
        ctx.config.set_auto_paste_enabled(enabled)
        asyncio.run_coroutine_threadsafe(host.set_auto_paste_enabled(enabled), loop)

    tray = TrayIcon(
        on_toggle_sound=on_toggle_sound,
        on_toggle_auto_paste=on_toggle_auto_paste,
        on_exit=lambda: loop.call_soon_threadsafe(stop.set),
        sound_enabled=settings.sound_enabled,
        auto_paste_enabled=settings.auto_paste_enabled,
    )
    host = DesktopHost(loop, tray)
    pipeline = HotkeyPipeline(host, ctx.orchestrator(), ctx.config, ctx.key_store)

    tray.start()
    await pipeline.start()
    shortcut = host.hotkey_combo or f"{settings.shortcut_modifier}+{settings.shortcut_key}"
    logger.info(f"Correctify is running. Select text and press {shortcut} to correct it.")
    if not tray.running:
        logger.info("Press Ctrl+C to exit.")
    try:
        await stop.wait()
    finally:
        pipeline.stop()
        host.close()
        tray.stop()


def cmd_run(args: argparse.Namespace, ctx: Context) -> int:
    try:
        asyncio.run(run_service(ctx))
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt detected")
    return 0


COMMANDS: Dict[str, Callable[[argparse.Namespace, Context], int]] = {
    "run": cmd_run,
    "correct": cmd_correct,
    "models": cmd_models,
    "usage": cmd_usage,
    "keys": cmd_keys,
    "settings": cmd_settings,
    "serve": cmd_serve,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main application entry point."""
    args = build_parser().parse_args(argv)
    configure_logging(args)

    data_dir = Path(args.data_dir).expanduser() if args.data_dir else DEFAULT_DATA_DIR
    ctx = Context(data_dir)
    return COMMANDS[args.command or "run"](args, ctx)


if __name__ == "__main__":
    sys.exit(main())
