#!/usr/bin/env python3
"""
otp_cli.py — command-line entry point for otp-auth

Subcommands:
- watch  : interactive session, live OTP + countdown (default)
- list   : list saved providers
- code   : print the current code of one provider
- add    : add a provider (secret typed or read from a file)
- remove : remove a provider
- browse : list a directory the way the file picker does
- serve  : run the local JSON API (Flask)
"""

import argparse
import asyncio
import logging
import sys
import time
from typing import Optional

from otp_auth.core import otp_engine
from otp_auth.core.config import Settings
from otp_auth.core.errors import LoadError, OTPAuthError
from otp_auth.core.events import ShowMessage, Snapshot
from otp_auth.core.file_picker import list_directory
from otp_auth.core.logging_config import configure_logging
from otp_auth.core.scheduler import RefreshScheduler
from otp_auth.core.secret_source import read_secret_from_file
from otp_auth.core.terminal import CommandReader, TerminalRenderer, format_provider_list
from otp_auth.database.provider_store import Provider, ProviderStore

logger = logging.getLogger(__name__)


def _load_store(settings: Settings) -> ProviderStore:
    return ProviderStore.load(settings.providers_file)


def _resolve(store: ProviderStore, token: str) -> Optional[int]:
    """Provider by 1-based number or by exact name."""
    if token.isdigit():
        index = int(token) - 1
        return index if 0 <= index < len(store) else None
    return store.index_of(token)


# --- Interactive session ---
async def run_session(
    store: ProviderStore,
    settings: Settings,
    renderer: TerminalRenderer,
    load_error: Optional[LoadError] = None,
    stdin=None,
) -> None:
    """Run the live display until the user quits or input ends."""
    loop = asyncio.get_running_loop()
    stop = asyncio.Event()

    def on_quit():
        if not loop.is_closed():
            loop.call_soon_threadsafe(stop.set)

    scheduler = RefreshScheduler(
        store,
        renderer,
        coarse_interval=settings.coarse_interval,
        fine_interval=settings.fine_interval,
    )
    async with scheduler:
        error = f"Error loading providers: {load_error}" if load_error is not None else ""
        notice = format_provider_list(store.names()) if len(store) else ""
        if error or notice:
            scheduler.submit(ShowMessage(notice=notice, error=error))
        CommandReader(scheduler, renderer, on_quit, stdin=stdin).start()
        await stop.wait()
        # let commands typed before "quit" finish before the queue is discarded
        await scheduler.request(Snapshot())


def cmd_watch(args, settings: Settings) -> int:
    store, load_error = ProviderStore.open(settings.providers_file)
    renderer = TerminalRenderer()
    renderer.write("Press Ctrl+C or type 'quit' to exit. Type 'help' for commands.")
    try:
        asyncio.run(run_session(store, settings, renderer, load_error))
    except KeyboardInterrupt:
        pass
    print("\nBye.")
    return 0


# --- One-shot commands ---
def cmd_list(args, settings: Settings) -> int:
    store = _load_store(settings)
    if not len(store):
        print("No providers available.")
        return 0
    for i, name in enumerate(store.names(), 1):
        print(f"{i}. {name}")
    return 0


def cmd_code(args, settings: Settings) -> int:
    store = _load_store(settings)
    index = _resolve(store, args.provider)
    if index is None:
        print(f"[!] No such provider: {args.provider}")
        return 1
    provider = store[index]
    now = time.time()
    code = otp_engine.generate(provider.secret, now)
    remaining = otp_engine.remaining_seconds(now)
    print(f"[{provider.name}] TOTP: {code}  (valid ~{remaining:2d}s)")
    return 0


def cmd_add(args, settings: Settings) -> int:
    store = _load_store(settings)
    secret = args.secret
    if args.file:
        secret = read_secret_from_file(args.file)
    provider = Provider.create(args.name, secret or "")
    store.add(provider)
    print(f"[+] Added new provider: {provider.name}")
    print(f"    Saved to {store.path}; it will be loaded automatically next time.")
    return 0


def cmd_remove(args, settings: Settings) -> int:
    store = _load_store(settings)
    index = _resolve(store, args.provider)
    if index is None:
        print(f"[!] No such provider: {args.provider}")
        return 1
    removed = store.remove(index)
    print(f"[-] Removed provider: {removed.name}")
    return 0


def cmd_browse(args, settings: Settings) -> int:
    for entry in list_directory(args.directory):
        marker = "[dir] " if entry.is_dir else "      "
        print(f"{marker}{entry.name}")
    return 0


def cmd_serve(args, settings: Settings) -> int:
    # Flask is only imported when the API is actually served
    from otp_auth.backend import EngineThread, create_app

    store, load_error = ProviderStore.open(settings.providers_file)
    engine = EngineThread(
        store,
        load_error,
        coarse_interval=settings.coarse_interval,
        fine_interval=settings.fine_interval,
    ).start_and_wait()
    app = create_app(engine)
    host = args.host or settings.host
    port = args.port or settings.port
    print(f"[*] Serving OTP API on http://{host}:{port}/")
    try:
        app.run(host=host, port=port, threaded=True, use_reloader=False)
    except OSError as e:
        print(f"[!] Could not start the API server: {e}", file=sys.stderr)
        return 1
    finally:
        engine.shutdown()
    return 0


# --- Argparse builder ---
def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="otp-auth", description="TOTP authenticator for the terminal")
    p.add_argument("--providers-file", help="Path of providers.json (default: ./providers.json)")
    p.add_argument("--log-file", help="Write logs to this file instead of stderr")
    p.add_argument("--verbose", action="store_true", help="Verbose (DEBUG) logging")
    sub = p.add_subparsers(dest="cmd")
    p.set_defaults(func=cmd_watch)

    # watch
    pw = sub.add_parser("watch", help="Interactive session with live OTP and countdown")
    pw.set_defaults(func=cmd_watch)

    # list
    pl = sub.add_parser("list", help="List saved providers")
    pl.set_defaults(func=cmd_list)

    # code
    pc = sub.add_parser("code", help="Print the current code of a provider")
    pc.add_argument("provider", help="Provider name or number (1-based)")
    pc.set_defaults(func=cmd_code)

    # add
    pa = sub.add_parser("add", help="Add a provider")
    pa.add_argument("name", help="Provider name (unique)")
    source = pa.add_mutually_exclusive_group(required=True)
    source.add_argument("--secret", help="Base32 secret")
    source.add_argument("--file", help="Read the secret from a .txt/.key file")
    pa.set_defaults(func=cmd_add)

    # remove
    pr = sub.add_parser("remove", help="Remove a provider")
    pr.add_argument("provider", help="Provider name or number (1-based)")
    pr.set_defaults(func=cmd_remove)

    # browse
    pb = sub.add_parser("browse", help="List a directory in file picker order")
    pb.add_argument("directory", nargs="?", default=None, help="Directory (default: current)")
    pb.set_defaults(func=cmd_browse)

    # serve
    ps = sub.add_parser("serve", help="Run the local JSON API")
    ps.add_argument("--host", help="Bind address (default: 127.0.0.1)")
    ps.add_argument("--port", type=int, help="Port (default: 5000)")
    ps.set_defaults(func=cmd_serve)

    return p


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        settings = Settings.from_env().override(
            providers_file=args.providers_file,
            log_file=args.log_file,
            log_level="DEBUG" if args.verbose else None,
        )
        configure_logging(settings.log_level, settings.log_file)
    except ValueError as e:
        print(f"[!] Invalid configuration: {e}", file=sys.stderr)
        return 2

    try:
        return args.func(args, settings)
    except OTPAuthError as e:
        print(f"[!] Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
