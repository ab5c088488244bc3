"""
terminal.py — text presentation for the live OTP session.

TerminalRenderer turns RenderModel values into text. CommandReader runs on
its own thread, reads commands from stdin, builds events and hands them to
the scheduler; it never touches SessionState itself.
"""

import logging
import shlex
import sys
import threading
from contextlib import contextmanager
from dataclasses import replace
from typing import Callable, Optional, TextIO

from otp_auth.core.errors import BrowseError, OTPAuthError
from otp_auth.core.events import (
    AddProvider,
    ListProviders,
    ProviderForm,
    RemoveProvider,
    SelectProvider,
    ShowMessage,
    Snapshot,
)
from otp_auth.core.file_picker import FilePicker
from otp_auth.core.secret_source import read_secret_from_file
from otp_auth.core.session import RenderModel

logger = logging.getLogger(__name__)

GETTING_STARTED = (
    "To get started:\n"
    "  add <name> <secret>        add a provider with a base32 secret\n"
    "  add <name> --file <path>   read the secret from a .txt/.key file\n"
    "  browse [dir]               pick a secret file\n"
    "  help                       list all commands\n"
    "Your providers are saved automatically and loaded when you restart."
)

HELP_TEXT = (
    "Commands:\n"
    "  <n> | select <n>           show the OTP of provider n\n"
    "  list                       list providers\n"
    "  add <name> [<secret>]      add a provider (uses the pending secret if omitted)\n"
    "  add <name> --file <path>   add a provider, secret read from a file\n"
    "  read <path>                read a secret file into the pending form\n"
    "  browse [dir]               pick a secret file interactively\n"
    "  remove <n>                 remove provider n\n"
    "  help                       this text\n"
    "  quit                       exit"
)


def format_model(model: RenderModel) -> str:
    """Full-screen text for *model*."""
    lines = [f"== {model.headline} =="]
    if model.error_message:
        lines.append(f"Error: {model.error_message}")
    if model.notice:
        lines.append(model.notice)
    if model.code is not None:
        lines.append("")
        lines.append(f"Provider: {model.provider_name}")
        lines.append(f"Your OTP: {model.code}")
        lines.append("")
        lines.append(f"Valid for {model.remaining_seconds} seconds")
    elif model.provider_name:
        lines.append(f"Provider: {model.provider_name}")
    else:
        lines.append("")
        lines.append(GETTING_STARTED)
    return "\n".join(lines)


def format_countdown(model: RenderModel) -> str:
    return f".. {model.remaining_seconds:2d}s left"


def format_provider_list(names) -> str:
    if not names:
        return "No providers yet."
    return "Providers:\n" + "\n".join(f"  {i}. {name}" for i, name in enumerate(names, 1))


class TerminalRenderer:
    """render(model, partial) callable for RefreshScheduler."""

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream or sys.stdout
        self._lock = threading.Lock()
        self._paused = threading.Event()
        self._countdown_shown = False

    def __call__(self, model: RenderModel, partial: bool) -> None:
        if self._paused.is_set():
            return
        if partial:
            if model.remaining_seconds is None:
                return
            self.write(format_countdown(model), end="\r")
            self._countdown_shown = True
        else:
            self.write(format_model(model))

    def write(self, text: str, end: str = "\n") -> None:
        with self._lock:
            if self._countdown_shown and end != "\r":
                # finish the countdown line before printing a block
                self.stream.write("\n")
                self._countdown_shown = False
            self.stream.write(text + end)
            self.stream.flush()

    @contextmanager
    def paused(self):
        """Suppress scheduler output while an interactive prompt owns the terminal."""
        self._paused.set()
        try:
            yield
        finally:
            self._paused.clear()


def _parse_position(token: str) -> int:
    """1-based position as typed -> 0-based index."""
    try:
        number = int(token)
    except ValueError:
        raise ValueError(f"not a number: {token!r}") from None
    return number - 1


class CommandReader:
    """
    Reads commands line by line and turns them into scheduler events.

    Arguments:
        scheduler: object with submit_threadsafe(event) and
            request_threadsafe(event)
        renderer: TerminalRenderer, written to directly only by the file
            picker prompt while scheduler output is paused
        on_quit: called once when the user quits or input ends
        stdin: input stream (default sys.stdin)
    """

    def __init__(
        self,
        scheduler,
        renderer: TerminalRenderer,
        on_quit: Callable[[], None],
        stdin: Optional[TextIO] = None,
    ):
        self.scheduler = scheduler
        self.renderer = renderer
        self.on_quit = on_quit
        self.stdin = stdin or sys.stdin
        self.form = ProviderForm()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        # daemon: a blocked readline() must not keep the process alive
        self._thread = threading.Thread(target=self.run, name="otp-input", daemon=True)
        self._thread.start()

    def run(self) -> None:
        try:
            while True:
                line = self.stdin.readline()
                if not line:
                    break
                if not self.handle_line(line):
                    return
        finally:
            self.on_quit()

    def handle_line(self, line: str) -> bool:
        """Run one command. Returns False when the session should end."""
        try:
            args = shlex.split(line)
        except ValueError as e:
            self._show_error(f"cannot parse command: {e}")
            return True
        if not args:
            return True

        cmd, rest = args[0].lower(), args[1:]
        try:
            if cmd.isdigit():
                self._select(cmd)
            elif cmd == "select" and len(rest) == 1:
                self._select(rest[0])
            elif cmd == "list":
                self._list()
            elif cmd == "add":
                self._add(rest)
            elif cmd == "read" and len(rest) == 1:
                self._read(rest[0])
            elif cmd == "browse" and len(rest) <= 1:
                self._browse(rest[0] if rest else (self.form.file_path or None))
            elif cmd == "remove" and len(rest) == 1:
                self.scheduler.submit_threadsafe(RemoveProvider(_parse_position(rest[0])))
            elif cmd == "help":
                self.scheduler.submit_threadsafe(ShowMessage(notice=HELP_TEXT))
            elif cmd in ("quit", "exit", "q"):
                return False
            else:
                self._show_error(f"unknown command: {line.strip()!r} (type 'help')")
        except ValueError as e:
            self._show_error(str(e))
        return True

    # --- Commands ----------------------------------------------------------
    def _select(self, token: str) -> None:
        self.scheduler.submit_threadsafe(SelectProvider(_parse_position(token)))

    def _list(self) -> None:
        reply = self.scheduler.request_threadsafe(ListProviders())
        self.scheduler.submit_threadsafe(ShowMessage(notice=format_provider_list(reply.value or [])))

    def _add(self, rest) -> None:
        if not rest:
            raise ValueError("usage: add <name> [<secret> | --file <path>]")
        name, extra = rest[0], rest[1:]
        if len(extra) == 2 and extra[0] == "--file":
            form = ProviderForm(name=name, file_path=extra[1])
        elif len(extra) == 1:
            form = ProviderForm(name=name, secret=extra[0])
        elif not extra:
            form = replace(self.form, name=name)
        else:
            raise ValueError("usage: add <name> [<secret> | --file <path>]")
        self.scheduler.submit_threadsafe(AddProvider(form))
        self.form = ProviderForm()

    def _read(self, path: str) -> None:
        try:
            secret = read_secret_from_file(path)
        except OTPAuthError as e:
            self._show_error(str(e))
            return
        self.form = replace(self.form, secret=secret, file_path=path)
        self.scheduler.submit_threadsafe(
            ShowMessage(notice=f"Secret read successfully from file: {path}")
        )

    def _browse(self, start_dir: Optional[str]) -> None:
        try:
            picker = FilePicker(start_dir)
        except BrowseError as e:
            self._show_error(str(e))
            return

        with self.renderer.paused():
            chosen = self._pick(picker)
        if chosen is None:
            self.scheduler.submit_threadsafe(Snapshot(render=True))
            return
        self.form = replace(self.form, file_path=chosen)
        self._read(chosen)

    def _pick(self, picker: FilePicker) -> Optional[str]:
        while not picker.done:
            lines = [f"-- File Picker - {picker.current_dir} --"]
            if picker.error is not None:
                lines.append(f"Error: {picker.error}")
            for i, entry in enumerate(picker.entries):
                marker = "[dir] " if entry.is_dir else "      "
                lines.append(f"{i:3d} {marker}{entry.name}")
            lines.append("number: open/select   empty line or q: cancel")
            self.renderer.write("\n".join(lines))

            answer = self.stdin.readline()
            if not answer or answer.strip().lower() in ("", "q"):
                return None
            try:
                picker.choose(int(answer.strip()))
            except (ValueError, IndexError):
                self.renderer.write(f"Error: no entry {answer.strip()!r}")
        return picker.selected_path

    def _show_error(self, message: str) -> None:
        self.scheduler.submit_threadsafe(ShowMessage(error=message))
