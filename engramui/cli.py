"""Command-line entry point and subcommand dispatch."""

from __future__ import annotations

import logging
import signal
import sys
import threading
from dataclasses import dataclass
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Callable, TextIO

from engramui.client import EngramClient, EngramClientError
from engramui.commands import Commands, Toolbox
from engramui.serve import (
    is_already_running,
    spawn_engram,
    stop_spawned,
    wait_for_engram,
)

log = logging.getLogger(__name__)

USAGE = """engram-ui — web viewer for engram persistent memory

Usage:
  engram-ui                              launch interactive installer TUI (default)
  engram-ui serve [flags]                start the web UI daemon
  engram-ui setup <skill> [--tool=...]   install a skill for one or both tools
  engram-ui remove <skill> [--tool=...]  remove a skill from one or both tools
  engram-ui list [--json]                list available skills
  engram-ui version                      print version and exit
  engram-ui help                         print this help
  engram-ui --no-tui                     print help instead of launching the TUI

Serve flags:
  --engram=<url>     engram REST API base URL (default: http://localhost:7437)
  --listen=<addr>    address engram-ui listens on (default: :7438)
  --no-spawn         fail instead of auto-spawning 'engram serve'

Setup / Remove flags:
  --tool=<claude|opencode|both>   target tool (default: both)

Note: "autostart" is a reserved skill name that invokes OS autostart registration.
  --tool is ignored for autostart."""

_SERVE_USAGE = """Usage of serve:
  -engram string
    \tengram REST API base URL (default "http://localhost:7437")
  -listen string
    \taddress engram-ui listens on (default ":7438")
  -no-spawn
    \tfail instead of auto-spawning 'engram serve' when unreachable"""

_TRUE_WORDS = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE_WORDS = {"0", "f", "F", "FALSE", "false", "False"}


def print_usage(stream: TextIO) -> None:
    """Write the top-level help text to ``stream``."""
    print(USAGE, file=stream)


def is_interactive() -> bool:
    """Whether standard input is a terminal."""
    try:
        return sys.stdin is not None and sys.stdin.isatty()
    except (AttributeError, ValueError, OSError):
        return False


class _FlagError(Exception):
    """A serve flag could not be parsed; an empty message means help was asked for."""


@dataclass
class _ServeOptions:
    engram: str = "http://localhost:7437"
    listen: str = ":7438"
    no_spawn: bool = False


def _parse_serve_flags(args: list[str]) -> _ServeOptions:
    """Parse serve flags in ``-name=value``, ``-name value`` or ``--name`` form.

    Parsing stops at the first non-flag argument or at "--".
    """
    opts = _ServeOptions()
    remaining = iter(args)
    for arg in remaining:
        if arg == "--" or not arg.startswith("-") or arg == "-":
            break
        body = arg[2:] if arg.startswith("--") else arg[1:]
        if not body or body[0] in "-=":
            raise _FlagError(f"bad flag syntax: {arg}")
        name, has_value, value = body.partition("=")
        if name in ("h", "help"):
            raise _FlagError("")
        if name == "no-spawn":
            if not has_value or value in _TRUE_WORDS:
                opts.no_spawn = True
            elif value in _FALSE_WORDS:
                opts.no_spawn = False
            else:
                raise _FlagError(f'invalid boolean value "{value}" for -no-spawn: parse error')
        elif name in ("engram", "listen"):
            if not has_value:
                value = next(remaining, None)
                if value is None:
                    raise _FlagError(f"flag needs an argument: -{name}")
            setattr(opts, name, value)
        else:
            raise _FlagError(f"flag provided but not defined: -{name}")
    return opts


def _split_listen(addr: str) -> tuple[str, int]:
    host, sep, port = addr.rpartition(":")
    if not sep:
        raise ValueError(f"address {addr}: missing port in address")
    try:
        port_number = int(port)
    except ValueError:
        raise ValueError(f"address {addr}: invalid port") from None
    return host.strip("[]"), port_number


class _HealthHandler(BaseHTTPRequestHandler):
    """Answers the ``/healthz`` liveness probe."""

    def do_GET(self) -> None:  # noqa: N802 - name fixed by the base class
        if self.path.split("?", 1)[0] == "/healthz":
            body = b"ok"
            self.send_response(200)
            self.send_header("Content-Type", "text/plain; charset=utf-8")
        else:
            body = b"404 page not found\n"
            self.send_response(404)
            self.send_header("Content-Type", "text/plain; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args: object) -> None:  # noqa: A002
        log.debug("%s - %s", self.address_string(), format % args)


def _wait_for_shutdown_signal() -> None:
    stop = threading.Event()

    def _on_signal(_signum: int, _frame: object) -> None:
        stop.set()

    previous = {sig: signal.signal(sig, _on_signal) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        while not stop.wait(0.5):
            pass
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


class Dispatcher:
    """Routes command-line arguments to subcommands and returns exit codes.

    0 means success, 1 an error and 2 a usage error.
    """

    def __init__(
        self,
        *,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
        toolbox: Toolbox | None = None,
        run_tui: Callable[[], None] | None = None,
        interactive: Callable[[], bool] | None = None,
        already_running: Callable[[str], bool] | None = None,
        request_handler: type[BaseHTTPRequestHandler] | None = None,
    ) -> None:
        self.stdout = stdout if stdout is not None else sys.stdout
        self.stderr = stderr if stderr is not None else sys.stderr
        self.commands = Commands(stdout=self.stdout, stderr=self.stderr, toolbox=toolbox)
        self.run_tui = run_tui
        self.interactive = interactive if interactive is not None else is_interactive
        self.already_running = already_running if already_running is not None else is_already_running
        self.request_handler = request_handler if request_handler is not None else _HealthHandler

    def dispatch(self, args: list[str]) -> int:
        """Run the subcommand named by ``args`` and return its exit code."""
        if not args:
            if self.run_tui is not None and self.interactive():
                try:
                    self.run_tui()
                except Exception as exc:  # any TUI failure is reported, not propagated
                    print(f"engram-ui: TUI error: {exc}", file=self.stderr)
                    return 1
                return 0
            print_usage(self.stdout)
            return 0

        command, rest = args[0], list(args[1:])
        if command == "serve":
            return self._serve(rest)
        if command == "setup":
            return self.commands.setup(rest)
        if command == "remove":
            return self.commands.remove(rest)
        if command == "list":
            return self.commands.list(rest)
        if command in ("version", "--version", "-v"):
            return self.commands.version()
        if command in ("help", "--help", "-h", "--no-tui"):
            print_usage(self.stdout)
            return 0
        if command.startswith("-"):
            # Flags first means an implicit serve, e.g. "engram-ui --listen=:9000".
            return self._serve(list(args))
        print(f'engram-ui: unknown subcommand "{command}"', file=self.stderr)
        print_usage(self.stderr)
        return 2

    def _serve(self, args: list[str]) -> int:
        try:
            opts = _parse_serve_flags(args)
        except _FlagError as exc:
            if str(exc):
                print(exc, file=self.stderr)
            print(_SERVE_USAGE, file=self.stderr)
            return 2

        if self.already_running(opts.listen):
            log.info("engram-ui already running on %s, exiting cleanly", opts.listen)
            return 0

        client = EngramClient(opts.engram)
        spawned = None
        try:
            wait_for_engram(client, 1.0)
        except EngramClientError as exc:
            if opts.no_spawn:
                log.error("engram unreachable at %s and --no-spawn set: %s", opts.engram, exc)
                return 1
            log.info("engram unreachable, spawning 'engram serve'...")
            try:
                spawned = spawn_engram()
            except OSError as spawn_exc:
                log.error("failed to spawn engram serve: %s", spawn_exc)
                return 1
            try:
                wait_for_engram(client, 10.0)
            except EngramClientError as wait_exc:
                stop_spawned(spawned)
                log.error("engram still unreachable after spawn: %s", wait_exc)
                return 1
            log.info("engram serve up (pid=%d)", spawned.pid)
        else:
            log.info("engram already reachable at %s", opts.engram)

        try:
            server = ThreadingHTTPServer(_split_listen(opts.listen), self.request_handler)
        except (OSError, ValueError) as exc:
            stop_spawned(spawned)
            log.error("server error: %s", exc)
            return 1

        server.engram_client = client  # type: ignore[attr-defined]
        thread = threading.Thread(target=server.serve_forever, daemon=True)
        log.info("engram-ui listening on %s", opts.listen)
        thread.start()
        try:
            _wait_for_shutdown_signal()
        finally:
            log.info("shutting down...")
            server.shutdown()
            server.server_close()
            thread.join(timeout=5)
            stop_spawned(spawned)
        return 0


def main(argv: list[str] | None = None) -> int:
    """Program entry point; returns the process exit code."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")
    args = sys.argv[1:] if argv is None else list(argv)
    return Dispatcher().dispatch(args)