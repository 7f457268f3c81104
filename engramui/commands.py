"""The setup, remove, list and version subcommands."""

from __future__ import annotations

import json
import sys
from dataclasses import dataclass
from importlib import metadata
from typing import Callable, TextIO

from engramui import autostart, catalog, skills
from engramui.catalog import CatalogError, Skill
from engramui.results import Action, InstallerError, Result

AUTOSTART_NAME = "autostart"
"""Reserved skill name that routes to OS autostart registration."""

_TOOL_PREFIX = "--tool="

_TOOL_TARGETS = {
    "claude": ["claude"],
    "opencode": ["opencode"],
    "both": ["claude", "opencode"],
}

_LIST_USAGE = """Usage: engram-ui list [--json]

Options:
  --json    emit machine-readable JSON array to stdout"""

_SETUP_USAGE = """Usage: engram-ui setup <skill> [--tool=<claude|opencode|both>]

Arguments:
  <skill>              name of the skill to install (or "autostart")

Options:
  --tool=<value>       target tool: claude, opencode, or both (default: both)

The --tool flag is ignored when skill is "autostart"."""

_REMOVE_USAGE = """Usage: engram-ui remove <skill> [--tool=<claude|opencode|both>]

Arguments:
  <skill>              name of the skill to remove (or "autostart")

Options:
  --tool=<value>       target tool: claude, opencode, or both (default: both)

The --tool flag is ignored when skill is "autostart"."""


class ToolUsageError(ValueError):
    """Raised for a malformed setup/remove command line."""


def _quote(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)


def _current_version() -> str:
    try:
        return metadata.version("engramui")
    except metadata.PackageNotFoundError:
        return "dev"


def parse_tool_flag(verb: str, args: list[str]) -> tuple[str, list[str]]:
    """Parse ``<skill> [--tool=claude|opencode|both]`` into (name, targets).

    The tool defaults to "both"; targets lists the legs to act on.
    Raises ToolUsageError for unknown flags, bad tool values or a wrong
    number of positional arguments.
    """
    tool = "both"
    positionals = []
    for arg in args:
        if arg.startswith(_TOOL_PREFIX):
            tool = arg[len(_TOOL_PREFIX):]
            continue
        if arg.startswith("-"):
            raise ToolUsageError(f"engram-ui {verb}: unknown flag {_quote(arg)}")
        positionals.append(arg)

    targets = _TOOL_TARGETS.get(tool)
    if targets is None:
        raise ToolUsageError(
            f"engram-ui {verb}: invalid --tool value {_quote(tool)} "
            "(must be claude, opencode, or both)"
        )
    if not positionals:
        raise ToolUsageError(f"engram-ui {verb}: missing skill name")
    if len(positionals) > 1:
        raise ToolUsageError(f"engram-ui {verb}: unexpected argument {_quote(positionals[1])}")
    return positionals[0], list(targets)


def _unregistered_to_empty(result: Result) -> str:
    return "" if result.action == Action.NOT_REGISTERED else result.destination


def _install_claude(name: str) -> str:
    return skills.install_claude_code_skill(name).destination


def _install_opencode(name: str) -> str:
    return skills.install_opencode_skill(name).destination


def _uninstall_claude(name: str) -> str:
    return _unregistered_to_empty(skills.uninstall_claude_code_skill(name))


def _uninstall_opencode(name: str) -> str:
    return _unregistered_to_empty(skills.uninstall_opencode_skill(name))


def _remove_autostart() -> str:
    return _unregistered_to_empty(autostart.remove_autostart())


def _load_catalog() -> list[Skill]:
    return catalog.load_catalog()


@dataclass
class Toolbox:
    """The installer operations the subcommands call.

    Install and uninstall operations return the destination path; the
    uninstall and autostart-removal ones return "" when nothing was registered.
    """

    load_catalog: Callable[[], list[Skill]] = _load_catalog
    install_claude: Callable[[str], str] = _install_claude
    install_opencode: Callable[[str], str] = _install_opencode
    uninstall_claude: Callable[[str], str] = _uninstall_claude
    uninstall_opencode: Callable[[str], str] = _uninstall_opencode
    install_autostart: Callable[[], Result] = autostart.install_autostart
    remove_autostart: Callable[[], str] = _remove_autostart


def _tool_flag_given(args: list[str]) -> bool:
    return any(arg.startswith(_TOOL_PREFIX) for arg in args)


class Commands:
    """Subcommand handlers; each returns a process exit code (0, 1 or 2)."""

    def __init__(
        self,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
        toolbox: Toolbox | None = None,
    ) -> None:
        self.stdout = stdout if stdout is not None else sys.stdout
        self.stderr = stderr if stderr is not None else sys.stderr
        self.toolbox = toolbox if toolbox is not None else Toolbox()

    def _err(self, text: str) -> None:
        print(text, file=self.stderr)

    def list(self, args: list[str]) -> int:
        """``list [--json]``: print the skill catalog."""
        as_json = False
        for arg in args:
            if arg == "--json":
                as_json = True
                continue
            if arg.startswith("-"):
                self._err(f"engram-ui list: unknown flag {_quote(arg)}")
            else:
                self._err(f"engram-ui list: unexpected argument {_quote(arg)}")
            self._err(_LIST_USAGE)
            return 2

        try:
            found = self.toolbox.load_catalog()
        except (CatalogError, OSError) as exc:
            self._err(f"engram-ui list: {exc}")
            return 1

        if as_json:
            entries = [{"name": s.name, "description": s.description} for s in found]
            self.stdout.write(json.dumps(entries, ensure_ascii=False, separators=(",", ":")) + "\n")
            return 0

        for s in found:
            self.stdout.write(f"{s.name} — {s.description}\n")
        return 0

    def _check_in_catalog(self, name: str) -> None:
        if not any(s.name == name for s in self.toolbox.load_catalog()):
            raise CatalogError("not found in catalog")

    def setup(self, args: list[str]) -> int:
        """``setup <skill> [--tool=...]``: install a skill or the autostart entry."""
        try:
            name, targets = parse_tool_flag("setup", args)
        except ToolUsageError as exc:
            self._err(str(exc))
            self._err(_SETUP_USAGE)
            return 2

        if name == AUTOSTART_NAME:
            return self._setup_autostart(args)

        try:
            self._check_in_catalog(name)
        except (CatalogError, OSError) as exc:
            self._err(f"engram-ui setup: unknown skill {_quote(name)} — {exc}")
            return 2

        installers = {"claude": self.toolbox.install_claude, "opencode": self.toolbox.install_opencode}
        failed = False
        for leg in targets:
            try:
                dest = installers[leg](name)
            except (InstallerError, OSError) as exc:
                self._err(f"engram-ui setup {name} [{leg}]: {exc}")
                failed = True
                continue
            self._err(f"installed [{leg}]: {dest}")
        return 1 if failed else 0

    def _setup_autostart(self, args: list[str]) -> int:
        if _tool_flag_given(args):
            self._err("note: --tool flag is ignored for autostart")
        try:
            result = self.toolbox.install_autostart()
        except (InstallerError, OSError) as exc:
            partial = getattr(exc, "result", None)
            if partial is not None and partial.action == Action.BLOCKED_DOWNGRADE:
                self._err("engram-ui setup autostart: downgrade blocked")
                self._err(f"  installed: {partial.installed_version}")
                self._err(f"  source:    {partial.source_version}")
                self._err("Run setup from the newer version to upgrade.")
                return 1
            self._err(f"engram-ui setup autostart: {exc}")
            return 1

        if result.action == Action.SKIPPED:
            if result.notes:
                self._err(f"autostart {result.action}: {result.notes}")
            else:
                self._err(f"autostart {result.action}")
        else:
            self._err(f"registered: {result.destination}")
        return 0

    def remove(self, args: list[str]) -> int:
        """``remove <skill> [--tool=...]``: remove a skill or the autostart entry."""
        try:
            name, targets = parse_tool_flag("remove", args)
        except ToolUsageError as exc:
            self._err(str(exc))
            self._err(_REMOVE_USAGE)
            return 2

        if name == AUTOSTART_NAME:
            if _tool_flag_given(args):
                self._err("note: --tool flag is ignored for autostart")
            try:
                dest = self.toolbox.remove_autostart()
            except (InstallerError, OSError) as exc:
                self._err(f"engram-ui remove autostart: {exc}")
                return 1
            if dest:
                self._err(f"removed: {dest}")
            else:
                self._err("not currently registered (nothing to remove)")
            return 0

        removers = {"claude": self.toolbox.uninstall_claude, "opencode": self.toolbox.uninstall_opencode}
        failed = False
        for leg in targets:
            try:
                dest = removers[leg](name)
            except (InstallerError, OSError) as exc:
                self._err(f"engram-ui remove {name} [{leg}]: {exc}")
                failed = True
                continue
            if dest:
                self._err(f"removed [{leg}]: {dest}")
            else:
                self._err(f"not registered [{leg}]: {name}")
        return 1 if failed else 0

    def version(self) -> int:
        """Print ``engram-ui <version>``."""
        self.stdout.write(f"engram-ui {_current_version()}\n")
        return 0