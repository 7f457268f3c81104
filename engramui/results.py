"""Shared installer result types, errors and executable path resolution."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from enum import Enum


class Action(str, Enum):
    """What an installer operation did."""

    INSTALLED = "installed"
    OVERWRITTEN = "installed (overwritten)"
    REMOVED = "removed"
    NOT_REGISTERED = "not registered"
    UNSUPPORTED_PLATFORM = "unsupported platform"
    SKIPPED = "skipped"
    BLOCKED_DOWNGRADE = "blocked (downgrade)"

    def __str__(self) -> str:
        return self.value


@dataclass
class Result:
    """Outcome of an installer entry point."""

    destination: str = ""
    action: Action | None = None
    notes: str = ""
    source_version: str = ""
    installed_version: str = ""


class InstallerError(Exception):
    """Base error for installer operations; may carry a partial result."""

    def __init__(self, message: str, result: Result | None = None) -> None:
        super().__init__(message)
        self.result = result if result is not None else Result()


class UnsupportedPlatformError(InstallerError):
    """Raised on platforms without an autostart or stable-binary location."""

    def __init__(self, result: Result | None = None) -> None:
        super().__init__("platform not supported", result)


class DowngradeBlockedError(InstallerError):
    """Raised when an older binary would replace a newer installed one."""

    def __init__(self, result: Result | None = None) -> None:
        super().__init__("stable binary downgrade blocked", result)


def resolve_exec_path(executable: str | None = None) -> str:
    """Return the absolute path of the running program.

    Symlinks are resolved on Linux so that service definitions point at the
    real file; elsewhere the absolute path is returned unresolved.
    """
    path = os.path.abspath(executable if executable is not None else sys.argv[0])
    if sys.platform.startswith("linux"):
        try:
            return os.path.realpath(path)
        except OSError:
            return path
    return path