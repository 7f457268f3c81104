"""OS autostart registration: systemd user unit, LaunchAgent or Startup batch file."""

from __future__ import annotations

import logging
import os
import subprocess
import sys
from abc import ABC, abstractmethod

from engramui.paths import (
    linux_systemd_unit_path,
    macos_launch_agent_path,
    stable_binary_path,
    windows_startup_dir,
)
from engramui.results import (
    Action,
    InstallerError,
    Result,
    UnsupportedPlatformError,
    resolve_exec_path,
)
from engramui.stable_binary import ensure_stable_binary
from engramui.unitgen import (
    build_launch_agent_plist,
    build_systemd_unit,
    build_windows_startup_bat,
)

log = logging.getLogger(__name__)

_DARWIN_PLIST_LABEL = "com.notfoundsn.engram-ui"
_SERVICE_NAME = "engram-ui.service"
_BAT_NAME = "engram-ui.bat"


def _current_goos() -> str:
    if sys.platform.startswith("win"):
        return "windows"
    if sys.platform == "darwin":
        return "darwin"
    if sys.platform.startswith("linux"):
        return "linux"
    return sys.platform


def _run_command(args: list[str]) -> tuple[str, str] | None:
    """Run a command; return (error, combined output) on failure, None on success."""
    try:
        proc = subprocess.run(args, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, check=False)
    except OSError as exc:
        return str(exc), ""
    if proc.returncode != 0:
        return f"exit status {proc.returncode}", proc.stdout.decode("utf-8", errors="replace")
    return None


def _write_file(path: str, content: str, dir_label: str, file_label: str) -> None:
    try:
        os.makedirs(os.path.dirname(path), mode=0o755, exist_ok=True)
    except OSError as exc:
        raise InstallerError(f"create {dir_label}: {exc}") from exc
    try:
        with open(path, "wb") as fh:
            fh.write(content.encode("utf-8"))
    except OSError as exc:
        raise InstallerError(f"write {file_label}: {exc}") from exc


def _remove_file(path: str, label: str) -> None:
    try:
        os.remove(path)
    except OSError as exc:
        raise InstallerError(f"remove {label}: {exc}") from exc


def _not_registered() -> Result:
    return Result(action=Action.NOT_REGISTERED, notes="not currently registered")


class AutostartManager(ABC):
    """Platform-specific registration of the daemon at login."""

    @abstractmethod
    def install(self, exec_path: str) -> Result:
        """Register ``exec_path serve`` to start at login."""

    @abstractmethod
    def remove(self) -> Result:
        """Remove the registration; NOT_REGISTERED when there is none."""


class LinuxAutostart(AutostartManager):
    """systemd user unit under the XDG config directory."""

    def __init__(
        self,
        home_dir: str | None = None,
        xdg_config_home: str | None = None,
        run_commands: bool = True,
    ) -> None:
        self._home_dir = home_dir
        self._xdg_config_home = xdg_config_home
        self._run_commands = run_commands

    def _unit_path(self) -> str:
        home = self._home_dir if self._home_dir is not None else os.path.expanduser("~")
        xdg = (
            self._xdg_config_home
            if self._xdg_config_home is not None
            else os.environ.get("XDG_CONFIG_HOME", "")
        )
        return linux_systemd_unit_path(home, xdg)

    def install(self, exec_path: str) -> Result:
        unit_path = self._unit_path()
        _write_file(unit_path, build_systemd_unit(exec_path), "systemd user dir", "unit file")

        notes = ""
        if self._run_commands:
            failure = _run_command(["systemctl", "--user", "daemon-reload"])
            if failure is not None:
                notes = f"systemctl daemon-reload failed ({failure[0]}): {failure[1]}; run manually"
                log.warning("%s", notes)
            else:
                failure = _run_command(["systemctl", "--user", "enable", "--now", _SERVICE_NAME])
                if failure is not None:
                    notes = (
                        f"systemctl enable failed ({failure[0]}): {failure[1]}; "
                        f"run manually: systemctl --user enable --now {_SERVICE_NAME}"
                    )
                    log.warning("%s", notes)

        return Result(destination=unit_path, action=Action.INSTALLED, notes=notes)

    def remove(self) -> Result:
        unit_path = self._unit_path()
        if not os.path.exists(unit_path):
            return _not_registered()
        if self._run_commands:
            failure = _run_command(["systemctl", "--user", "disable", _SERVICE_NAME])
            if failure is not None:
                log.warning("systemctl disable failed (%s): %s", failure[0], failure[1])
        _remove_file(unit_path, "unit file")
        return Result(destination=unit_path, action=Action.REMOVED)


class DarwinAutostart(AutostartManager):
    """LaunchAgent plist in the user's Library."""

    def __init__(self, home_dir: str | None = None, run_commands: bool = True) -> None:
        self._home_dir = home_dir
        self._run_commands = run_commands

    def _plist_path(self) -> str:
        home = self._home_dir if self._home_dir is not None else os.path.expanduser("~")
        return macos_launch_agent_path(home)

    def install(self, exec_path: str) -> Result:
        plist_path = self._plist_path()
        content = build_launch_agent_plist(exec_path, _DARWIN_PLIST_LABEL)
        _write_file(plist_path, content, "LaunchAgents dir", "plist")

        notes = ""
        if self._run_commands:
            failure = _run_command(["launchctl", "load", plist_path])
            if failure is not None:
                notes = (
                    f"launchctl load failed ({failure[0]}): {failure[1]}; "
                    f"run manually: launchctl load {plist_path}"
                )
                log.warning("%s", notes)

        return Result(destination=plist_path, action=Action.INSTALLED, notes=notes)

    def remove(self) -> Result:
        plist_path = self._plist_path()
        if not os.path.exists(plist_path):
            return _not_registered()
        if self._run_commands:
            failure = _run_command(["launchctl", "unload", plist_path])
            if failure is not None:
                log.warning("launchctl unload failed (%s): %s", failure[0], failure[1])
        _remove_file(plist_path, "plist")
        return Result(destination=plist_path, action=Action.REMOVED)


class WindowsAutostart(AutostartManager):
    """Batch file in the user's Startup folder."""

    def __init__(self, app_data: str | None = None) -> None:
        self._app_data = app_data

    def _bat_path(self) -> str:
        app_data = self._app_data if self._app_data is not None else os.environ.get("APPDATA", "")
        if not app_data:
            raise InstallerError("APPDATA environment variable not set")
        return os.path.join(windows_startup_dir(app_data), _BAT_NAME)

    def install(self, exec_path: str) -> Result:
        bat_path = self._bat_path()
        _write_file(bat_path, build_windows_startup_bat(exec_path), "startup dir", "startup bat")
        return Result(
            destination=bat_path,
            action=Action.INSTALLED,
            notes="engram-ui will start automatically on next login",
        )

    def remove(self) -> Result:
        bat_path = self._bat_path()
        if not os.path.exists(bat_path):
            return _not_registered()
        _remove_file(bat_path, "startup bat")
        return Result(destination=bat_path, action=Action.REMOVED)


class UnsupportedAutostart(AutostartManager):
    """Manager for platforms without a known autostart mechanism."""

    def install(self, exec_path: str) -> Result:
        raise UnsupportedPlatformError(Result(action=Action.UNSUPPORTED_PLATFORM))

    def remove(self) -> Result:
        raise UnsupportedPlatformError(Result(action=Action.UNSUPPORTED_PLATFORM))


def new_autostart_manager(goos: str | None = None) -> AutostartManager:
    """Return the manager for ``goos`` (the current platform by default)."""
    goos = goos if goos is not None else _current_goos()
    if goos == "linux":
        return LinuxAutostart()
    if goos == "darwin":
        return DarwinAutostart()
    if goos == "windows":
        return WindowsAutostart()
    return UnsupportedAutostart()


def install_autostart() -> Result:
    """Install the stable binary, then register it to start at login.

    Nothing is registered when the stable install fails or a downgrade is blocked.
    """
    goos = _current_goos()
    exec_path = resolve_exec_path()
    home_dir = os.path.expanduser("~")

    local_app_data = ""
    if goos == "windows":
        local_app_data = os.environ.get("LOCALAPPDATA", "")
        if not local_app_data:
            raise InstallerError("LOCALAPPDATA environment variable not set")

    stable = ensure_stable_binary(exec_path, home_dir, local_app_data, goos=goos)
    stable_path = stable.destination or stable_binary_path(home_dir, local_app_data, goos)

    result = new_autostart_manager(goos).install(stable_path)
    if stable.notes and not result.notes:
        result.notes = stable.notes
    result.source_version = stable.source_version
    result.installed_version = stable.installed_version
    return result


def remove_autostart() -> Result:
    """Remove the OS autostart entry."""
    return new_autostart_manager().remove()