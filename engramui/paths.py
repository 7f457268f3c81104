"""Pure path helpers for skill, autostart and stable-binary locations."""

from __future__ import annotations

import os


def _to_slash(path: str) -> str:
    """Replace the OS separator with '/', as a no-op on POSIX."""
    if os.sep == "/":
        return path
    return path.replace(os.sep, "/")


def stable_binary_path(home_dir: str, local_app_data: str, goos: str) -> str:
    """Return the stable binary location for ``goos``; "" if unsupported."""
    if goos == "windows":
        return os.path.join(local_app_data, "engram-ui", "engram-ui.exe")
    if goos == "darwin":
        return os.path.join(home_dir, "Library", "Application Support", "engram-ui", "engram-ui")
    if goos == "linux":
        return os.path.join(home_dir, ".local", "bin", "engram-ui")
    return ""


def stable_binary_prefixes(goos: str, home_dir: str, local_app_data: str) -> list[str]:
    """Return directory prefixes under which a binary counts as stably installed."""
    if goos == "windows":
        return [
            local_app_data + "\\engram-ui\\",
            "C:\\Program Files\\",
            "C:\\Program Files (x86)\\",
        ]
    if goos == "darwin":
        return ["/opt/homebrew/bin/", "/usr/local/bin/", home_dir + "/.local/bin/"]
    if goos == "linux":
        return ["/usr/local/bin/", "/opt/homebrew/bin/", home_dir + "/.local/bin/"]
    return []


def is_stable_binary_path(path: str, home_dir: str, local_app_data: str, goos: str) -> bool:
    """Whether ``path`` is the stable binary path or lies under a stable prefix."""
    if not path:
        return False
    path = _to_slash(path)
    expected = _to_slash(stable_binary_path(home_dir, local_app_data, goos))
    if expected and path == expected:
        return True
    return any(
        path.startswith(_to_slash(prefix))
        for prefix in stable_binary_prefixes(goos, home_dir, local_app_data)
    )


def claude_skill_dir(home_dir: str, name: str) -> str:
    """{home}/.claude/skills/{name}"""
    return os.path.join(home_dir, ".claude", "skills", name)


def opencode_skill_dir(home_dir: str, xdg_config_home: str, name: str) -> str:
    """{base}/opencode/skills/{name}, base being XDG_CONFIG_HOME or {home}/.config.

    The same layout is used on every platform.
    """
    base = xdg_config_home or os.path.join(home_dir, ".config")
    return os.path.join(base, "opencode", "skills", name)


def windows_startup_dir(app_data: str) -> str:
    """{appData}/Microsoft/Windows/Start Menu/Programs/Startup"""
    return os.path.join(app_data, "Microsoft", "Windows", "Start Menu", "Programs", "Startup")


def macos_launch_agent_path(home_dir: str) -> str:
    """{home}/Library/LaunchAgents/com.notfoundsn.engram-ui.plist"""
    return os.path.join(home_dir, "Library", "LaunchAgents", "com.notfoundsn.engram-ui.plist")


def linux_systemd_unit_path(home_dir: str, xdg_config_home: str) -> str:
    """{base}/systemd/user/engram-ui.service, base being XDG_CONFIG_HOME or {home}/.config."""
    base = xdg_config_home or os.path.join(home_dir, ".config")
    return os.path.join(base, "systemd", "user", "engram-ui.service")