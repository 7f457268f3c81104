"""Generators for autostart definitions: Windows batch, macOS plist, systemd unit."""

from __future__ import annotations


def build_windows_startup_bat(exec_path: str) -> str:
    """Batch file that starts the daemon detached with ``start /B``."""
    return f'@echo off\nstart "" /B "{exec_path}" serve\n'


def build_launch_agent_plist(exec_path: str, label: str) -> str:
    """macOS LaunchAgent plist that runs the daemon at login."""
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<!DOCTYPE plist PUBLIC "-//Apple//DTD PLIST 1.0//EN" '
        '"http://www.apple.com/DTDs/PropertyList-1.0.dtd">\n'
        '<plist version="1.0">\n'
        "<dict>\n"
        "\t<key>Label</key>\n"
        f"\t<string>{label}</string>\n"
        "\t<key>ProgramArguments</key>\n"
        "\t<array>\n"
        f"\t\t<string>{exec_path}</string>\n"
        "\t\t<string>serve</string>\n"
        "\t</array>\n"
        "\t<key>RunAtLoad</key>\n"
        "\t<true/>\n"
        "\t<key>KeepAlive</key>\n"
        "\t<false/>\n"
        "</dict>\n"
        "</plist>\n"
    )


def build_systemd_unit(exec_path: str) -> str:
    """systemd user unit that runs the daemon."""
    return (
        "[Unit]\n"
        "Description=engram-ui web viewer\n"
        "After=network.target\n"
        "\n"
        "[Service]\n"
        "Type=simple\n"
        f"ExecStart={exec_path} serve\n"
        "Restart=on-failure\n"
        "\n"
        "[Install]\n"
        "WantedBy=default.target\n"
    )