"""Installing the running binary at a stable, user-scoped location."""

from __future__ import annotations

import filecmp
import logging
import os
import shutil
import subprocess
import sys
from importlib import metadata
from typing import Callable

from packaging.version import InvalidVersion, Version

from engramui.paths import is_stable_binary_path, stable_binary_path
from engramui.results import (
    Action,
    DowngradeBlockedError,
    InstallerError,
    Result,
    UnsupportedPlatformError,
)

log = logging.getLogger(__name__)

VersionResolver = Callable[[str], str]


def _current_goos() -> str:
    if sys.platform.startswith("win"):
        return "windows"
    if sys.platform == "darwin":
        return "darwin"
    if sys.platform.startswith("linux"):
        return "linux"
    return sys.platform


def _current_version() -> str:
    try:
        return metadata.version("engramui")
    except metadata.PackageNotFoundError:
        return "dev"


def _parse_version(value: str) -> Version | None:
    text = value.strip()
    if text[:1] in ("v", "V"):
        text = text[1:]
    try:
        return Version(text)
    except InvalidVersion:
        return None


def compare_versions(a: str, b: str) -> int:
    """Return -1, 0 or 1 as ``a`` is older than, equal to or newer than ``b``.

    A leading "v" is ignored. When either side is not a recognisable version
    (such as "dev") no ordering is known and 0 is returned.
    """
    va, vb = _parse_version(a), _parse_version(b)
    if va is None or vb is None:
        return 0
    if va < vb:
        return -1
    if va > vb:
        return 1
    return 0


def resolve_binary_version(binary_path: str) -> str:
    """Run ``<binary> version`` and return the last word of its output."""
    try:
        proc = subprocess.run(
            [binary_path, "version"],
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            check=True,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        raise InstallerError(f"running {binary_path} version: {exc}") from exc
    output = proc.stdout.decode("utf-8", errors="replace").strip()
    parts = output.split()
    if len(parts) >= 2:
        return parts[-1]
    raise InstallerError(f"unable to parse version from: {output}")


def files_are_identical(path1: str, path2: str) -> bool:
    """Compare two files by size and content; raise OSError if either is missing."""
    if os.stat(path1).st_size != os.stat(path2).st_size:
        return False
    return filecmp.cmp(path1, path2, shallow=False)


def copy_file(src: str, dst: str) -> None:
    """Copy ``src`` to ``dst``, flushing to disk and marking it executable on Unix."""
    with open(src, "rb") as source, open(dst, "wb") as dest:
        shutil.copyfileobj(source, dest)
        dest.flush()
        os.fsync(dest.fileno())
    if sys.platform.startswith("win"):
        shutil.copymode(src, dst)
    else:
        os.chmod(dst, 0o755)


def ensure_stable_binary(
    source_path: str,
    home_dir: str,
    local_app_data: str,
    *,
    goos: str | None = None,
    source_version: str | None = None,
    version_resolver: VersionResolver | None = None,
) -> Result:
    """Make sure the binary at ``source_path`` is installed at the stable path.

    The copy is skipped when the source already lives at a stable location or
    the stable binary is byte-identical. Replacing a newer installed binary
    with an older one raises DowngradeBlockedError.
    """
    goos = goos if goos is not None else _current_goos()
    source_version = source_version if source_version is not None else _current_version()
    resolver = version_resolver if version_resolver is not None else resolve_binary_version

    stable_path = stable_binary_path(home_dir, local_app_data, goos)
    if not stable_path:
        raise UnsupportedPlatformError()

    if is_stable_binary_path(source_path, home_dir, local_app_data, goos):
        return Result(
            destination=source_path,
            action=Action.SKIPPED,
            notes="already at stable path",
            source_version=source_version,
            installed_version=source_version,
        )

    stable_exists = os.path.exists(stable_path)
    if stable_exists:
        try:
            identical = files_are_identical(source_path, stable_path)
        except OSError as exc:
            raise InstallerError(f"comparing binaries: {exc}") from exc
        if identical:
            return Result(
                destination=stable_path,
                action=Action.SKIPPED,
                notes="stable binary is identical",
                source_version=source_version,
                installed_version=source_version,
            )

        try:
            installed_version = resolver(stable_path)
        except (InstallerError, OSError, subprocess.SubprocessError) as exc:
            log.warning("failed to parse installed binary version at %s: %s", stable_path, exc)
        else:
            if installed_version and compare_versions(source_version, installed_version) < 0:
                raise DowngradeBlockedError(
                    Result(
                        destination=stable_path,
                        action=Action.BLOCKED_DOWNGRADE,
                        notes=(
                            f"downgrade blocked: installed v{installed_version}, "
                            f"source v{source_version}"
                        ),
                        source_version=source_version,
                        installed_version=installed_version,
                    )
                )

    try:
        os.makedirs(os.path.dirname(stable_path), mode=0o755, exist_ok=True)
    except OSError as exc:
        raise InstallerError(f"creating stable directory: {exc}") from exc

    try:
        copy_file(source_path, stable_path)
    except OSError as exc:
        if goos == "windows" and "being used by another process" in str(exc):
            raise InstallerError(
                "stable binary is in use: close any running engram-ui instances "
                f"and retry: {exc}"
            ) from exc
        raise InstallerError(f"copying to stable path: {exc}") from exc

    return Result(
        destination=stable_path,
        action=Action.OVERWRITTEN if stable_exists else Action.INSTALLED,
        notes="stable binary installed",
        source_version=source_version,
        installed_version=source_version,
    )