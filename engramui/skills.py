"""Installing and removing skills for Claude Code and OpenCode."""

from __future__ import annotations

import os
import shutil
from pathlib import Path

from engramui.catalog import default_skills_root
from engramui.paths import claude_skill_dir, opencode_skill_dir
from engramui.results import Action, InstallerError, Result

PathLike = str | os.PathLike[str]


def copy_skill(dst: PathLike, src_root: PathLike) -> None:
    """Copy the tree at ``src_root`` into ``dst``, overwriting existing files.

    Directories are created with mode 0755 and files written with mode 0644.
    """
    src = Path(src_root)
    target_root = Path(dst)
    if not src.is_dir():
        raise InstallerError(f"skill source {str(src)!r} is not a directory")
    for current, _dirs, files in os.walk(src):
        rel = Path(current).relative_to(src)
        target_dir = target_root / rel
        target_dir.mkdir(mode=0o755, parents=True, exist_ok=True)
        for filename in files:
            target = target_dir / filename
            target.write_bytes((Path(current) / filename).read_bytes())
            os.chmod(target, 0o644)


def _install_skill(dest_root: str, src_root: Path) -> Result:
    if not (src_root / "SKILL.md").is_file():
        raise InstallerError(f"skill source {str(src_root)!r} not found: missing SKILL.md")
    action = Action.OVERWRITTEN if os.path.exists(os.path.join(dest_root, "SKILL.md")) else Action.INSTALLED
    try:
        copy_skill(dest_root, src_root)
    except OSError as exc:
        raise InstallerError(str(exc)) from exc
    return Result(destination=dest_root, action=action)


def _uninstall_skill(dest_root: str) -> Result:
    if not os.path.lexists(dest_root):
        return Result(destination=dest_root, action=Action.NOT_REGISTERED)
    try:
        if os.path.isdir(dest_root) and not os.path.islink(dest_root):
            shutil.rmtree(dest_root)
        else:
            os.remove(dest_root)
    except OSError as exc:
        raise InstallerError(str(exc), Result(destination=dest_root)) from exc
    return Result(destination=dest_root, action=Action.REMOVED)


def _home(home_dir: str | None) -> str:
    return home_dir if home_dir is not None else os.path.expanduser("~")


def _xdg(xdg_config_home: str | None) -> str:
    if xdg_config_home is not None:
        return xdg_config_home
    return os.environ.get("XDG_CONFIG_HOME", "")


def _root(skills_root: PathLike | None) -> Path:
    return Path(skills_root) if skills_root is not None else default_skills_root()


def install_claude_code_skill(
    name: str,
    skills_root: PathLike | None = None,
    home_dir: str | None = None,
) -> Result:
    """Copy the skill's claude/ variant into the Claude Code skills directory."""
    src = _root(skills_root) / name / "claude"
    return _install_skill(claude_skill_dir(_home(home_dir), name), src)


def install_opencode_skill(
    name: str,
    skills_root: PathLike | None = None,
    home_dir: str | None = None,
    xdg_config_home: str | None = None,
) -> Result:
    """Copy the skill's opencode/ variant into the OpenCode skills directory."""
    src = _root(skills_root) / name / "opencode"
    dest = opencode_skill_dir(_home(home_dir), _xdg(xdg_config_home), name)
    return _install_skill(dest, src)


def uninstall_claude_code_skill(name: str, home_dir: str | None = None) -> Result:
    """Remove the skill from Claude Code; NOT_REGISTERED when it was absent."""
    return _uninstall_skill(claude_skill_dir(_home(home_dir), name))


def uninstall_opencode_skill(
    name: str,
    home_dir: str | None = None,
    xdg_config_home: str | None = None,
) -> Result:
    """Remove the skill from OpenCode; NOT_REGISTERED when it was absent."""
    return _uninstall_skill(opencode_skill_dir(_home(home_dir), _xdg(xdg_config_home), name))