"""Discovery of installable skills from a skills tree."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml


class CatalogError(Exception):
    """Raised when the skills tree cannot be read or a skill is malformed."""


@dataclass(frozen=True)
class Skill:
    """One installable skill."""

    name: str
    description: str = ""


def default_skills_root() -> Path:
    """The skills tree shipped alongside the package."""
    return Path(__file__).resolve().parent / "skills"


def parse_frontmatter(data: str | bytes) -> dict[str, Any]:
    """Return the YAML mapping between leading ``---`` markers.

    An empty mapping is returned when the text has no frontmatter.
    """
    body = data.decode("utf-8") if isinstance(data, bytes) else data
    if not body.startswith("---"):
        return {}
    rest = body[3:]
    if rest.startswith("\r\n"):
        rest = rest[2:]
    elif rest.startswith("\n"):
        rest = rest[1:]
    end = rest.find("\n---")
    if end < 0:
        raise CatalogError("frontmatter opening `---` has no closing marker")
    try:
        parsed = yaml.safe_load(rest[:end])
    except yaml.YAMLError as exc:
        raise CatalogError(f"yaml unmarshal: {exc}") from exc
    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise CatalogError("yaml unmarshal: frontmatter is not a mapping")
    return parsed


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def load_catalog(skills_root: str | os.PathLike[str] | None = None) -> list[Skill]:
    """List the skills under ``skills_root`` sorted by name.

    A skill is catalogued only when ``<skill>/claude/SKILL.md`` exists; other
    directories are skipped.
    """
    root = Path(skills_root) if skills_root is not None else default_skills_root()
    try:
        entries = sorted(root.iterdir(), key=lambda p: p.name)
    except OSError as exc:
        raise CatalogError(f"read skills root: {exc}") from exc

    skills = []
    for entry in entries:
        if not entry.is_dir():
            continue
        skill_md = entry / "claude" / "SKILL.md"
        try:
            data = skill_md.read_bytes()
        except OSError:
            continue
        try:
            fm = parse_frontmatter(data)
        except CatalogError as exc:
            raise CatalogError(f"parse frontmatter {skill_md}: {exc}") from exc
        name = _text(fm.get("name"))
        if not name:
            raise CatalogError(f"frontmatter at {skill_md} missing required field 'name'")
        skills.append(Skill(name=name, description=_text(fm.get("description")).strip()))

    skills.sort(key=lambda s: s.name)
    return skills