"""Rendering helpers for the web UI: safe Markdown, relative times and truncation."""

from __future__ import annotations

import html
import re
from datetime import datetime, timedelta, timezone
from typing import Any

import mistune

_PLUGINS = ["strikethrough", "table", "url", "task_lists"]

_TAG_RE = re.compile(r"<[^>]*>")


def _slugify(rendered_text: str) -> str:
    """Build a heading id the way auto heading IDs are usually derived."""
    plain = html.unescape(_TAG_RE.sub("", rendered_text)).strip().lower()
    chars = []
    for ch in plain:
        if ch.isascii() and (ch.isalnum() or ch in "-_"):
            chars.append(ch)
        elif ch.isspace():
            chars.append("-")
    return "".join(chars) or "heading"


class _HTMLRenderer(mistune.HTMLRenderer):
    """HTML renderer that escapes raw HTML and gives every heading a unique id."""

    def __init__(self) -> None:
        super().__init__(escape=True)
        self._used_ids: set[str] = set()

    def _unique_id(self, base: str) -> str:
        candidate = base
        counter = 1
        while candidate in self._used_ids:
            candidate = f"{base}-{counter}"
            counter += 1
        self._used_ids.add(candidate)
        return candidate

    def heading(self, text: str, level: int, **attrs: Any) -> str:
        if not attrs.get("id"):
            attrs["id"] = self._unique_id(_slugify(text))
        return super().heading(text, level, **attrs)


def markdown(text: str) -> str:
    """Convert Markdown to HTML with raw HTML escaped and harmful links neutralised.

    Single newlines are soft wraps; a trailing double space still yields ``<br />``.
    """
    try:
        md = mistune.create_markdown(renderer=_HTMLRenderer(), plugins=_PLUGINS)
        return md(text)
    except Exception:  # the parser should not fail; never emit untrusted HTML if it does
        return html.escape(text, quote=False)


_ISO_RE = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})"
    r"(?:([T ])(\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:\d{2})?)?"
)


def _parse_iso(iso: str) -> datetime | None:
    """Parse RFC 3339, naive date-time (T or space) or date-only input; None if unknown."""
    iso = iso.strip()
    if not iso:
        return None
    match = _ISO_RE.fullmatch(iso)
    if match is None:
        return None
    year, month, day, sep, hour, minute, second, frac, tz = match.groups()
    if sep == " " and tz is not None:
        return None
    try:
        if sep is None:
            return datetime(int(year), int(month), int(day), tzinfo=timezone.utc)
        if tz is None or tz == "Z":
            tzinfo = timezone.utc
        else:
            sign = -1 if tz[0] == "-" else 1
            offset = timedelta(hours=int(tz[1:3]), minutes=int(tz[4:6]))
            tzinfo = timezone(sign * offset)
        micro = int(frac[:6].ljust(6, "0")) if frac else 0
        return datetime(
            int(year), int(month), int(day),
            int(hour), int(minute), int(second), micro,
            tzinfo=tzinfo,
        )
    except ValueError:
        return None


_MINUTE = timedelta(minutes=1)
_HOUR = timedelta(hours=1)
_DAY = timedelta(days=1)
_WEEK = timedelta(days=7)
_MONTH = timedelta(days=30)
_YEAR = timedelta(days=365)


def time_ago(iso: str, now: datetime) -> str:
    """Format ``iso`` relative to ``now`` ("5m ago", "3w ago"); "" when unparseable.

    Future timestamps clamp to "just now".
    """
    t = _parse_iso(iso)
    if t is None:
        return ""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    d = now - t
    if d < _MINUTE:
        return "just now"
    if d < _HOUR:
        return f"{d // _MINUTE}m ago"
    if d < _DAY:
        return f"{d // _HOUR}h ago"
    if d < _WEEK:
        return f"{d // _DAY}d ago"
    if d < _MONTH:
        return f"{d // _WEEK}w ago"
    if d < _YEAR:
        return f"{d // _MONTH}mo ago"
    return f"{d // _YEAR}y ago"


def time_ago_now(iso: str) -> str:
    """Relative label for ``iso`` against the current time."""
    return time_ago(iso, datetime.now(timezone.utc))


_MONTH_NAMES = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)


def format_datetime(iso: str) -> str:
    """Absolute UTC label like "May 16, 2026 14:30 UTC"; the input itself if unparseable."""
    t = _parse_iso(iso)
    if t is None:
        return iso
    t = t.astimezone(timezone.utc)
    return f"{_MONTH_NAMES[t.month - 1]} {t.day}, {t.year:04d} {t.hour:02d}:{t.minute:02d} UTC"


def format_date(iso: str) -> str:
    """Date-only UTC label like "May 16, 2026"; the input itself if unparseable."""
    t = _parse_iso(iso)
    if t is None:
        return iso
    t = t.astimezone(timezone.utc)
    return f"{_MONTH_NAMES[t.month - 1]} {t.day}, {t.year:04d}"


def truncate(s: str, max_runes: int) -> str:
    """Clip ``s`` to at most ``max_runes`` code points, without an ellipsis.

    A negative limit leaves the string unchanged.
    """
    if max_runes < 0 or len(s) <= max_runes:
        return s
    return s[:max_runes]