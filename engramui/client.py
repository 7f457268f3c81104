"""HTTP client for engram's public REST API."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from typing import Any, Mapping
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import urlopen


class EngramClientError(Exception):
    """Raised when engram cannot be reached or returns an unusable response."""


def _from_mapping(cls: type, data: Mapping[str, Any]) -> Any:
    """Build a dataclass from JSON keys; absent or null keys keep their defaults."""
    kwargs = {
        f.name: data[f.name]
        for f in fields(cls)
        if f.name in data and data[f.name] is not None
    }
    return cls(**kwargs)


@dataclass
class Stats:
    """Totals reported by engram's /stats route."""

    total_sessions: int = 0
    total_observations: int = 0
    total_prompts: int = 0
    projects: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Stats":
        return _from_mapping(cls, data)


@dataclass
class Observation:
    """One stored engram observation."""

    id: int = 0
    sync_id: str = ""
    session_id: str = ""
    type: str = ""
    title: str = ""
    content: str = ""
    tool_name: str | None = None
    project: str | None = None
    scope: str = ""
    topic_key: str | None = None
    revision_count: int = 0
    duplicate_count: int = 0
    last_seen_at: str | None = None
    created_at: str = ""
    updated_at: str = ""
    deleted_at: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Observation":
        return _from_mapping(cls, data)


@dataclass
class SearchResult(Observation):
    """An observation together with its relevance rank."""

    rank: float = 0.0


class EngramClient:
    """Client for the engram REST routes used by the UI."""

    def __init__(self, base: str, timeout: float = 10.0) -> None:
        self._base = base
        self._timeout = timeout

    def base_url(self) -> str:
        """The base URL requests are sent to."""
        return self._base

    def health(self) -> None:
        """Raise EngramClientError unless /health answers 200."""
        try:
            with urlopen(self._base + "/health", timeout=self._timeout) as resp:
                status = resp.status
        except HTTPError as exc:
            exc.close()
            raise EngramClientError(f"engram /health returned status {exc.code}") from exc
        except (URLError, OSError) as exc:
            raise EngramClientError(str(exc)) from exc
        if status != 200:
            raise EngramClientError(f"engram /health returned status {status}")

    def stats(self) -> Stats:
        """Fetch global totals."""
        payload = self._get_json("/stats")
        return Stats.from_dict(self._as_object("/stats", payload))

    def search(
        self,
        query: str,
        *,
        obs_type: str = "",
        project: str = "",
        scope: str = "",
        limit: int = 0,
    ) -> list[SearchResult]:
        """Full-text search over observations."""
        params = {"q": query}
        params.update(self._filters(obs_type=obs_type, project=project, scope=scope, limit=limit))
        payload = self._get_json("/search", params)
        return [SearchResult.from_dict(item) for item in self._as_list("/search", payload)]

    def observation(self, observation_id: int) -> Observation:
        """Fetch one observation by id."""
        path = f"/observations/{int(observation_id)}"
        return Observation.from_dict(self._as_object(path, self._get_json(path)))

    def recent_observations(
        self,
        *,
        project: str = "",
        scope: str = "",
        limit: int = 0,
        obs_type: str = "",
    ) -> list[Observation]:
        """Most recent observations, optionally filtered."""
        path = "/observations/recent"
        params = self._filters(obs_type=obs_type, project=project, scope=scope, limit=limit)
        payload = self._get_json(path, params)
        return [Observation.from_dict(item) for item in self._as_list(path, payload)]

    @staticmethod
    def _filters(*, obs_type: str, project: str, scope: str, limit: int) -> dict[str, str]:
        params: dict[str, str] = {}
        if obs_type:
            params["type"] = obs_type
        if project:
            params["project"] = project
        if scope:
            params["scope"] = scope
        if limit > 0:
            params["limit"] = str(limit)
        return params

    def _get_json(self, path: str, query: Mapping[str, str] | None = None) -> Any:
        url = self._base + path
        if query:
            url += "?" + urlencode(sorted(query.items()))
        try:
            with urlopen(url, timeout=self._timeout) as resp:
                status = resp.status
                body = resp.read()
        except HTTPError as exc:
            exc.close()
            raise EngramClientError(f"GET {path}: status {exc.code}") from exc
        except (URLError, OSError) as exc:
            raise EngramClientError(f"GET {path}: {exc}") from exc
        if status != 200:
            raise EngramClientError(f"GET {path}: status {status}")
        try:
            return json.loads(body)
        except ValueError as exc:
            raise EngramClientError(f"GET {path}: decode: {exc}") from exc

    @staticmethod
    def _as_object(path: str, payload: Any) -> Mapping[str, Any]:
        if payload is None:
            return {}
        if not isinstance(payload, dict):
            raise EngramClientError(f"GET {path}: decode: expected a JSON object")
        return payload

    @staticmethod
    def _as_list(path: str, payload: Any) -> list[Mapping[str, Any]]:
        if payload is None:
            return []
        if not isinstance(payload, list) or not all(isinstance(i, dict) for i in payload):
            raise EngramClientError(f"GET {path}: decode: expected a JSON array of objects")
        return payload