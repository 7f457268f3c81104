"""Helpers for running the web UI daemon next to an engram REST server."""

from __future__ import annotations

import logging
import subprocess
import time
from typing import Protocol
from urllib.error import HTTPError
from urllib.request import urlopen

from engramui.client import EngramClientError

log = logging.getLogger(__name__)

_PROBE_TIMEOUT = 0.5
_PROBE_BODY_LIMIT = 32
_POLL_INTERVAL = 0.2


class _HealthChecked(Protocol):
    def health(self) -> None: ...


def normalize_listen_addr(addr: str) -> str:
    """Turn a bare ":port" listen address into "http://localhost:port".

    Addresses that already start with http:// or https:// are returned unchanged.
    """
    if addr.startswith(("http://", "https://")):
        return addr
    port = addr[1:] if addr.startswith(":") else addr
    return "http://localhost:" + port


def is_already_running(listen_addr: str) -> bool:
    """Whether an instance already answers ``/healthz`` with 200 and body "ok"."""
    url = normalize_listen_addr(listen_addr) + "/healthz"
    try:
        with urlopen(url, timeout=_PROBE_TIMEOUT) as resp:
            if resp.status != 200:
                return False
            body = resp.read(_PROBE_BODY_LIMIT)
    except HTTPError as exc:
        exc.close()
        return False
    except Exception:  # any network or protocol failure means "not running"
        return False
    return body.decode("utf-8", errors="replace").strip() == "ok"


def wait_for_engram(client: _HealthChecked, timeout: float) -> None:
    """Poll ``client.health()`` until it succeeds or ``timeout`` seconds pass.

    Raises the last health error, or EngramClientError if none was seen.
    """
    deadline = time.monotonic() + timeout
    last_error: Exception | None = None
    while time.monotonic() < deadline:
        try:
            client.health()
        except EngramClientError as exc:
            last_error = exc
        else:
            return
        time.sleep(_POLL_INTERVAL)
    if last_error is None:
        raise EngramClientError("timeout waiting for engram")
    raise last_error


def spawn_engram() -> subprocess.Popen:
    """Start ``engram serve`` sharing this process's stdout and stderr."""
    return subprocess.Popen(["engram", "serve"])


def stop_spawned(process: subprocess.Popen | None) -> None:
    """Kill a spawned process and wait for it; ``None`` is ignored."""
    if process is None:
        return
    log.info("stopping engram serve (pid=%d)", process.pid)
    try:
        process.kill()
    except OSError:
        pass
    try:
        process.wait()
    except OSError:
        pass