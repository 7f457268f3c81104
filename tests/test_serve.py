import os
import signal
import socket
import subprocess
import sys
import threading
from contextlib import contextmanager
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from engramui.client import EngramClient, EngramClientError
from engramui.serve import (
    is_already_running,
    normalize_listen_addr,
    stop_spawned,
    wait_for_engram,
)


@contextmanager
def _stub_server(status, body=b"", paths=None):
    class Handler(BaseHTTPRequestHandler):
        def do_GET(self):
            if paths is not None:
                paths.append(self.path)
            self.send_response(status)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, *args):
            pass

    srv = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
    thread = threading.Thread(target=srv.serve_forever, daemon=True)
    thread.start()
    try:
        yield srv
    finally:
        srv.shutdown()
        srv.server_close()


def _url(srv):
    return f"http://127.0.0.1:{srv.server_address[1]}"


def _free_port():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.mark.parametrize(
    "status, body, expected",
    [
        (200, b"ok", True),
        (200, b"not-engram", False),
        (500, b"", False),
        (200, b"ok\n", True),
    ],
)
def test_is_already_running(status, body, expected):
    with _stub_server(status, body) as srv:
        assert is_already_running(_url(srv)) is expected


def test_is_already_running_probes_healthz():
    paths = []
    with _stub_server(200, b"ok", paths) as srv:
        assert is_already_running(_url(srv)) is True
    assert paths == ["/healthz"]


def test_is_already_running_bare_port_form():
    with _stub_server(200, b"ok") as srv:
        assert is_already_running(f":{srv.server_address[1]}") is True


def test_is_already_running_no_server():
    assert is_already_running(f"http://127.0.0.1:{_free_port()}") is False


@pytest.mark.parametrize(
    "addr, expected",
    [
        (":7438", "http://localhost:7438"),
        (":9000", "http://localhost:9000"),
        ("http://localhost:7438", "http://localhost:7438"),
        ("http://127.0.0.1:7438", "http://127.0.0.1:7438"),
        ("https://example.com:443", "https://example.com:443"),
    ],
)
def test_normalize_listen_addr(addr, expected):
    assert normalize_listen_addr(addr) == expected


def test_wait_for_engram_healthy():
    paths = []
    with _stub_server(200, b"", paths) as srv:
        wait_for_engram(EngramClient(_url(srv)), 2.0)
    assert paths == ["/health"]


def test_wait_for_engram_timeout():
    client = EngramClient(f"http://127.0.0.1:{_free_port()}")
    with pytest.raises(EngramClientError):
        wait_for_engram(client, 0.3)


def test_wait_for_engram_retries_until_healthy():
    class Flaky:
        def __init__(self):
            self.calls = 0

        def health(self):
            self.calls += 1
            if self.calls < 3:
                raise EngramClientError("down")

    flaky = Flaky()
    wait_for_engram(flaky, 5.0)
    assert flaky.calls == 3


def test_wait_for_engram_zero_timeout_reports_timeout():
    with pytest.raises(EngramClientError, match="timeout waiting for engram"):
        wait_for_engram(EngramClient("http://127.0.0.1:1"), 0.0)


def test_stop_spawned_kills_running_process():
    proc = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(30)"])
    stop_spawned(proc)
    expected = -signal.SIGKILL if os.name == "posix" else 1
    assert proc.returncode == expected


def test_stop_spawned_finished_process_keeps_exit_code():
    proc = subprocess.Popen([sys.executable, "-c", "pass"])
    proc.wait()
    stop_spawned(proc)
    assert proc.returncode == 0