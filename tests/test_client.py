import json
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import parse_qs, urlsplit

import pytest

from engramui.client import (
    EngramClient,
    EngramClientError,
    Observation,
    SearchResult,
    Stats,
)


class _Stub:
    def __init__(self):
        self.routes = {}
        self.requests = []
        self.server = None

    def route(self, path, status=200, body=b""):
        if not isinstance(body, (bytes, str)):
            body = json.dumps(body)
        if isinstance(body, str):
            body = body.encode()
        self.routes[path] = (status, body)

    @property
    def url(self):
        host, port = self.server.server_address[:2]
        return f"http://{host}:{port}"


@pytest.fixture
def stub():
    state = _Stub()

    class Handler(BaseHTTPRequestHandler):
        def do_GET(self):
            state.requests.append(self.path)
            path = urlsplit(self.path).path
            status, body = state.routes.get(path, (404, b""))
            self.send_response(status)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, *args):
            pass

    server = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
    state.server = server
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield state
    server.shutdown()
    server.server_close()


def _query(request_path):
    return parse_qs(urlsplit(request_path).query)


def test_base_url_is_kept():
    client = EngramClient("http://localhost:7437")
    assert client.base_url() == "http://localhost:7437"


def test_health_ok_hits_health_route(stub):
    stub.route("/health", 200)
    result = EngramClient(stub.url).health()
    assert result is None
    assert stub.requests == ["/health"]


def test_health_bad_status_raises(stub):
    stub.route("/health", 500)
    with pytest.raises(EngramClientError, match="500"):
        EngramClient(stub.url).health()


def test_health_unreachable_raises(stub):
    url = stub.url
    stub.server.shutdown()
    stub.server.server_close()
    stub.server = type("Closed", (), {"shutdown": lambda self: None,
                                      "server_close": lambda self: None})()
    with pytest.raises(EngramClientError):
        EngramClient(url, timeout=1).health()


def test_stats_decodes_fields(stub):
    stub.route("/stats", body={
        "total_sessions": 3,
        "total_observations": 17,
        "total_prompts": 9,
        "projects": ["alpha", "beta"],
    })
    stats = EngramClient(stub.url).stats()
    assert stats == Stats(total_sessions=3, total_observations=17,
                          total_prompts=9, projects=["alpha", "beta"])


def test_stats_null_projects_become_empty(stub):
    stub.route("/stats", body={"total_sessions": 1, "projects": None})
    stats = EngramClient(stub.url).stats()
    assert stats.projects == []
    assert stats.total_sessions == 1


def test_non_200_status_message(stub):
    stub.route("/stats", 404)
    with pytest.raises(EngramClientError) as info:
        EngramClient(stub.url).stats()
    assert str(info.value) == "GET /stats: status 404"


def test_invalid_json_is_decode_error(stub):
    stub.route("/stats", body=b"{not json")
    with pytest.raises(EngramClientError, match="decode"):
        EngramClient(stub.url).stats()


def test_search_sends_filters_and_decodes(stub):
    stub.route("/search", body=[{
        "id": 7,
        "type": "bugfix",
        "title": "fixed it",
        "content": "details",
        "project": "alpha",
        "scope": "project",
        "rank": -1.5,
    }])
    results = EngramClient(stub.url).search(
        "hello world", obs_type="bugfix", project="alpha", limit=5
    )
    assert _query(stub.requests[0]) == {
        "q": ["hello world"],
        "type": ["bugfix"],
        "project": ["alpha"],
        "limit": ["5"],
    }
    assert len(results) == 1
    hit = results[0]
    assert isinstance(hit, SearchResult)
    assert (hit.id, hit.type, hit.title, hit.project, hit.rank) == (
        7, "bugfix", "fixed it", "alpha", -1.5
    )
    assert hit.topic_key is None


def test_search_omits_empty_options(stub):
    stub.route("/search", body=[])
    results = EngramClient(stub.url).search("q1", limit=0)
    assert results == []
    assert _query(stub.requests[0]) == {"q": ["q1"]}


def test_search_null_body_is_empty_list(stub):
    stub.route("/search", body=b"null")
    assert EngramClient(stub.url).search("x") == []


def test_search_non_array_is_decode_error(stub):
    stub.route("/search", body={"id": 1})
    with pytest.raises(EngramClientError, match="decode"):
        EngramClient(stub.url).search("x")


def test_observation_by_id(stub):
    stub.route("/observations/42", body={
        "id": 42,
        "session_id": "s-1",
        "title": "t",
        "tool_name": "mem_save",
        "created_at": "2026-05-16T14:30:00Z",
    })
    obs = EngramClient(stub.url).observation(42)
    assert stub.requests == ["/observations/42"]
    assert isinstance(obs, Observation)
    assert obs.id == 42
    assert obs.session_id == "s-1"
    assert obs.tool_name == "mem_save"
    assert obs.created_at == "2026-05-16T14:30:00Z"
    assert obs.deleted_at is None


def test_observation_missing_raises(stub):
    with pytest.raises(EngramClientError, match="status 404"):
        EngramClient(stub.url).observation(99)


def test_recent_observations_filters(stub):
    stub.route("/observations/recent", body=[
        {"id": 1, "type": "session_summary"},
        {"id": 2, "type": "session_summary"},
    ])
    items = EngramClient(stub.url).recent_observations(
        project="alpha", scope="personal", limit=10, obs_type="session_summary"
    )
    assert [o.id for o in items] == [1, 2]
    assert _query(stub.requests[0]) == {
        "project": ["alpha"],
        "scope": ["personal"],
        "type": ["session_summary"],
        "limit": ["10"],
    }


def test_recent_observations_without_filters_has_no_query(stub):
    stub.route("/observations/recent", body=[])
    EngramClient(stub.url).recent_observations()
    assert stub.requests == ["/observations/recent"]