import http.client
import json
import socket
from concurrent.futures import ThreadPoolExecutor
from urllib.parse import quote

import pytest

from buscador.core import http_server
from buscador.core.config import Config
from buscador.core.session import SearchSession
from buscador.core.storage import MemoryBackend, StorageSystem


def _request(port: int, path: str):
    conn = http.client.HTTPConnection("127.0.0.1", port, timeout=2)
    conn.request("GET", path)
    resp = conn.getresponse()
    body = resp.read()
    ctype = resp.getheader("Content-Type")
    conn.close()
    return resp.status, ctype, body.decode("utf-8")


@pytest.fixture
def served():
    session = SearchSession(Config.load(), storage=StorageSystem(MemoryBackend(), auto_backup=False))
    session.add_text("a.txt", "alpha\nbeta alpha\ngamma")
    session.add_text("b.txt", "<alpha & beta>")
    httpd, port = http_server.serve_forever("127.0.0.1", 0, session)
    try:
        yield session, port
    finally:
        httpd.shutdown()
        httpd.server_close()


@pytest.mark.allow_socket
def test_health_and_status(served):
    session, port = served
    status, _, body = _request(port, "/health")
    assert status == 200
    assert json.loads(body) == {"ok": True}

    status, _, body = _request(port, "/status")
    data = json.loads(body)
    assert data["file_count"] == 2
    assert data["port"] == port
    assert data["total_size"] == session.files.get_total_size()


@pytest.mark.allow_socket
def test_files_json_and_html(served):
    _, port = served
    _, _, body = _request(port, "/files")
    assert [f["name"] for f in json.loads(body)["files"]] == ["a.txt", "b.txt"]

    _, ctype, body = _request(port, "/files?format=html")
    assert ctype.startswith("text/html")
    assert "file-item" in body


@pytest.mark.allow_socket
def test_search_json(served):
    session, port = served
    status, _, body = _request(port, "/search?q=alpha&context=0&limit=2")
    data = json.loads(body)
    assert status == 200
    assert data["ok"] is True
    assert data["options"]["context_lines"] == 0
    assert [(r["file"], r["line_number"]) for r in data["results"]] == [("a.txt", 1), ("b.txt", 1)]
    assert data["stats"]["total_results"] == 2
    assert session.history()[0]["query"] == "alpha"


@pytest.mark.allow_socket
def test_search_advanced_and_case_flags(served):
    _, port = served
    _, _, body = _request(port, "/search?q=beta+alpha&advanced=1")
    data = json.loads(body)
    assert data["advanced"] is True
    assert [(r["file"], r["line_number"]) for r in data["results"]] == [("b.txt", 1), ("a.txt", 2)]

    _, _, body = _request(port, "/search?q=ALPHA&case_sensitive=true")
    assert json.loads(body)["results"] == []


@pytest.mark.allow_socket
def test_search_html_escapes(served):
    _, port = served
    _, ctype, body = _request(port, "/search?q=alpha&format=html")
    assert ctype.startswith("text/html")
    assert "&lt;" in body
    assert "<alpha" not in body


@pytest.mark.allow_socket
def test_search_bad_params_fall_back(served):
    _, port = served
    status, _, body = _request(port, "/search?q=gamma&context=abc&limit=xyz")
    data = json.loads(body)
    assert status == 200
    assert data["options"]["context_lines"] == 2
    assert data["options"]["max_results"] == 100


@pytest.mark.allow_socket
def test_missing_query_and_unknown_path(served):
    _, port = served
    status, _, body = _request(port, "/search?q=")
    assert status == 400
    assert json.loads(body)["error"] == "missing q"

    status, _, _ = _request(port, "/nope")
    assert status == 404


@pytest.mark.allow_socket
def test_port_fallback_and_strict(monkeypatch):
    session = SearchSession(Config.load(), storage=StorageSystem(MemoryBackend(), auto_backup=False))
    blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    blocker.bind(("127.0.0.1", 0))
    blocker.listen(1)
    busy = blocker.getsockname()[1]
    try:
        httpd, port = http_server.serve_forever("127.0.0.1", busy, session)
        assert port != busy
        httpd.shutdown()
        httpd.server_close()

        monkeypatch.setenv("BUSCADOR_HTTP_PORT_STRATEGY", "strict")
        with pytest.raises(RuntimeError):
            http_server.serve_forever("127.0.0.1", busy, session)
    finally:
        blocker.close()


@pytest.mark.allow_socket
def test_search_limit_zero_returns_nothing(served):
    _, port = served
    _, _, body = _request(port, "/search?q=alpha&limit=0")
    data = json.loads(body)
    assert data["options"]["max_results"] == 0
    assert data["results"] == []


@pytest.mark.allow_socket
def test_concurrent_searches_all_recorded(served):
    session, port = served
    queries = ["alpha", "beta", "gamma", "ALPHA beta", "&"]
    with ThreadPoolExecutor(max_workers=len(queries)) as pool:
        statuses = list(pool.map(lambda q: _request(port, "/search?q=" + quote(q))[0], queries))
    assert statuses == [200] * len(queries)
    assert sorted(h["query"] for h in session.history()) == sorted(queries)
