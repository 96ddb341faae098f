import socket

import pytest

from buscador.core.models import TextSource


@pytest.fixture(autouse=True)
def _buscador_test_isolation(monkeypatch, tmp_path, request):
    """
    Hard isolation so tests never touch real user directories or the network.
    Tests can explicitly override with monkeypatch if needed.
    """
    cfg_path = tmp_path / "config.json"
    cfg_path.write_text("{}\n", encoding="utf-8")
    monkeypatch.setenv("BUSCADOR_CONFIG", str(cfg_path))
    monkeypatch.setenv("BUSCADOR_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("BUSCADOR_LOG_DIR", str(tmp_path / "logs"))
    for key in [
        "BUSCADOR_CONTEXT_LINES",
        "BUSCADOR_MAX_RESULTS",
        "BUSCADOR_CASE_SENSITIVE",
        "BUSCADOR_AUTO_BACKUP",
        "BUSCADOR_HTTP_HOST",
        "BUSCADOR_HTTP_PORT",
        "BUSCADOR_HTTP_PORT_STRATEGY",
    ]:
        monkeypatch.delenv(key, raising=False)

    if request.node.get_closest_marker("allow_socket") is None:
        def _blocked_socket(*_args, **_kwargs):
            raise RuntimeError("Test isolation: socket.create_connection blocked (mock it in test).")

        monkeypatch.setattr(socket, "create_connection", _blocked_socket)


@pytest.fixture
def sample_sources():
    return [
        TextSource.from_content("a.txt", "alpha\nbeta alpha\ngamma\ndelta\nalpha beta"),
        TextSource.from_content("b.txt", "beta\nALPHA\nnothing here"),
    ]


@pytest.fixture
def text_files(tmp_path):
    root = tmp_path / "docs"
    root.mkdir()
    (root / "notes.txt").write_text("first line\nneedle in a haystack\nlast line\n", encoding="utf-8")
    (root / "todo.txt").write_text("buy milk\nfind the NEEDLE\n", encoding="utf-8")
    (root / "image.png").write_bytes(b"\x89PNG\r\n\x1a\n")
    return root
