import json
import logging
import os
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Optional, Tuple
from urllib.parse import parse_qs, urlparse

from buscador import __version__
from buscador.core.render import HtmlRenderer
from buscador.core.search_engine import ENGINE_HARD_CAP
from buscador.core.session import SearchSession

logger = logging.getLogger(__name__)


def _qs_int(qs: dict, key: str, default: Optional[int]) -> Optional[int]:
    try:
        return int((qs.get(key) or [""])[0])
    except (TypeError, ValueError):
        return default


def _qs_bool(qs: dict, key: str) -> Optional[bool]:
    raw = (qs.get(key) or [""])[0].strip().lower()
    if not raw:
        return None
    return raw in ("1", "true", "yes", "on")


class Handler(BaseHTTPRequestHandler):
    # class attributes injected in `serve_forever`
    session: SearchSession
    renderer: HtmlRenderer = HtmlRenderer()
    server_host: str = "127.0.0.1"
    server_port: int = 0

    def _send(self, body: bytes, content_type: str, status: int = 200):
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _json(self, obj, status=200):
        self._send(json.dumps(obj, ensure_ascii=False).encode("utf-8"), "application/json; charset=utf-8", status)

    def _html(self, text: str, status=200):
        self._send(text.encode("utf-8"), "text/html; charset=utf-8", status)

    def log_message(self, format, *args):
        logger.debug("%s - %s", self.address_string(), format % args)

    def do_GET(self):
        parsed = urlparse(self.path)
        path = parsed.path
        qs = parse_qs(parsed.query)
        files = self.session.files

        if path == "/health":
            return self._json({"ok": True})

        if path == "/status":
            return self._json(
                {
                    "ok": True,
                    "host": self.server_host,
                    "port": self.server_port,
                    "version": __version__,
                    "file_count": files.get_file_count(),
                    "total_size": files.get_total_size(),
                }
            )

        if path == "/files":
            if (qs.get("format") or ["json"])[0] == "html":
                return self._html(self.renderer.render_file_list(files.get_loaded_files()))
            return self._json({"ok": True, "files": [s.to_dict() for s in files.get_loaded_files()]})

        if path == "/search":
            q = (qs.get("q") or [""])[0]
            if not q.strip():
                return self._json({"ok": False, "error": "missing q"}, status=400)
            context = _qs_int(qs, "context", None)
            limit = _qs_int(qs, "limit", None)
            with self.session.lock:
                outcome = self.session.search(
                    q,
                    advanced=_qs_bool(qs, "advanced"),
                    case_sensitive=_qs_bool(qs, "case_sensitive"),
                    context_lines=max(0, min(context, 20)) if context is not None else None,
                    max_results=max(0, min(limit, ENGINE_HARD_CAP)) if limit is not None else None,
                )
            if (qs.get("format") or ["json"])[0] == "html":
                return self._html(self.renderer.render_results(outcome.results, q, outcome.options))
            payload = outcome.to_dict()
            payload["ok"] = True
            return self._json(payload)

        return self._json({"ok": False, "error": "not found"}, status=404)


def serve_forever(host: str, port: int, session: SearchSession) -> Tuple[ThreadingHTTPServer, int]:
    """Start the HTTP API on a daemon thread.

    Returns:
        tuple: (ThreadingHTTPServer, actual_port)
    """

    class BoundHandler(Handler):
        pass

    BoundHandler.session = session
    BoundHandler.server_host = host

    strategy = (os.environ.get("BUSCADOR_HTTP_PORT_STRATEGY") or "auto").strip().lower()
    actual_port = port
    try:
        httpd = ThreadingHTTPServer((host, actual_port), BoundHandler)
    except OSError as e:
        if strategy == "strict":
            raise RuntimeError(f"HTTP API port {actual_port} unavailable: {e}") from e
        # auto strategy: retry with an OS-assigned port
        try:
            httpd = ThreadingHTTPServer((host, 0), BoundHandler)
        except OSError as e2:
            raise RuntimeError("Failed to create HTTP server") from e2
    actual_port = httpd.server_address[1]
    BoundHandler.server_port = actual_port

    if actual_port != port and port != 0:
        logger.warning("HTTP API started on port %d (requested: %d)", actual_port, port)
    else:
        logger.info("HTTP API listening on %s:%d", host, actual_port)

    th = threading.Thread(target=httpd.serve_forever, daemon=True)
    th.start()
    return (httpd, actual_port)
