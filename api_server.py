"""HTTP API server exposing ledger actions as JSON."""
import json
import logging
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Dict, Optional
from urllib.parse import parse_qs, urlparse

from actions import handle_action
from ledger_service import LedgerService
from utils import LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET,POST,PUT,DELETE,OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


class ApiHandler(BaseHTTPRequestHandler):
    """Routes ``/api?action=...`` to the ledger service."""

    service: Optional[LedgerService] = None

    def log_message(self, format: str, *args) -> None:
        """Override to use our logger."""
        logger.debug("API request: %s", format % args)

    def do_OPTIONS(self) -> None:
        self.send_response(200)
        for key, value in CORS_HEADERS.items():
            self.send_header(key, value)
        self.end_headers()
        self.wfile.write(b"ok")

    def do_GET(self) -> None:
        self._handle({})

    def do_POST(self) -> None:
        length = int(self.headers.get("Content-Length") or 0)
        raw = self.rfile.read(length) if length else b""
        body: Any = {}
        if raw:
            try:
                body = json.loads(raw)
            except json.JSONDecodeError:
                self._send_json(400, {"ok": False, "error": "Request body is not valid JSON"})
                return
        if not isinstance(body, dict):
            self._send_json(400, {"ok": False, "error": "Request body must be a JSON object"})
            return
        self._handle(body)

    def _handle(self, body: Dict[str, Any]) -> None:
        parsed = urlparse(self.path)
        if parsed.path.rstrip("/") not in ("", "/api"):
            self._send_json(404, {"ok": False, "error": "Not found"})
            return

        # Query string wins over the body.
        params: Dict[str, Any] = dict(body)
        for key, values in parse_qs(parsed.query).items():
            params[key] = values[-1]
        action = str(params.pop("action", "") or "")

        try:
            status, payload = handle_action(self.service, action, params)
        except Exception as e:
            logger.exception(f"Unhandled error in action {action}")
            status, payload = 500, {"ok": False, "error": str(e) or e.__class__.__name__}
        self._send_json(status, payload)

    def _send_json(self, status_code: int, data: Any) -> None:
        """Send JSON response."""
        self.send_response(status_code)
        self.send_header("Content-Type", "application/json")
        for key, value in CORS_HEADERS.items():
            self.send_header(key, value)
        self.end_headers()
        self.wfile.write(json.dumps(data).encode())


class ApiServer:
    """HTTP server for the ledger API, optionally in a background thread."""

    def __init__(self, service: LedgerService, host: str = "127.0.0.1", port: int = 8888):
        self.service = service
        self.host = host
        self.port = port
        self._server: Optional[HTTPServer] = None
        self._thread: Optional[threading.Thread] = None

    def _build(self) -> HTTPServer:
        handler = type("BoundApiHandler", (ApiHandler,), {"service": self.service})
        self._server = HTTPServer((self.host, self.port), handler)
        # Port 0 binds an ephemeral port; report the real one.
        self.port = self._server.server_address[1]
        return self._server

    def start(self) -> None:
        """Start the server in a background thread."""
        self._build()
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()
        logger.info(f"API server started on {self.host}:{self.port}")

    def serve_forever(self) -> None:
        """Serve in the calling thread until interrupted."""
        server = self._build()
        logger.info(f"API server listening on {self.host}:{self.port}")
        try:
            server.serve_forever()
        finally:
            server.server_close()

    def _run(self) -> None:
        if self._server:
            self._server.serve_forever()

    def stop(self) -> None:
        """Stop the server."""
        if self._server:
            self._server.shutdown()
            self._server.server_close()
            logger.info("API server stopped")
