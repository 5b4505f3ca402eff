"""HTTP receiver for Dink webhooks plus read-only board endpoints."""

from __future__ import annotations

import json
import threading
from email import policy
from email.parser import BytesParser
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlparse

from core.engine import AggregationEngine, Status
from core.errors import InvalidInput
from services.webhook.normalizer import (
    ChatSource,
    RawChatEvent,
    from_dink_payload,
    normalize,
)
from shared.config.system import WebhookSettings
from shared.logging.logger import get_logger

log = get_logger("services.webhook", runtime="webhook")

STATUS_RESPONSES: Dict[Status, Tuple[int, Optional[str]]] = {
    Status.OK: (HTTPStatus.OK, "ok"),
    Status.DUPLICATE: (HTTPStatus.OK, "dup"),
    Status.IGNORED_NON_CLAN: (HTTPStatus.NO_CONTENT, None),
    Status.INVALID: (HTTPStatus.BAD_REQUEST, "invalid"),
}


def parse_multipart_fields(content_type: str, body: bytes) -> Dict[str, str]:
    """Return the text parts of a multipart/form-data body; file parts are skipped."""
    header = f"Content-Type: {content_type}\r\nMIME-Version: 1.0\r\n\r\n".encode("latin-1")
    message = BytesParser(policy=policy.HTTP).parsebytes(header + body)

    fields: Dict[str, str] = {}
    if not message.is_multipart():
        return fields

    for part in message.iter_parts():
        name = part.get_param("name", header="content-disposition")
        if not name or part.get_filename():
            continue
        payload = part.get_payload(decode=True) or b""
        charset = part.get_content_charset() or "utf-8"
        fields[str(name)] = payload.decode(charset, errors="replace")
    return fields


class WebhookServer:
    def __init__(self, engine: AggregationEngine, config: Optional[WebhookSettings] = None) -> None:
        self._engine = engine
        self._config = config or WebhookSettings()
        self._thread: Optional[threading.Thread] = None
        self._server: Optional[ThreadingHTTPServer] = None

    @property
    def server_address(self) -> Optional[Tuple[str, int]]:
        if not self._server:
            return None
        host, port = self._server.server_address[:2]
        return str(host), int(port)

    def start(self) -> None:
        if not self._config.enabled:
            log.info("Webhook server disabled via config")
            return
        if self._thread and self._thread.is_alive():
            return

        handler = self._build_handler()
        self._server = ThreadingHTTPServer(
            (self._config.host, int(self._config.port)),
            handler,
        )
        self._server.daemon_threads = True
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()
        log.info(
            "Webhook server running on %s:%s",
            *self.server_address,
        )

    def stop(self) -> None:
        if not self._server:
            return
        self._server.shutdown()
        self._server.server_close()
        self._server = None
        self._thread = None
        log.info("Webhook server stopped")

    def _build_handler(self):
        engine = self._engine

        class Handler(BaseHTTPRequestHandler):
            # ----------------------------------------------------------
            # Response helpers
            # ----------------------------------------------------------

            def _send_text(self, status: int, text: Optional[str]) -> None:
                body = (text or "").encode("utf-8")
                self.send_response(status)
                if status != HTTPStatus.NO_CONTENT:
                    self.send_header("Content-Type", "text/plain; charset=utf-8")
                    self.send_header("Content-Length", str(len(body)))
                self.end_headers()
                if status != HTTPStatus.NO_CONTENT:
                    self.wfile.write(body)

            def _send_json(self, status: int, payload: Any) -> None:
                body = json.dumps(payload).encode("utf-8")
                self.send_response(status)
                self.send_header("Content-Type", "application/json")
                self.send_header("Content-Length", str(len(body)))
                self.end_headers()
                self.wfile.write(body)

            def _send_status(self, status: Status) -> None:
                code, text = STATUS_RESPONSES[status]
                self._send_text(code, text)

            def _read_body(self) -> Optional[bytes]:
                """Request body, or None after a 400 for a bad Content-Length."""
                try:
                    length = int(self.headers.get("Content-Length", 0) or 0)
                except ValueError:
                    length = -1
                if length < 0:
                    self._send_text(HTTPStatus.BAD_REQUEST, "bad Content-Length")
                    return None
                return self.rfile.read(length) if length > 0 else b""

            # ----------------------------------------------------------
            # Routing
            # ----------------------------------------------------------

            def do_GET(self) -> None:  # noqa: N802 - stdlib signature
                parsed = urlparse(self.path)
                if parsed.path.startswith("/api/"):
                    return self._handle_api_get(parsed)
                self.send_error(HTTPStatus.NOT_FOUND, "Not Found")

            def do_POST(self) -> None:  # noqa: N802 - stdlib signature
                parsed = urlparse(self.path)
                path = parsed.path.rstrip("/")

                if path == "/ping":
                    return self._send_text(HTTPStatus.OK, "pong")
                if path == "/dink":
                    return self._handle_dink()
                if path == "/api/events":
                    return self._handle_structured()
                self.send_error(HTTPStatus.NOT_FOUND, "Not Found")

            # ----------------------------------------------------------
            # Inbound events
            # ----------------------------------------------------------

            def _handle_dink(self) -> None:
                content_type = self.headers.get("Content-Type", "")
                body = self._read_body()
                if body is None:
                    return

                if content_type.startswith("multipart/"):
                    json_str = parse_multipart_fields(content_type, body).get("payload_json")
                elif content_type.startswith("application/json"):
                    json_str = body.decode("utf-8", errors="replace")
                elif content_type.startswith("text/plain"):
                    return self._handle_raw(
                        RawChatEvent(
                            source=ChatSource.CHAT_LINE,
                            text=body.decode("utf-8", errors="replace"),
                        )
                    )
                else:
                    json_str = None

                if not json_str:
                    return self._send_text(HTTPStatus.BAD_REQUEST, "no payload_json")

                try:
                    payload = json.loads(json_str)
                except json.JSONDecodeError:
                    return self._send_text(HTTPStatus.BAD_REQUEST, "bad JSON")

                raw = from_dink_payload(payload)
                if raw is None:
                    return self._send_text(HTTPStatus.NO_CONTENT, None)
                return self._handle_raw(raw)

            def _handle_structured(self) -> None:
                body = self._read_body()
                if body is None:
                    return
                try:
                    payload = json.loads(body.decode("utf-8") or "null")
                except (json.JSONDecodeError, UnicodeDecodeError):
                    return self._send_text(HTTPStatus.BAD_REQUEST, "bad JSON")
                if not isinstance(payload, dict):
                    return self._send_text(HTTPStatus.BAD_REQUEST, "bad JSON")
                return self._handle_raw(RawChatEvent(source=ChatSource.STRUCTURED, fields=payload))

            def _handle_raw(self, raw: RawChatEvent) -> None:
                try:
                    event = normalize(raw)
                except ValueError as e:
                    log.info(f"Rejected malformed event: {e}")
                    return self._send_status(Status.INVALID)

                if event is None:
                    return self._send_text(HTTPStatus.NO_CONTENT, None)

                return self._send_status(engine.process_event(event))

            # ----------------------------------------------------------
            # Read-only boards
            # ----------------------------------------------------------

            def _handle_api_get(self, parsed) -> None:
                query = parse_qs(parsed.query)
                path = parsed.path.rstrip("/")
                period = (query.get("period") or [None])[0]
                name = (query.get("name") or [None])[0]

                try:
                    if path == "/api/hiscores":
                        rows: List[Dict[str, Any]] = engine.hiscores(period, name)
                        return self._send_json(HTTPStatus.OK, {"period": period, "rows": rows})
                    if path == "/api/lootboard":
                        rows = engine.lootboard(period, name)
                        return self._send_json(HTTPStatus.OK, {"period": period, "rows": rows})
                except InvalidInput as e:
                    return self._send_json(HTTPStatus.BAD_REQUEST, {"error": str(e)})

                if path == "/api/totalgp":
                    return self._send_json(
                        HTTPStatus.OK,
                        {"event": engine.current_event, "total_gp": engine.total_gp()},
                    )
                if path == "/api/rounds":
                    return self._send_json(HTTPStatus.OK, {"rounds": engine.list_events()})
                if path == "/api/bounties":
                    return self._send_json(HTTPStatus.OK, engine.bounty_list())
                if path == "/api/raglist":
                    return self._send_json(HTTPStatus.OK, {"targets": engine.raglist_list()})

                self.send_error(HTTPStatus.NOT_FOUND, "Unknown endpoint")

            def log_message(self, format: str, *args: Any) -> None:
                log.debug("%s - %s", self.address_string(), format % args)

        return Handler


__all__ = ["WebhookServer", "parse_multipart_fields"]
