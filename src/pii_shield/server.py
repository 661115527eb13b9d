"""HTTP sidecar server for pii-shield.

Runs as a lightweight stdlib HTTP server.  The upload widget and the
decrypt tool call it directly, so every response is CORS-open.

Endpoints:
    POST /process         — Run the pipeline for a session {"sessionId"}
    POST /decrypt         — Decrypt one blob {"encryptedText", "keyBase64"}
    POST /sessions        — Upload a document {"filename", "mimeType", "contentBase64"}
    GET  /sessions/<id>   — Poll a session record
    POST /verify-key      — Check a key against a session {"sessionId", "keyBase64"}
    GET  /health          — Health check

All endpoints expect/return JSON.
"""

from __future__ import annotations
import base64
import binascii
import json
import logging
import os
from http.server import HTTPServer, BaseHTTPRequestHandler
from typing import Any

from .config import create_processor, load_config, load_from_yaml
from .crypto import DECRYPT_FAILED, decrypt_text
from .errors import IntegrityError, PIIShieldError, ValidationError
from .pipeline import DocumentProcessor

logger = logging.getLogger(__name__)

DEFAULT_PORT = int(os.environ.get("PII_SHIELD_PORT", "18792"))
GENERIC_FAILURE = "An error occurred processing the document"

_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
}

# Shared state
_processor: DocumentProcessor | None = None


def _get_processor() -> DocumentProcessor:
    global _processor
    if _processor is None:
        config_path = os.environ.get("PII_SHIELD_CONFIG", "")
        _processor = create_processor(load_from_yaml(config_path) if config_path else load_config({}))
    return _processor


class ShieldHandler(BaseHTTPRequestHandler):
    """HTTP request handler for the pii-shield sidecar."""

    def _read_json(self) -> dict[str, Any]:
        length = int(self.headers.get("Content-Length", 0))
        try:
            body = self.rfile.read(length).decode("utf-8")
        except UnicodeDecodeError as e:
            raise ValidationError("Request body must be UTF-8") from e
        if not body:
            return {}
        try:
            data = json.loads(body)
        except json.JSONDecodeError as e:
            raise ValidationError("Request body must be JSON") from e
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object")
        return data

    def _respond(self, status: int, data: Any) -> None:
        body = json.dumps(data, ensure_ascii=False).encode("utf-8")
        self.send_response(status)
        for name, value in _CORS_HEADERS.items():
            self.send_header(name, value)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("%s - %s", self.address_string(), format % args)

    def do_OPTIONS(self) -> None:
        body = b"ok"
        self.send_response(200)
        for name, value in _CORS_HEADERS.items():
            self.send_header(name, value)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def do_GET(self) -> None:
        processor = _get_processor()
        if self.path == "/health":
            self._respond(200, {"status": "ok", "sessions": processor.sessions.size})
        elif self.path.startswith("/sessions/"):
            session_id = self.path[len("/sessions/"):]
            try:
                self._respond(200, processor.status(session_id).to_dict())
            except PIIShieldError as e:
                self._respond(e.http_status, {"error": str(e)})
            except Exception:
                logger.exception("unhandled error on %s", self.path)
                self._respond(500, {"error": GENERIC_FAILURE})
        else:
            self._respond(404, {"error": "not found"})

    def do_POST(self) -> None:
        routes = {
            "/process": self._process,
            "/decrypt": self._decrypt,
            "/sessions": self._submit,
            "/verify-key": self._verify_key,
        }
        handler = routes.get(self.path)
        if handler is None:
            self._respond(404, {"error": "not found"})
            return

        try:
            body = self._read_json()
            handler(body)
        except PIIShieldError as e:
            self._respond(e.http_status, {"error": str(e)})
        except Exception:
            logger.exception("unhandled error on %s", self.path)
            self._respond(500, {"error": GENERIC_FAILURE})

    def _process(self, body: dict[str, Any]) -> None:
        session_id = body.get("sessionId")
        if not session_id:
            raise ValidationError("Session ID is required")
        result = _get_processor().process(session_id)
        self._respond(200, result.to_dict())

    def _decrypt(self, body: dict[str, Any]) -> None:
        encrypted_text = body.get("encryptedText")
        key_base64 = body.get("keyBase64")
        if not encrypted_text or not key_base64:
            raise ValidationError("Encrypted text and key are required")
        try:
            decrypted = decrypt_text(key_base64, encrypted_text)
        except IntegrityError:
            # same answer whatever the cause
            self._respond(400, {"error": DECRYPT_FAILED})
            return
        self._respond(200, {"decryptedText": decrypted})

    def _submit(self, body: dict[str, Any]) -> None:
        filename = body.get("filename")
        content = body.get("contentBase64")
        if not filename or content is None:
            raise ValidationError("Filename and content are required")
        try:
            data = base64.b64decode(content, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValidationError("contentBase64 is not valid base64") from e
        session = _get_processor().submit(filename, data, body.get("mimeType") or "text/plain")
        self._respond(201, session.to_dict())

    def _verify_key(self, body: dict[str, Any]) -> None:
        session_id = body.get("sessionId")
        key_base64 = body.get("keyBase64")
        if not (session_id and key_base64
                and isinstance(session_id, str) and isinstance(key_base64, str)):
            raise ValidationError("Session ID and key are required")
        self._respond(200, {"valid": _get_processor().verify_key(session_id, key_base64)})


def create_server(
    processor: DocumentProcessor | None = None,
    host: str = "127.0.0.1",
    port: int = DEFAULT_PORT,
) -> HTTPServer:
    """Bind the sidecar.  port=0 picks a free port."""
    global _processor
    if processor is not None:
        _processor = processor
    return HTTPServer((host, port), ShieldHandler)


def serve(
    port: int = DEFAULT_PORT,
    host: str = "127.0.0.1",
    processor: DocumentProcessor | None = None,
) -> None:
    """Start the pii-shield HTTP sidecar."""
    server = create_server(processor, host, port)
    cfg = _get_processor().config
    logger.info("pii-shield sidecar listening on http://%s:%d", host, server.server_address[1])
    logger.info("overlap policy: %s, retain values: %s", cfg.overlap_policy.value, cfg.retain_values)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("shutting down")
    finally:
        server.server_close()


if __name__ == "__main__":
    import argparse
    from .log import configure_logging

    parser = argparse.ArgumentParser(description="pii-shield HTTP sidecar")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--host", default="127.0.0.1")
    args = parser.parse_args()
    configure_logging()
    serve(port=args.port, host=args.host)
