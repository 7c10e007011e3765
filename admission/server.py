"""
HTTPS server answering AdmissionReview requests for the admission webhook.
"""

import json
import logging
import ssl
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Optional

from lib.constants import LOGGER_NAME, WEBHOOK_DEFAULT_HOST, WEBHOOK_DEFAULT_PORT

from .webhook import AdmissionWebhook

logger = logging.getLogger(LOGGER_NAME)


class AdmissionRequestHandler(BaseHTTPRequestHandler):
    """HTTP handler for AdmissionReview POSTs and health checks.

    The webhook is read from self.server.webhook, set by WebhookServer.
    """

    def log_message(self, format, *args):
        logger.debug("%s - %s", self.address_string(), format % args)

    def _send_json(self, status: int, payload: dict) -> None:
        body = json.dumps(payload).encode()
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def do_GET(self):
        if self.path in ("/healthz", "/readyz"):
            body = b"ok"
            self.send_response(200)
            self.send_header("Content-Type", "text/plain")
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)
            return
        self._send_json(404, {"error": f"not found: {self.path}"})

    def do_POST(self):
        try:
            content_length = int(self.headers.get("Content-Length", 0))
            admission_review = json.loads(self.rfile.read(content_length))
        except (TypeError, ValueError) as e:
            logger.warning("Rejecting unreadable admission request: %s", e)
            self._send_json(400, {"error": f"invalid AdmissionReview: {e}"})
            return

        try:
            response = self.server.webhook.review(admission_review)
        except Exception as e:
            logger.error("Error processing admission request: %s", e, exc_info=True)
            self._send_json(500, {"error": str(e)})
            return

        self._send_json(200, response)


class WebhookServer:
    """Manages the webhook server lifecycle."""

    def __init__(
        self,
        webhook: AdmissionWebhook,
        host: str = WEBHOOK_DEFAULT_HOST,
        port: int = WEBHOOK_DEFAULT_PORT,
        cert_file: Optional[str] = None,
        key_file: Optional[str] = None,
    ):
        self.webhook = webhook
        self.host = host
        self.port = port
        self.cert_file = cert_file
        self.key_file = key_file
        self.server: Optional[ThreadingHTTPServer] = None
        self.thread: Optional[threading.Thread] = None

    def _build_server(self) -> ThreadingHTTPServer:
        server = ThreadingHTTPServer((self.host, self.port), AdmissionRequestHandler)
        server.daemon_threads = True
        server.webhook = self.webhook

        if self.cert_file and self.key_file:
            context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
            context.load_cert_chain(self.cert_file, self.key_file)
            server.socket = context.wrap_socket(server.socket, server_side=True)
            logger.info("Webhook server configured with TLS")
        return server

    def start(self) -> None:
        """Start the webhook server in a background thread."""
        self.server = self._build_server()
        self.thread = threading.Thread(target=self.server.serve_forever, daemon=True)
        self.thread.start()
        logger.info("Webhook server started on %s", self.url)

    def serve_forever(self) -> None:
        """Serve in the calling thread until stop() or KeyboardInterrupt."""
        self.server = self._build_server()
        logger.info("Webhook server listening on %s", self.url)
        self.server.serve_forever()

    def stop(self) -> None:
        if self.server:
            self.server.shutdown()
            self.server.server_close()
            logger.info("Webhook server stopped")

    @property
    def url(self) -> str:
        protocol = "https" if self.cert_file else "http"
        port = self.server.server_address[1] if self.server else self.port
        return f"{protocol}://{self.host}:{port}"
