"""
Liveness endpoint for the worker process.

GET /health answers from a probe callback so the container is reported
unhealthy when the worker loop stops polling, not only when the process dies.
Served from a daemon thread; nothing is started when no port is configured.
"""
from __future__ import annotations

import json
import os
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Callable, Optional

from shared.utils.logging import get_logger

logger = get_logger(__name__)

Probe = Callable[[], dict[str, Any]]


def health_payload(service_name: str, probe: Optional[Probe]) -> tuple[int, dict[str, Any]]:
    """HTTP status and body for one health request. The probe's `ok` key decides the status."""
    body: dict[str, Any] = {"service": service_name}
    try:
        body.update(probe() if probe else {})
    except Exception as exc:
        logger.warning("health_probe_failed", error=str(exc))
        body["ok"] = False
    ok = bool(body.pop("ok", True))
    body["status"] = "ok" if ok else "unhealthy"
    return (200 if ok else 503), body


def start_health_server(
    service_name: str,
    probe: Optional[Probe] = None,
    port: Optional[int] = None,
) -> Optional[ThreadingHTTPServer]:
    """
    Serve /health on `port`, or on $PORT when not given. Returns the server
    (call `shutdown()` to stop it) or None when no port is configured.
    """
    if port is None:
        raw = os.environ.get("PORT")
        if not raw:
            return None
        try:
            port = int(raw)
        except ValueError:
            logger.warning("health_server_invalid_port", port=raw)
            return None

    class Handler(BaseHTTPRequestHandler):
        def do_GET(self) -> None:
            if self.path.rstrip("/") != "/health":
                self.send_error(404)
                return
            status, body = health_payload(service_name, probe)
            data = json.dumps(body, default=str).encode("utf-8")
            self.send_response(status)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(data)))
            self.end_headers()
            self.wfile.write(data)

        def log_message(self, format: str, *args: object) -> None:
            pass

    server = ThreadingHTTPServer(("0.0.0.0", port), Handler)
    threading.Thread(target=server.serve_forever, name="health-server", daemon=True).start()
    logger.info("health_server_started", port=server.server_address[1])
    return server
