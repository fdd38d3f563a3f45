"""Scan statistics: counters, a periodic status line and a metrics endpoint."""

from __future__ import annotations

import json
import logging
import sys
import threading
from datetime import datetime
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Optional

log = logging.getLogger(__name__)

_COUNTERS = ("requests", "errors", "matched", "total")


def fmt_duration(seconds: float) -> str:
    """Format elapsed seconds as ``h:mm:ss``, rounded to the nearest second."""
    sign = -1 if seconds < 0 else 1
    whole = int(abs(seconds) + 0.5)
    hours, rest = divmod(whole, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{sign * hours}:{sign * minutes:02d}:{sign * secs:02d}"


class StatsTicker:
    """Tracks scan statistics and optionally reports them periodically."""

    def __init__(
        self,
        duration: float = 0,
        active: bool = False,
        metrics: bool = False,
        port: int = 0,
    ) -> None:
        self.active = active
        self.tick_duration = float(duration) if active else -1.0
        self._lock = threading.Lock()
        self._static: dict[str, Any] = {}
        self._counters: dict[str, int] = {}
        self._stop_event = threading.Event()
        self._ticker: Optional[threading.Thread] = None
        self._server: Optional[ThreadingHTTPServer] = None
        self._server_thread: Optional[threading.Thread] = None
        if metrics:
            self._start_server(port)

    @property
    def metrics_address(self) -> Optional[tuple[str, int]]:
        """The host and port the metrics server listens on, if it runs."""
        if self._server is None:
            return None
        host, port = self._server.server_address[:2]
        return str(host), int(port)

    def _start_server(self, port: int) -> None:
        ticker = self

        class _Handler(BaseHTTPRequestHandler):
            def do_GET(self) -> None:  # noqa: N802
                if self.path.split("?", 1)[0] != "/metrics":
                    self.send_error(HTTPStatus.NOT_FOUND)
                    return
                try:
                    payload = ticker.metrics()
                except RuntimeError as exc:
                    self.send_error(HTTPStatus.SERVICE_UNAVAILABLE, str(exc))
                    return
                body = (json.dumps(payload, default=_json_default) + "\n").encode("utf-8")
                self.send_response(HTTPStatus.OK)
                self.send_header("Content-Type", "application/json")
                self.send_header("Content-Length", str(len(body)))
                self.end_headers()
                self.wfile.write(body)

            def log_message(self, format: str, *args: Any) -> None:
                log.debug("metrics: " + format, *args)

        try:
            self._server = ThreadingHTTPServer(("127.0.0.1", port), _Handler)
        except OSError as exc:
            log.warning("Could not serve metrics: %s", exc)
            return
        self._server.daemon_threads = True
        self._server_thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._server_thread.start()

    def init(self, host_count: int, rules_count: int, request_count: int) -> None:
        """Set the static details and counters, and start reporting if active."""
        with self._lock:
            self._static = {
                "templates": rules_count,
                "hosts": host_count,
                "startedAt": datetime.now().astimezone(),
            }
            self._counters = {name: 0 for name in _COUNTERS}
            self._counters["total"] = request_count

        if not self.active:
            return
        if self.tick_duration <= 0:
            log.warning("Couldn't start statistics: non-positive interval")
            return
        self._stop_event.clear()
        self._ticker = threading.Thread(target=self._tick, daemon=True)
        self._ticker.start()

    def _tick(self) -> None:
        while not self._stop_event.wait(self.tick_duration):
            self._print_status()

    def _print_status(self) -> None:
        try:
            line = self.status_line()
        except RuntimeError:
            return
        sys.stderr.write(line + "\n")
        sys.stderr.flush()

    def _increment(self, name: str, delta: int) -> None:
        with self._lock:
            if name in self._counters:
                self._counters[name] += delta

    def add_to_total(self, delta: int) -> None:
        """Add ``delta`` to the total request count."""
        self._increment("total", delta)

    def increment_requests(self) -> None:
        """Count one completed request."""
        self._increment("requests", 1)

    def increment_matched(self) -> None:
        """Count one match."""
        self._increment("matched", 1)

    def increment_errors_by(self, count: int) -> None:
        """Add ``count`` errors."""
        self._increment("errors", count)

    def increment_failed_requests_by(self, count: int) -> None:
        """Count ``count`` dropped requests as both completed and errored."""
        self._increment("requests", count)
        self._increment("errors", count)

    def _snapshot(self) -> tuple[dict[str, Any], dict[str, int], float]:
        with self._lock:
            if not self._static:
                raise RuntimeError("statistics have not been initialised")
            static = dict(self._static)
            counters = dict(self._counters)
        elapsed = (datetime.now().astimezone() - static["startedAt"]).total_seconds()
        return static, counters, elapsed

    def metrics(self) -> dict[str, Any]:
        """Return the current statistics as strings keyed by metric name."""
        static, counters, elapsed = self._snapshot()
        requests, total = counters["requests"], counters["total"]
        rps = int(requests / elapsed) if elapsed > 0 else 0
        percent = int(requests * 100 / total) if total else 0
        return {
            "startedAt": static["startedAt"],
            "duration": fmt_duration(elapsed),
            "templates": str(static["templates"]),
            "hosts": str(static["hosts"]),
            "matched": str(counters["matched"]),
            "requests": str(requests),
            "total": str(total),
            "rps": str(rps),
            "errors": str(counters["errors"]),
            "percent": str(percent),
        }

    def status_line(self) -> str:
        """Return the one-line summary printed on every tick."""
        static, counters, elapsed = self._snapshot()
        requests, total = counters["requests"], counters["total"]
        rps = int(requests / elapsed) if elapsed > 0 else 0
        percent = int(requests / total * 100) if total else 0
        return (
            f"[{fmt_duration(elapsed)}]"
            f" | Templates: {static['templates']}"
            f" | Hosts: {static['hosts']}"
            f" | RPS: {rps}"
            f" | Matched: {counters['matched']}"
            f" | Errors: {counters['errors']}"
            f" | Requests: {requests}/{total} ({percent}%)"
        )

    def stop(self) -> None:
        """Print a final summary when active and shut everything down."""
        if self.active:
            self._print_status()
            self._stop_event.set()
            if self._ticker is not None:
                self._ticker.join()
                self._ticker = None
        if self._server is not None:
            self._server.shutdown()
            self._server.server_close()
            self._server = None
            if self._server_thread is not None:
                self._server_thread.join()
                self._server_thread = None


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)