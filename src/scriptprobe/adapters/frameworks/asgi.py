"""ASGI generic adapter for the exporter endpoints.

This adapter provides a framework-agnostic ASGI application that can be used
with any ASGI server (uvicorn, hypercorn, daphne) without requiring FastAPI.
"""

import fnmatch
import logging
import time
import uuid
from collections.abc import Callable, Coroutine
from typing import Any
from urllib.parse import parse_qs

from scriptprobe.adapters.frameworks.query_params import _get, _parse_probe_request
from scriptprobe.adapters.logging_context import (
    clear_log_context,
    set_log_context,
    update_log_context,
)
from scriptprobe.adapters.metrics import ExporterMetrics
from scriptprobe.core.exceptions import ScriptNotFoundError
from scriptprobe.core.probe_status import ProbeAggregator
from scriptprobe.core.script_probe import ScriptProber

logger = logging.getLogger(__name__)

# ASGI type aliases
Scope = dict[str, Any]
Receive = Callable[[], Coroutine[Any, Any, dict[str, Any]]]
Send = Callable[[dict[str, Any]], Coroutine[Any, Any, None]]
ASGIApp = Callable[[Scope, Receive, Send], Coroutine[Any, Any, None]]

EXPOSITION_CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"
PROBE_PATH = "/probe"


def _parse_query_params(scope: Scope) -> dict[str, list[str]]:
    """Parse query string from ASGI scope into parameter dictionary.

    Blank values are kept, so ``?prefix=`` yields ``{"prefix": [""]}``.

    Args:
        scope: ASGI scope dictionary containing request metadata.

    Returns:
        Dictionary mapping parameter names to lists of values.
        Returns empty dict if query_string is missing or empty.
    """
    # @tra: Adapter.ASGI.QueryParameter.Parser
    query_string = scope.get("query_string", b"").decode(errors="replace")
    return parse_qs(query_string, keep_blank_values=True)


def _parse_headers(scope: Scope) -> dict[str, str]:
    """Return request headers with lower-cased names (last value wins)."""
    headers: list[tuple[bytes, bytes]] = scope.get("headers", [])
    return {
        name.decode("latin-1").lower(): value.decode("latin-1")
        for name, value in headers
    }


def _extract_request_id(scope: Scope, header_name: str = "X-Request-ID") -> str:
    """Extract or generate a request ID from ASGI scope headers.

    Searches for the specified header (case-insensitive). If not found,
    generates a new UUID.
    """
    # @tra: Adapter.ASGI.Middleware.RequestId.Extract
    request_id = _parse_headers(scope).get(header_name.lower())
    if request_id:
        return request_id
    # @tra: Adapter.ASGI.Middleware.RequestId.Generate
    return str(uuid.uuid4())


async def _send_response(send: Send, status: int, content_type: str, body: str) -> None:
    """Send an HTTP response with headers and body.

    Args:
        send: ASGI send callable for writing response.
        status: HTTP status code.
        content_type: Content-Type header value.
        body: Response body as string (will be encoded to bytes).
    """
    # @tra: Adapter.ASGI.SendResponse.Headers
    headers = [(b"content-type", content_type.encode())]
    await send({"type": "http.response.start", "status": status, "headers": headers})
    # @tra: Adapter.ASGI.SendResponse.Body
    await send({"type": "http.response.body", "body": body.encode()})


async def _handle_endpoint(
    send: Send,
    endpoint_func: Callable[[], Coroutine[Any, Any, str]],
    content_type: str,
    log_message: str,
) -> None:
    """Execute an endpoint function with error handling and send response.

    Args:
        send: ASGI send callable for writing response.
        endpoint_func: Async function that returns response body.
        content_type: Content-Type header for success response.
        log_message: Message to log on error.
    """
    try:
        body = await endpoint_func()
    except Exception:
        logger.exception(log_message)
        await _send_response(send, 500, TEXT_CONTENT_TYPE, "Internal Server Error")
        return
    await _send_response(send, 200, content_type, body)


async def _handle_probe(scope: Scope, send: Send, prober: ScriptProber) -> None:
    """Serve ``/probe``: 400 for a missing or unknown script, else 200."""
    request = _parse_probe_request(_parse_query_params(scope), _parse_headers(scope))
    # @tra: Adapter.Probe.MissingScript
    if request is None:
        message = "Script parameter is missing"
        logger.error(message)
        await _send_response(send, 400, TEXT_CONTENT_TYPE, message)
        return

    try:
        body = await prober.probe(request)
    # @tra: Adapter.Probe.UnknownScript
    except ScriptNotFoundError as e:
        logger.error(str(e))
        await _send_response(send, 400, TEXT_CONTENT_TYPE, str(e))
        return
    except Exception:
        logger.exception("Error running script probe")
        await _send_response(send, 500, TEXT_CONTENT_TYPE, "Internal Server Error")
        return
    await _send_response(send, 200, EXPOSITION_CONTENT_TYPE, body)


class ASGIInstrumentationMiddleware:
    """ASGI middleware recording request metrics and the logging context.

    Every request gets a request ID (from ``X-Request-ID`` or generated) in
    the logging context. HTTP count and duration are recorded per status
    code and method; ``/probe`` requests are also counted, timed and
    tracked in flight per script.
    """

    def __init__(
        self,
        app: ASGIApp,
        metrics: ExporterMetrics,
        exclude_paths: list[str] | None = None,
        request_id_header: str = "X-Request-ID",
    ) -> None:
        """Initialize the middleware.

        Args:
            app: The ASGI application to wrap.
            metrics: Metrics to record into.
            exclude_paths: Paths not recorded in metrics. Supports exact
                          matches and wildcard patterns (e.g., "/-/*").
            request_id_header: Name of the header to extract request ID from.
        """
        self.app = app
        self.metrics = metrics
        self.exclude_paths = (
            exclude_paths if exclude_paths is not None else ["/metrics", "/-/*"]
        )
        self.request_id_header = request_id_header

    def _path_excluded(self, path: str) -> bool:
        """Check if path matches any pattern in exclude_paths."""
        return any(fnmatch.fnmatch(path, pattern) for pattern in self.exclude_paths)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI callable interface that processes requests through the wrapped app."""
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        start_time = time.perf_counter()
        captured: dict[str, Any] = {"status": None}

        async def wrapped_send(message: dict[str, Any]) -> None:
            if message["type"] == "http.response.start":
                captured["status"] = message["status"]
            await send(message)

        script = ""
        if scope["path"] == PROBE_PATH:
            script = _get(_parse_query_params(scope), "script")

        set_log_context(request_id=_extract_request_id(scope, self.request_id_header))
        if script:
            update_log_context(script=script)
            self.metrics.script_started(script)
        try:
            await self.app(scope, receive, wrapped_send)
        except Exception:
            captured["status"] = 500
            raise
        finally:
            duration = time.perf_counter() - start_time
            if script:
                self.metrics.script_finished(script, duration)
            if not self._path_excluded(scope["path"]):
                self.metrics.request_finished(
                    scope["method"], captured["status"] or 500, duration
                )
            logger.debug(
                "Request served",
                extra={
                    "method": scope["method"],
                    "path": scope["path"],
                    "status_code": captured["status"],
                    "duration_ms": duration * 1000,
                },
            )
            clear_log_context()


def create_asgi_app(
    prober: ScriptProber,
    aggregator: ProbeAggregator | None = None,
    metrics: ExporterMetrics | None = None,
) -> ASGIApp:
    """Create an ASGI app with /probe, /probes-status, /metrics and /-/healthy.

    Args:
        prober: Service running configured scripts.
        aggregator: Probe status aggregator, None when no Prometheus
            server is configured (``/probes-status`` then answers 503).
        metrics: Exporter metrics served on ``/metrics`` (404 when None).

    Returns:
        ASGI application callable.
    """

    async def app(scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            return

        path = scope["path"]

        # @tra: Adapter.ASGI.ProbeEndpoint
        if path == PROBE_PATH:
            await _handle_probe(scope, send, prober)
        # @tra: Adapter.ASGI.ProbesStatusEndpoint
        elif path == "/probes-status":
            if aggregator is None:
                await _send_response(
                    send, 503, TEXT_CONTENT_TYPE, "Prometheus is not configured"
                )
                return
            await _handle_endpoint(
                send,
                aggregator.render,
                EXPOSITION_CONTENT_TYPE,
                "Error rendering probe statuses",
            )
        # @tra: Adapter.ASGI.MetricsEndpoint
        elif path == "/metrics" and metrics is not None:
            await _send_response(send, 200, metrics.content_type, metrics.render())
        elif path == "/-/healthy":
            await _send_response(send, 200, TEXT_CONTENT_TYPE, "OK")
        # @tra: Adapter.ASGI.RoutingUnknownPath
        else:
            await _send_response(send, 404, TEXT_CONTENT_TYPE, "Not Found")

    return app
