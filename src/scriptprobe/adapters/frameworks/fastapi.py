"""FastAPI adapter for the exporter endpoints."""

from fastapi import APIRouter, Request, Response

from scriptprobe.adapters.frameworks.asgi import (
    EXPOSITION_CONTENT_TYPE,
    TEXT_CONTENT_TYPE,
)
from scriptprobe.adapters.frameworks.query_params import _parse_probe_request
from scriptprobe.core.exceptions import ScriptNotFoundError
from scriptprobe.core.probe_status import ProbeAggregator
from scriptprobe.core.script_probe import ScriptProber


def create_probe_router(
    prober: ScriptProber,
    aggregator: ProbeAggregator | None = None,
) -> APIRouter:
    """Create a FastAPI router with /probe and /probes-status endpoints.

    Args:
        prober: Service running configured scripts.
        aggregator: Probe status aggregator, None when Prometheus is not
            configured.

    Returns:
        APIRouter with /probe and /probes-status endpoints configured.
    """
    router = APIRouter()

    @router.get("/probe")
    async def probe(request: Request) -> Response:
        """Run a script and return its metrics in Prometheus text format.

        The dynamic ``params`` names are arbitrary, so the raw query string
        is parsed instead of declaring parameters.
        """
        params: dict[str, list[str]] = {}
        for name, value in request.query_params.multi_items():
            params.setdefault(name, []).append(value)
        headers = {name.lower(): value for name, value in request.headers.items()}

        probe_request = _parse_probe_request(params, headers)
        if probe_request is None:
            return Response(
                content="Script parameter is missing",
                status_code=400,
                media_type=TEXT_CONTENT_TYPE,
            )
        try:
            body = await prober.probe(probe_request)
        except ScriptNotFoundError as e:
            return Response(content=str(e), status_code=400, media_type=TEXT_CONTENT_TYPE)
        return Response(content=body, media_type=EXPOSITION_CONTENT_TYPE)

    @router.get("/probes-status")
    async def probes_status() -> Response:
        """Return one probe_status line per alert instance."""
        if aggregator is None:
            return Response(
                content="Prometheus is not configured",
                status_code=503,
                media_type=TEXT_CONTENT_TYPE,
            )
        body = await aggregator.render()
        return Response(content=body, media_type=EXPOSITION_CONTENT_TYPE)

    return router
