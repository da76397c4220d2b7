"""Prometheus HTTP API adapter implementing RulesBackendPort."""

import logging
import time
from typing import Any

import httpx

from scriptprobe.core.exceptions import BackendError
from scriptprobe.core.models import AlertingRule, ProbeSample

logger = logging.getLogger(__name__)

RULES_PATH = "/api/v1/rules"
QUERY_PATH = "/api/v1/query"


class PrometheusRulesClient:
    """Reads alerting rules and runs instant queries against Prometheus.

    Example:
        ```python
        client = PrometheusRulesClient("http://localhost:9090")
        rules = await client.list_alerting_rules()
        samples = await client.query('up == 1', timeout=5.0)
        ```
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Prometheus URL including any path prefix.
            timeout: HTTP timeout in seconds for listing rules.
            transport: Optional httpx transport (tests use MockTransport).
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def _get(
        self, path: str, params: dict[str, str], timeout: float
    ) -> dict[str, Any]:
        """GET an API endpoint and return the ``data`` member of its envelope."""
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=timeout, transport=self._transport
            ) as client:
                response = await client.get(path, params=params)
        except httpx.HTTPError as e:
            raise BackendError(f"GET {path}: {e}") from e

        try:
            payload = response.json()
        except ValueError as e:
            raise BackendError(
                f"GET {path}: invalid response (HTTP {response.status_code})"
            ) from e
        if not isinstance(payload, dict):
            raise BackendError(
                f"GET {path}: invalid response (HTTP {response.status_code})"
            )
        if payload.get("status") != "success":
            error_type = payload.get("errorType", "error")
            error = payload.get("error") or f"HTTP {response.status_code}"
            raise BackendError(f"GET {path}: {error_type}: {error}")

        for warning in payload.get("warnings") or []:
            logger.warning("Prometheus returned a warning", extra={"warning": warning})
        data = payload.get("data")
        return data if isinstance(data, dict) else {}

    async def list_alerting_rules(self) -> list[AlertingRule]:
        """Return the alerting rules of all rule groups."""
        data = await self._get(RULES_PATH, {"type": "alert"}, self.timeout)
        rules: list[AlertingRule] = []
        for group in data.get("groups") or []:
            if not isinstance(group, dict):
                raise BackendError(f"GET {RULES_PATH}: malformed rule group")
            for rule in group.get("rules") or []:
                if not isinstance(rule, dict):
                    raise BackendError(f"GET {RULES_PATH}: malformed rule")
                if rule.get("type") != "alerting":
                    continue
                rules.append(
                    AlertingRule(
                        name=rule.get("name", ""),
                        labels=dict(rule.get("labels") or {}),
                        annotations=dict(rule.get("annotations") or {}),
                    )
                )
        return rules

    async def query(self, expr: str, timeout: float) -> list[ProbeSample]:
        """Run an instant query evaluated now.

        Raises:
            BackendError: If the request fails or the result is not a vector.
        """
        params = {
            "query": expr,
            "time": f"{time.time():.3f}",
            "timeout": f"{timeout:g}s",
        }
        data = await self._get(QUERY_PATH, params, timeout)
        result_type = data.get("resultType")
        if result_type != "vector":
            raise BackendError(f"unexpected result type {result_type!r} for {expr!r}")

        samples: list[ProbeSample] = []
        for item in data.get("result") or []:
            if not isinstance(item, dict) or not isinstance(
                item.get("metric") or {}, dict
            ):
                raise BackendError(f"malformed sample in result of {expr!r}")
            metric = dict(item.get("metric") or {})
            name = metric.pop("__name__", "")
            try:
                value = float(item["value"][1])
            except (KeyError, IndexError, TypeError, ValueError) as e:
                raise BackendError(f"malformed sample in result of {expr!r}") from e
            samples.append(ProbeSample(name=name, labels=metric, value=value))
        return samples
