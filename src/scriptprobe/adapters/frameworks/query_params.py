"""Shared query parameter parsing utilities for framework adapters.

This module turns the query parameters and headers of a ``/probe`` request
into a ScriptProbeRequest. It is shared by the ASGI and FastAPI adapters.
"""

from collections.abc import Mapping

from scriptprobe.core.script_probe import ScriptProbeRequest

TIMEOUT_HEADER = "X-Prometheus-Scrape-Timeout-Seconds"
OUTPUT_IGNORE = "ignore"


def _get(params: Mapping[str, list[str]], name: str) -> str:
    """Return the first value of ``name``, or "" when absent."""
    values = params.get(name) or [""]
    return values[0]


def _parse_prefix_param(params: Mapping[str, list[str]]) -> str:
    """Parse the 'prefix' query parameter.

    Returns:
        The prefix followed by an underscore, or "" when not given.
    """
    prefix = _get(params, "prefix")
    return f"{prefix}_" if prefix else ""


def _parse_script_args(params: Mapping[str, list[str]]) -> list[str]:
    """Resolve the parameters named by 'params' into argument values.

    ``params=a,b&a=1&b=2`` yields ``["1", "2"]``. Named parameters that are
    missing from the query resolve to "".
    """
    names = _get(params, "params")
    if not names:
        return []
    return [_get(params, name) for name in names.split(",")]


def _parse_timeout(
    params: Mapping[str, list[str]], headers: Mapping[str, str]
) -> str | None:
    """Return the caller's timeout: 'timeout' parameter first, then header."""
    # @tra: Adapter.Probe.Timeout.Source
    timeout = _get(params, "timeout")
    if not timeout:
        timeout = headers.get(TIMEOUT_HEADER.lower(), "")
    return timeout or None


def _parse_probe_request(
    params: Mapping[str, list[str]], headers: Mapping[str, str]
) -> ScriptProbeRequest | None:
    """Build a ScriptProbeRequest, None when 'script' is missing.

    Args:
        params: Parsed query string (keep_blank_values=True).
        headers: Request headers with lower-cased names.
    """
    script = _get(params, "script")
    if not script:
        return None
    return ScriptProbeRequest(
        script=script,
        prefix=_parse_prefix_param(params),
        param_values=_parse_script_args(params),
        ignore_output=_get(params, "output") == OUTPUT_IGNORE,
        timeout=_parse_timeout(params, headers),
    )
