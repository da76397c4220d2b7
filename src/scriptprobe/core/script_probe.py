"""Script probe service: run a configured script and render its metrics."""

import logging
import math
from dataclasses import dataclass, field

from scriptprobe.core.encoding.exposition import encode_outcome, rewrite_output
from scriptprobe.core.models import ScriptInvocation
from scriptprobe.core.ports import ProcessRunnerPort, ScriptConfigPort

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScriptProbeRequest:
    """A parsed ``/probe`` scrape request.

    Attributes:
        script: Name of the configured script.
        prefix: Metric name prefix, with trailing underscore, or "".
        param_values: Values of the parameters named by ``params``, in order.
        ignore_output: Only report the outcome metrics.
        timeout: Scrape timeout supplied by the caller, unparsed.
    """

    script: str
    prefix: str = ""
    param_values: list[str] = field(default_factory=list)
    ignore_output: bool = False
    timeout: str | None = None


def resolve_timeout(
    requested: str | None, offset: float, max_timeout: float | None
) -> float | None:
    """Compute the effective timeout of a script run.

    Args:
        requested: Caller-supplied timeout in seconds (query or header).
        offset: Safety offset subtracted from the requested timeout.
        max_timeout: Configured ceiling, None or 0 for no ceiling.

    Returns:
        ``requested - offset`` clamped to ``max_timeout``. The raw request
        is used when the offset would leave nothing, and ``max_timeout``
        when the request is absent or not a positive number.
    """
    ceiling = max_timeout if max_timeout and max_timeout > 0 else None
    if not requested:
        return ceiling
    try:
        seconds = float(requested)
    except ValueError:
        return ceiling
    if not math.isfinite(seconds) or seconds <= 0:
        return ceiling

    adjusted = seconds - offset
    if adjusted <= 0:
        adjusted = seconds
    if ceiling is not None and adjusted > ceiling:
        return ceiling
    return adjusted


class ScriptProber:
    """Runs configured scripts and renders their exposition output."""

    def __init__(self, config: ScriptConfigPort, runner: ProcessRunnerPort) -> None:
        self._config = config
        self._runner = runner

    def build_invocation(self, request: ScriptProbeRequest) -> ScriptInvocation:
        """Resolve program, arguments, environment and timeout for a request.

        Raises:
            ScriptNotFoundError: If the script is not configured.
        """
        run_args = self._config.get_run_args(request.script)
        args = list(run_args[1:])
        if not self._config.noargs:
            args.extend(request.param_values)
        timeout = resolve_timeout(
            request.timeout,
            self._config.timeout_offset,
            self._config.get_max_timeout(request.script),
        )
        return ScriptInvocation(
            script=request.script,
            program=run_args[0],
            args=args,
            env=self._config.get_run_env(request.script),
            timeout=timeout,
            enforced=self._config.get_timeout_enforced(request.script),
        )

    async def probe(self, request: ScriptProbeRequest) -> str:
        """Run the requested script and return the response body.

        Raises:
            ScriptNotFoundError: If the script is not configured. No process
                is started in that case.
        """
        invocation = self.build_invocation(request)
        result = await self._runner.run(invocation)

        if result.error is not None:
            logger.error(
                "Run script failed",
                extra={"script": request.script, "err": str(result.error)},
            )
        elif result.timed_out:
            logger.warning(
                "Script exceeded its timeout",
                extra={"script": request.script, "timeout": invocation.timeout},
            )

        body = encode_outcome(request.script, result)
        if request.ignore_output:
            return body
        if result.error is not None and self._config.get_ignore_output_on_fail(
            request.script
        ):
            return body
        return body + rewrite_output(result.output, request.prefix)
