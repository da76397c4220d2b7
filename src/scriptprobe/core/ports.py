"""Port interfaces for the collaborators of the probe pipelines.

These protocols define the contracts that adapters must implement.
The core depends only on these interfaces, not concrete implementations.
"""

from typing import Protocol, runtime_checkable

from scriptprobe.core.models import (
    AlertingRule,
    ProbeSample,
    ScriptInvocation,
    ScriptResult,
)


@runtime_checkable
class ProcessRunnerPort(Protocol):
    """Port for running an external script.

    Examples: SubprocessRunner.
    """

    async def run(self, invocation: ScriptInvocation) -> ScriptResult:
        """Run the invocation and report its outcome.

        Execution failures are reported through ``ScriptResult.error``,
        never raised.
        """
        ...


@runtime_checkable
class ScriptConfigPort(Protocol):
    """Port for per-script configuration lookups."""

    noargs: bool
    timeout_offset: float

    def get_run_args(self, script: str) -> list[str]:
        """Return ``[program, *static_args]``.

        Raises:
            ScriptNotFoundError: If the script is not configured.
        """
        ...

    def get_run_env(self, script: str) -> dict[str, str]:
        """Return extra environment variables for the script."""
        ...

    def get_max_timeout(self, script: str) -> float | None:
        """Return the timeout ceiling in seconds, None when unbounded."""
        ...

    def get_timeout_enforced(self, script: str) -> bool:
        """Return whether the process is killed once its timeout passes."""
        ...

    def get_ignore_output_on_fail(self, script: str) -> bool:
        """Return whether output is dropped when the script fails."""
        ...


@runtime_checkable
class RulesBackendPort(Protocol):
    """Port for the metrics backend holding alerting rules.

    Examples: PrometheusRulesClient.
    """

    async def list_alerting_rules(self) -> list[AlertingRule]:
        """Return every alerting rule of every rule group.

        Raises:
            BackendError: If the rules cannot be fetched.
        """
        ...

    async def query(self, expr: str, timeout: float) -> list[ProbeSample]:
        """Run an instant query and return its vector result.

        Raises:
            BackendError: If the query fails or does not return a vector.
        """
        ...
