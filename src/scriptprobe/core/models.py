"""Core domain models for script probes and probe statuses."""

from dataclasses import dataclass, field
from enum import Enum

from scriptprobe.core.exceptions import ScriptExecutionError


@dataclass(frozen=True)
class ScriptInvocation:
    """Everything needed to run one configured script for one scrape.

    Attributes:
        script: Configured script name (used as the ``script`` label).
        program: Executable to start.
        args: Static arguments followed by the dynamic query arguments.
        env: Extra environment variables for the child process.
        timeout: Timeout in seconds, None for no timeout.
        enforced: Kill the process when the timeout is exceeded.
    """

    script: str
    program: str
    args: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)
    timeout: float | None = None
    enforced: bool = False


@dataclass(frozen=True)
class ScriptResult:
    """Outcome of a script run.

    Attributes:
        output: Raw standard output of the script.
        exit_code: Process exit status, -1 when it never ran or was killed.
        duration: Elapsed wall-clock seconds.
        timed_out: True when the run took longer than its timeout.
        error: Execution failure, None on success.
    """

    output: str
    exit_code: int
    duration: float
    timed_out: bool = False
    error: ScriptExecutionError | None = None

    @property
    def success(self) -> int:
        """1 when the script ran and exited cleanly, else 0."""
        return 0 if self.error is not None else 1


@dataclass(frozen=True)
class AlertingRule:
    """An alerting rule as listed by the metrics backend."""

    name: str
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ProbeSample:
    """One row of an instant query result."""

    name: str
    labels: dict[str, str] = field(default_factory=dict)
    value: float = 0.0


class ProbeState(str, Enum):
    """Point-in-time state of an alert instance."""

    OK = "ok"
    PENDING = "pending"
    WARNING = "warning"
    FIRING = "firing"


@dataclass(frozen=True)
class StateMapping:
    """Numeric value reported for each probe state."""

    ok: int = 0
    pending: int = 1
    warning: int = 2
    firing: int = 3

    def value_for(self, state: ProbeState) -> int:
        return int(getattr(self, state.value))


@dataclass(frozen=True)
class ProbeStatusRecord:
    """A classified alert instance, rendered as one ``probe_status`` line.

    Attributes:
        labels: Output label set (severity already removed).
        state: Classified state.
        value: Numeric value of ``state`` from the StateMapping.
    """

    labels: dict[str, str]
    state: ProbeState
    value: int
