"""Exception hierarchy for scriptprobe."""


class ScriptProbeError(Exception):
    """Base class for all scriptprobe errors."""


class ConfigError(ScriptProbeError):
    """The configuration file is missing, unreadable or invalid."""


class ScriptNotFoundError(ScriptProbeError):
    """The requested script is not configured."""

    def __init__(self, script: str) -> None:
        super().__init__(f"Script '{script}' not found")
        self.script = script


class ScriptExecutionError(ScriptProbeError):
    """A script could not be run to a successful end."""


class ScriptLaunchError(ScriptExecutionError):
    """The process could not be started (missing binary, permissions)."""


class ScriptExitError(ScriptExecutionError):
    """The process exited with a non-zero status."""

    def __init__(self, exit_code: int, stderr: str = "") -> None:
        message = f"exit status {exit_code}"
        if stderr:
            message = f"{message}: {stderr}"
        super().__init__(message)
        self.exit_code = exit_code
        self.stderr = stderr


class ScriptTimeoutError(ScriptExecutionError):
    """The process was killed after exceeding its enforced timeout."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"killed after timeout of {timeout:g}s")
        self.timeout = timeout


class BackendError(ScriptProbeError):
    """The metrics backend failed or returned something unusable."""


class TemplateExpansionError(ScriptProbeError):
    """A label template could not be expanded."""
