"""Asyncio subprocess adapter implementing ProcessRunnerPort."""

import asyncio
import contextlib
import logging
import os
import time
from collections.abc import Mapping

from scriptprobe.core.exceptions import (
    ScriptExitError,
    ScriptLaunchError,
    ScriptTimeoutError,
)
from scriptprobe.core.models import ScriptInvocation, ScriptResult

logger = logging.getLogger(__name__)

# Exported to scripts so they can budget their own work
TIMEOUT_ENV_VAR = "SCRIPT_TIMEOUT"


class SubprocessRunner:
    """Runs scripts as child processes of the exporter.

    The child environment is ``base_env`` (the exporter's own environment by
    default) overlaid with the invocation's variables and ``SCRIPT_TIMEOUT``.
    When a timeout is not enforced the script always runs to completion and
    only ``timed_out`` reports that it took too long.
    """

    def __init__(self, base_env: Mapping[str, str] | None = None) -> None:
        self._base_env = dict(os.environ if base_env is None else base_env)

    def build_env(self, invocation: ScriptInvocation) -> dict[str, str]:
        env = {**self._base_env, **invocation.env}
        if invocation.timeout is not None:
            env[TIMEOUT_ENV_VAR] = f"{invocation.timeout:g}"
        return env

    async def _communicate(
        self, process: asyncio.subprocess.Process, invocation: ScriptInvocation
    ) -> tuple[bytes, bytes]:
        if invocation.enforced and invocation.timeout is not None:
            async with asyncio.timeout(invocation.timeout):
                return await process.communicate()
        return await process.communicate()

    async def _kill(self, process: asyncio.subprocess.Process) -> None:
        with contextlib.suppress(ProcessLookupError):
            process.kill()
        await process.wait()

    async def run(self, invocation: ScriptInvocation) -> ScriptResult:
        """Run the invocation; failures are reported, never raised."""
        logger.debug(
            "Running script",
            extra={"script": invocation.script, "program": invocation.program},
        )
        start = time.perf_counter()
        try:
            process = await asyncio.create_subprocess_exec(
                invocation.program,
                *invocation.args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self.build_env(invocation),
            )
        except OSError as e:
            return ScriptResult(
                output="",
                exit_code=-1,
                duration=time.perf_counter() - start,
                error=ScriptLaunchError(f"{invocation.program}: {e.strerror or e}"),
            )

        try:
            stdout, stderr = await self._communicate(process, invocation)
        except TimeoutError:
            await self._kill(process)
            return ScriptResult(
                output="",
                exit_code=-1,
                duration=time.perf_counter() - start,
                timed_out=True,
                error=ScriptTimeoutError(invocation.timeout or 0.0),
            )
        except asyncio.CancelledError:
            await self._kill(process)
            raise

        duration = time.perf_counter() - start
        exit_code = process.returncode if process.returncode is not None else -1
        error = None
        if exit_code != 0:
            error = ScriptExitError(
                exit_code, stderr.decode("utf-8", errors="replace").strip()
            )
        return ScriptResult(
            output=stdout.decode("utf-8", errors="replace"),
            exit_code=exit_code,
            duration=duration,
            timed_out=invocation.timeout is not None and duration > invocation.timeout,
            error=error,
        )
