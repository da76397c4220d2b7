"""Example FastAPI application embedding the script probe endpoints.

Run with:
    uvicorn examples.fastapi_example:app --reload

Endpoints:
    /probe?script=<name>             - Run a configured script
    /probe?script=<name>&prefix=<p>  - Prefix the script's metric names
    /probe?script=<name>&output=ignore
                                     - Only report success, duration, exit code
    /probes-status                   - One probe_status line per alert instance

Configuration is read from ``examples/config.yaml`` (override with the
SCRIPTPROBE_CONFIG environment variable).
"""

import os

from fastapi import FastAPI

from scriptprobe.adapters.frameworks.fastapi import create_probe_router
from scriptprobe.adapters.process import SubprocessRunner
from scriptprobe.app import create_aggregator
from scriptprobe.config import load_config
from scriptprobe.core.script_probe import ScriptProber

config = load_config(os.environ.get("SCRIPTPROBE_CONFIG", "examples/config.yaml"))

app = FastAPI(title="Script Probe Example")
app.include_router(
    create_probe_router(
        ScriptProber(config, SubprocessRunner()),
        create_aggregator(config),
    )
)


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "Try /probe?script=uptime or /probes-status"}
