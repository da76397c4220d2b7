"""Example of the standalone instrumented ASGI app.

Run with:
    uvicorn examples.asgi_example:app

This is the same app the ``scriptprobe`` command serves, including
``/metrics`` with the exporter's own request metrics and ``/-/healthy``.
"""

import os

from scriptprobe.adapters.logging import configure_logging
from scriptprobe.app import create_app
from scriptprobe.config import load_config

configure_logging("debug", "text")
app = create_app(load_config(os.environ.get("SCRIPTPROBE_CONFIG", "examples/config.yaml")))
