"""Command line entry point: ``scriptprobe --config-file config.yaml``."""

import logging

import click
import uvicorn

from scriptprobe import __version__
from scriptprobe.adapters.logging import configure_logging
from scriptprobe.app import create_app
from scriptprobe.config import load_config
from scriptprobe.core.exceptions import ConfigError

logger = logging.getLogger(__name__)


def parse_listen_address(address: str) -> tuple[str, int]:
    """Split ``host:port`` (``:port`` listens on all interfaces)."""
    host, sep, port = address.rpartition(":")
    if not sep or not port.isdigit():
        raise click.BadParameter(f"expected [host]:port, got {address!r}")
    return host.strip("[]") or "0.0.0.0", int(port)


@click.command()
@click.option(
    "--config-file",
    default="config.yaml",
    show_default=True,
    type=click.Path(dir_okay=False),
    help="Configuration file in YAML format.",
)
@click.option(
    "--listen-address",
    default=":9469",
    show_default=True,
    help="Address to listen on for web interface and telemetry.",
)
@click.option(
    "--timeout-offset",
    type=float,
    default=None,
    help="Offset to subtract from the scrape timeout in seconds.",
)
@click.option(
    "--no-args",
    "noargs",
    is_flag=True,
    default=False,
    help="Restrict script arguments to the ones from the configuration file.",
)
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"]),
    default="info",
    show_default=True,
)
@click.option(
    "--log-format",
    type=click.Choice(["text", "json"]),
    default="text",
    show_default=True,
)
@click.version_option(__version__, prog_name="scriptprobe")
def main(
    config_file: str,
    listen_address: str,
    timeout_offset: float | None,
    noargs: bool,
    log_level: str,
    log_format: str,
) -> None:
    """Expose script results and alert states as Prometheus metrics."""
    configure_logging(log_level, log_format)
    host, port = parse_listen_address(listen_address)

    try:
        config = load_config(config_file)
    except ConfigError as e:
        logger.error("Loading configuration failed", extra={"err": str(e)})
        raise SystemExit(1) from e

    updates: dict[str, object] = {}
    if timeout_offset is not None:
        updates["timeout_offset"] = timeout_offset
    if noargs:
        updates["noargs"] = True
    if updates:
        config = config.model_copy(update=updates)

    logger.info(
        "Starting scriptprobe",
        extra={"version": __version__, "address": f"{host}:{port}"},
    )
    uvicorn.run(create_app(config), host=host, port=port, log_config=None)


if __name__ == "__main__":
    main()
