"""Exporter configuration.

The configuration is a YAML file validated with pydantic. It lists the
scripts that can be probed and, optionally, the Prometheus server whose
alerting rules back the ``/probes-status`` endpoint.

Example:
    ```yaml
    timeout_offset: 0.5
    scripts:
      - name: ping
        command: ./examples/ping.sh
        args: ["-c", "1"]
        timeout:
          max_timeout: 30
          enforced: true
    prometheus:
      host: prometheus
      keep_labels: [team]
    ```
"""

from __future__ import annotations

import shlex
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from scriptprobe.core.exceptions import ConfigError, ScriptNotFoundError
from scriptprobe.core.models import StateMapping


class TimeoutConfig(BaseModel):
    """Timeout settings of a script."""

    max_timeout: float | None = Field(
        default=None,
        description="Ceiling in seconds for the scrape timeout (unset: no ceiling)",
    )
    enforced: bool = Field(
        default=False,
        description="Kill the script once the timeout is exceeded",
    )

    @field_validator("max_timeout")
    @classmethod
    def _positive_timeout(cls, v: float | None) -> float | None:
        if v is not None and v < 0:
            raise ValueError("max_timeout must not be negative")
        return v


class ScriptConfig(BaseModel):
    """A script that can be probed through ``/probe?script=<name>``.

    Either ``command`` (with optional ``args``) or the shorthand ``script``
    (a command line split like a shell would) must be given.
    """

    name: str = Field(min_length=1)
    command: str = ""
    args: list[str] = Field(default_factory=list)
    script: str | None = Field(
        default=None,
        description="Command line shorthand, split into command and args",
    )
    env: dict[str, str] = Field(default_factory=dict)
    ignore_output_on_fail: bool = False
    timeout: TimeoutConfig = Field(default_factory=TimeoutConfig)

    @model_validator(mode="after")
    def _split_script(self) -> ScriptConfig:
        if self.script:
            parts = shlex.split(self.script)
            if parts:
                self.command = parts[0]
                self.args = parts[1:] + self.args
        if not self.command:
            raise ValueError(f"script '{self.name}' needs a command")
        return self


class PrometheusConfig(BaseModel):
    """Connection and rendering settings for ``/probes-status``."""

    scheme: Literal["http", "https"] = "http"
    host: str = "localhost"
    port: int = Field(default=9090, ge=1, le=65535)
    path: str = ""
    keep_labels: list[str] = Field(
        default_factory=list,
        description="Sample labels copied onto probe_status lines",
    )
    external_labels: dict[str, str] = Field(default_factory=dict)
    state_mapping: StateMapping = Field(default_factory=StateMapping)
    query_timeout: float = Field(default=5.0, gt=0)
    rules_timeout: float = Field(default=10.0, gt=0)

    @property
    def url(self) -> str:
        path = self.path.rstrip("/")
        if path and not path.startswith("/"):
            path = "/" + path
        return f"{self.scheme}://{self.host}:{self.port}{path}"


class ExporterConfig(BaseModel):
    """Root configuration object.

    Also serves as the per-script configuration provider of the core.
    """

    timeout_offset: float = Field(default=0.5, ge=0)
    noargs: bool = Field(
        default=False,
        description="Ignore the params query parameter entirely",
    )
    scripts: list[ScriptConfig] = Field(default_factory=list)
    prometheus: PrometheusConfig | None = None

    @field_validator("scripts")
    @classmethod
    def _unique_names(cls, v: list[ScriptConfig]) -> list[ScriptConfig]:
        seen: set[str] = set()
        for script in v:
            if script.name in seen:
                raise ValueError(f"duplicate script name '{script.name}'")
            seen.add(script.name)
        return v

    def get_script(self, name: str) -> ScriptConfig | None:
        for script in self.scripts:
            if script.name == name:
                return script
        return None

    def _require(self, name: str) -> ScriptConfig:
        script = self.get_script(name)
        if script is None:
            raise ScriptNotFoundError(name)
        return script

    def get_run_args(self, script: str) -> list[str]:
        config = self._require(script)
        return [config.command, *config.args]

    def get_run_env(self, script: str) -> dict[str, str]:
        return dict(self._require(script).env)

    def get_max_timeout(self, script: str) -> float | None:
        return self._require(script).timeout.max_timeout

    def get_timeout_enforced(self, script: str) -> bool:
        return self._require(script).timeout.enforced

    def get_ignore_output_on_fail(self, script: str) -> bool:
        return self._require(script).ignore_output_on_fail


def parse_config(data: Any) -> ExporterConfig:
    """Validate already-loaded configuration data.

    Raises:
        ConfigError: If the data does not describe a valid configuration.
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError("configuration must be a mapping")
    try:
        return ExporterConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(str(e)) from e


def load_config(path: str | Path) -> ExporterConfig:
    """Load and validate the YAML configuration file at ``path``.

    Raises:
        ConfigError: If the file is unreadable, not YAML, or invalid.
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"cannot read {path}: {e}") from e
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"cannot parse {path}: {e}") from e
    return parse_config(data)
