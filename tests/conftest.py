"""Shared test fixtures for all test modules."""

from collections.abc import Callable
from pathlib import Path

import httpx
import pytest
from tests.fakes import FakeBackend, FakeRunner

from scriptprobe.config import ExporterConfig, parse_config


@pytest.fixture
def exporter_config() -> ExporterConfig:
    """Configuration with a few scripts and a Prometheus section."""
    return parse_config(
        {
            "timeout_offset": 0.5,
            "scripts": [
                {"name": "foo", "command": "/usr/bin/foo", "args": ["-x"]},
                {
                    "name": "bounded",
                    "command": "/usr/bin/bounded",
                    "env": {"TARGET": "example.com"},
                    "timeout": {"max_timeout": 10, "enforced": True},
                },
                {
                    "name": "quiet_on_fail",
                    "command": "/usr/bin/quiet",
                    "ignore_output_on_fail": True,
                },
            ],
            "prometheus": {"host": "prometheus", "keep_labels": ["team"]},
        }
    )


@pytest.fixture
def fake_runner() -> FakeRunner:
    """Runner returning an empty successful result."""
    return FakeRunner()


@pytest.fixture
def fake_backend() -> FakeBackend:
    """Backend without rules."""
    return FakeBackend()


@pytest.fixture
def shell_script(tmp_path: Path) -> Callable[[str], str]:
    """Factory writing an executable /bin/sh script and returning its path."""

    def _write(body: str, name: str = "probe.sh") -> str:
        path = tmp_path / name
        path.write_text("#!/bin/sh\n" + body + "\n")
        path.chmod(0o755)
        return str(path)

    return _write


# === ASGI Test Fixtures ===


@pytest.fixture
def asgi_scope():
    """Factory fixture for creating ASGI scope dicts.

    Used in tests to create scope dicts with customizable method/path/query.
    """
    from scriptprobe.adapters.frameworks.asgi import Scope

    def _scope(
        method: str = "GET",
        path: str = "/probe",
        query_string: bytes = b"",
        headers: list[tuple[bytes, bytes]] | None = None,
    ) -> Scope:
        return {
            "type": "http",
            "method": method,
            "path": path,
            "query_string": query_string,
            "headers": headers or [],
        }

    return _scope


@pytest.fixture
def asgi_send_capture():
    """Fixture that returns a send callable and a responses list for capture.

    Returns a tuple of (send_func, responses_list) for recording ASGI messages.
    """

    responses: list[dict[str, object]] = []

    async def send(message: dict[str, object]) -> None:
        """Capture ASGI messages."""
        responses.append(message)

    return send, responses


@pytest.fixture
def asgi_test_client():
    """Factory fixture that creates an httpx.AsyncClient for ASGI testing.

    Usage:
        async def test_something(asgi_test_client):
            app = create_app(config)
            async with asgi_test_client(app) as client:
                response = await client.get("/probe?script=foo")
    """
    def _get_client(app):
        """Return an AsyncClient context manager for the given app."""
        return httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://test"
        )

    return _get_client
