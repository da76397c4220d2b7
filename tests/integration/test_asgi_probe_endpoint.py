"""Test the /probe endpoint of the ASGI app end to end with real scripts."""

import pytest

from scriptprobe.app import create_app
from scriptprobe.config import parse_config

pytestmark = [
    pytest.mark.integration,
    pytest.mark.tier(2),
    pytest.mark.asgi,
]


@pytest.fixture
def probe_app(shell_script):
    """Exporter app with real shell scripts behind it."""
    echo = shell_script(
        'echo "# HELP requests Requests."\n'
        'echo "# TYPE requests counter"\n'
        'echo "requests{code=\\"200\\"} 1,5"\n'
        'for arg in "$@"; do echo "arg_$arg 1"; done\n'
        'echo "garbage line"',
        name="echo.sh",
    )
    failing = shell_script("echo partial 1\nexit 2", name="fail.sh")
    config = parse_config(
        {
            "scripts": [
                {"name": "echo", "command": echo, "args": ["static"]},
                {"name": "fail", "command": failing},
                {
                    "name": "quiet",
                    "command": failing,
                    "ignore_output_on_fail": True,
                },
            ]
        }
    )
    return create_app(config)


@pytest.mark.tra("Adapter.ASGI.ProbeEndpoint")
async def test_probe_returns_outcome_and_rewritten_output(
    probe_app, asgi_test_client
):
    """A successful run renders the outcome block followed by the script output."""
    async with asgi_test_client(probe_app) as client:
        response = await client.get(
            "/probe", params={"script": "echo", "prefix": "ns", "params": "x", "x": "a"}
        )

    assert response.status_code == 200
    assert response.headers["content-type"] == "text/plain; version=0.0.4; charset=utf-8"
    lines = response.text.splitlines()
    assert lines[2] == 'script_success{script="echo"} 1'
    assert lines[8] == 'script_exit_code{script="echo"} 0'
    assert lines[9:] == [
        "# HELP ns_requests Requests.",
        "# TYPE ns_requests counter",
        'ns_requests{code="200"} 1.5',
        "ns_arg_static 1",
        "ns_arg_a 1",
    ]


@pytest.mark.tra("Adapter.ASGI.ProbeEndpoint")
async def test_probe_ignore_output(probe_app, asgi_test_client):
    """output=ignore returns only the nine outcome lines."""
    async with asgi_test_client(probe_app) as client:
        response = await client.get("/probe?script=echo&output=ignore")

    assert response.status_code == 200
    assert len(response.text.splitlines()) == 9


@pytest.mark.tra("Adapter.ASGI.ProbeEndpoint")
async def test_failed_script_is_still_200(probe_app, asgi_test_client):
    """Script failures are reported in metrics, not in the status code."""
    async with asgi_test_client(probe_app) as client:
        failed = await client.get("/probe?script=fail")
        quiet = await client.get("/probe?script=quiet")

    assert failed.status_code == 200
    assert 'script_success{script="fail"} 0' in failed.text
    assert 'script_exit_code{script="fail"} 2' in failed.text
    assert failed.text.endswith("partial 1\n")

    assert quiet.status_code == 200
    assert len(quiet.text.splitlines()) == 9


@pytest.mark.tra("Adapter.Probe.MissingScript")
async def test_missing_script_parameter(probe_app, asgi_test_client):
    async with asgi_test_client(probe_app) as client:
        response = await client.get("/probe")

    assert response.status_code == 400
    assert response.text == "Script parameter is missing"


@pytest.mark.tra("Adapter.Probe.UnknownScript")
async def test_unknown_script(probe_app, asgi_test_client):
    async with asgi_test_client(probe_app) as client:
        response = await client.get("/probe?script=nope")

    assert response.status_code == 400
    assert response.text == "Script 'nope' not found"


@pytest.mark.tra("Adapter.Probe.Timeout.Source")
async def test_scrape_timeout_header_reaches_script(shell_script, asgi_test_client):
    """The scrape timeout header minus the offset is exported to the script."""
    program = shell_script('echo "budget $SCRIPT_TIMEOUT"')
    app = create_app(
        parse_config(
            {"timeout_offset": 0.5, "scripts": [{"name": "t", "command": program}]}
        )
    )

    async with asgi_test_client(app) as client:
        response = await client.get(
            "/probe?script=t",
            headers={"X-Prometheus-Scrape-Timeout-Seconds": "10"},
        )

    assert response.text.endswith("\nbudget 9.5\n")


@pytest.mark.tra("Adapter.Probe.Timeout.Source")
async def test_timeout_parameter_wins_over_header(shell_script, asgi_test_client):
    program = shell_script('echo "budget $SCRIPT_TIMEOUT"')
    app = create_app(
        parse_config(
            {"timeout_offset": 0.5, "scripts": [{"name": "t", "command": program}]}
        )
    )

    async with asgi_test_client(app) as client:
        response = await client.get(
            "/probe?script=t&timeout=4",
            headers={"X-Prometheus-Scrape-Timeout-Seconds": "10"},
        )

    assert response.text.endswith("\nbudget 3.5\n")


@pytest.mark.tra("Adapter.Process.Timeout.Enforced")
async def test_enforced_timeout_reports_failure(shell_script, asgi_test_client):
    program = shell_script("exec sleep 5")
    app = create_app(
        parse_config(
            {
                "scripts": [
                    {
                        "name": "slow",
                        "command": program,
                        "timeout": {"max_timeout": 0.2, "enforced": True},
                    }
                ]
            }
        )
    )

    async with asgi_test_client(app) as client:
        response = await client.get("/probe?script=slow")

    assert response.status_code == 200
    assert 'script_success{script="slow"} 0' in response.text
    assert 'script_exit_code{script="slow"} -1' in response.text


async def test_health_and_unknown_paths(probe_app, asgi_test_client):
    async with asgi_test_client(probe_app) as client:
        healthy = await client.get("/-/healthy")
        missing = await client.get("/nope")

    assert healthy.status_code == 200
    assert healthy.text == "OK"
    assert missing.status_code == 404
