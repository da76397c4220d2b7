"""BDD step definitions for probe status aggregation features."""

import asyncio
from dataclasses import dataclass, field
from typing import Any

import pytest
from pytest_bdd import given, parsers, then, when
from tests.fakes import FakeBackend

from scriptprobe.core.exceptions import BackendError
from scriptprobe.core.models import AlertingRule, ProbeSample
from scriptprobe.core.probe_status import ProbeAggregator, build_probe_query


@dataclass
class ProbeStatusScenarioContext:
    """State shared between the steps of one scenario."""

    backend: FakeBackend = field(default_factory=FakeBackend)
    rules: dict[str, AlertingRule] = field(default_factory=dict)
    body: str = ""


def run_async(coro: Any) -> Any:
    """Run a coroutine synchronously."""
    return asyncio.run(coro)


def _query_for(ctx: ProbeStatusScenarioContext, rule: str) -> str:
    query = build_probe_query(ctx.rules[rule])
    assert query is not None
    return query


@pytest.fixture
def ctx() -> ProbeStatusScenarioContext:
    """Fresh scenario context for each test."""
    return ProbeStatusScenarioContext()


# === Given ===
@given("a Prometheus backend")
def step_backend(ctx: ProbeStatusScenarioContext) -> None:
    ctx.backend = FakeBackend()


@given(parsers.parse('an alerting rule "{name}" with reverse expression "{expr}"'))
def step_rule(ctx: ProbeStatusScenarioContext, name: str, expr: str) -> None:
    rule = AlertingRule(
        name=name,
        labels={"severity": "critical"},
        annotations={"expr_reversed": expr},
    )
    ctx.rules[name] = rule
    ctx.backend.rules.append(rule)


@given(parsers.parse('an alerting rule "{name}" without reverse expression'))
def step_rule_without_reverse(ctx: ProbeStatusScenarioContext, name: str) -> None:
    rule = AlertingRule(name=name, annotations={"summary": "no reverse"})
    ctx.rules[name] = rule
    ctx.backend.rules.append(rule)


@given(
    parsers.parse(
        'the query for "{rule}" returns a sample "{metric}" for instance "{instance}"'
    )
)
def step_sample(
    ctx: ProbeStatusScenarioContext, rule: str, metric: str, instance: str
) -> None:
    ctx.backend.results.setdefault(_query_for(ctx, rule), []).append(
        ProbeSample(name=metric, labels={"instance": instance}, value=1)
    )


@given(
    parsers.parse(
        'the query for "{rule}" returns an ALERTS sample for instance "{instance}" '
        'with state "{state}" and severity "{severity}"'
    )
)
def step_alerts_sample(
    ctx: ProbeStatusScenarioContext,
    rule: str,
    instance: str,
    state: str,
    severity: str,
) -> None:
    ctx.backend.results.setdefault(_query_for(ctx, rule), []).append(
        ProbeSample(
            name="ALERTS",
            labels={
                "alertname": rule,
                "alertstate": state,
                "instance": instance,
                "severity": severity,
            },
            value=1,
        )
    )


@given(parsers.parse('the query for "{rule}" fails'))
def step_query_fails(ctx: ProbeStatusScenarioContext, rule: str) -> None:
    ctx.backend.failures.add(_query_for(ctx, rule))


@given("listing the rules fails")
def step_rules_fail(ctx: ProbeStatusScenarioContext) -> None:
    ctx.backend.rules_error = BackendError("connection refused")


# === When ===
@when("the probe statuses are rendered")
def step_render(ctx: ProbeStatusScenarioContext) -> None:
    ctx.body = run_async(ProbeAggregator(ctx.backend).render())


# === Then ===
@then(parsers.parse("the body has {count:d} line"))
def step_line_count(ctx: ProbeStatusScenarioContext, count: int) -> None:
    assert len(ctx.body.splitlines()) == count


@then("the body is empty")
def step_body_empty(ctx: ProbeStatusScenarioContext) -> None:
    assert ctx.body == ""


@then(
    parsers.parse(
        'the line for rule "{rule}" and instance "{instance}" has value {value:d}'
    )
)
def step_line_value(
    ctx: ProbeStatusScenarioContext, rule: str, instance: str, value: int
) -> None:
    expected = f'probe_status{{alertname="{rule}",instance="{instance}"}} {value}'
    assert expected in ctx.body.splitlines()


@then("no query was sent")
def step_no_query(ctx: ProbeStatusScenarioContext) -> None:
    assert ctx.backend.queries == []
