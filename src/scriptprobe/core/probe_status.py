"""Aggregation of alerting rule states into ``probe_status`` metrics.

Every alerting rule that carries an ``expr_reversed`` annotation is probed
with one instant query combining that reverse expression with the rule's
``ALERTS`` series, so instances that are fine and instances that are
pending or firing come back in a single result. Rules are probed
concurrently; a failing rule only loses its own lines.
"""

import asyncio
import logging
from collections.abc import Iterable

from scriptprobe.core.encoding.exposition import encode_probe_status
from scriptprobe.core.exceptions import BackendError
from scriptprobe.core.models import AlertingRule, ProbeSample, ProbeStatusRecord
from scriptprobe.core.ports import RulesBackendPort
from scriptprobe.core.status import ALERTS_METRIC, SEVERITY_LABEL, StatusClassifier
from scriptprobe.core.templating import TemplateContext, TemplateExpander

logger = logging.getLogger(__name__)

REVERSE_EXPR_ANNOTATION = "expr_reversed"
ALERT_NAME_LABEL = "alertname"
INSTANCE_LABEL = "instance"

DEFAULT_QUERY_TIMEOUT = 5.0
DEFAULT_RULES_TIMEOUT = 10.0


def build_probe_query(rule: AlertingRule) -> str | None:
    """Return the probe query for ``rule``, None if it has no reverse expression.

    Example:
        A rule ``HighCPU`` annotated with ``expr_reversed: up == 1`` gives
        ``up == 1 OR ALERTS{alertname="HighCPU"}``.
    """
    expr = rule.annotations.get(REVERSE_EXPR_ANNOTATION, "").strip()
    if not expr:
        return None
    name = rule.name.replace("\\", "\\\\").replace('"', '\\"')
    return f'{expr} OR {ALERTS_METRIC}{{{ALERT_NAME_LABEL}="{name}"}}'


class ProbeAggregator:
    """Builds probe status records for every probed alerting rule."""

    def __init__(
        self,
        backend: RulesBackendPort,
        classifier: StatusClassifier | None = None,
        keep_labels: Iterable[str] = (),
        external_labels: dict[str, str] | None = None,
        external_url: str = "",
        query_timeout: float = DEFAULT_QUERY_TIMEOUT,
        rules_timeout: float = DEFAULT_RULES_TIMEOUT,
    ) -> None:
        """Initialize the aggregator.

        Args:
            backend: Metrics backend listing rules and running queries.
            classifier: Sample classifier (default state mapping if omitted).
            keep_labels: Sample labels copied onto the output label set.
            external_labels: External labels exposed to label templates.
            external_url: External URL exposed to label templates.
            query_timeout: Deadline in seconds for each per-rule query.
            rules_timeout: Deadline in seconds for listing the rules.
        """
        self._backend = backend
        self.classifier = classifier or StatusClassifier()
        self.keep_labels = tuple(keep_labels)
        self.external_labels = dict(external_labels or {})
        self.external_url = external_url
        self.query_timeout = query_timeout
        self.rules_timeout = rules_timeout

    async def _list_rules(self) -> list[AlertingRule]:
        try:
            async with asyncio.timeout(self.rules_timeout):
                return await self._backend.list_alerting_rules()
        except (BackendError, TimeoutError) as e:
            logger.error("Failed to fetch alerting rules", extra={"err": str(e)})
            return []

    def build_record(self, rule: AlertingRule, sample: ProbeSample) -> ProbeStatusRecord:
        """Classify one sample of ``rule`` and build its output labels.

        Label precedence, lowest first: rule labels, kept sample labels,
        then ``alertname`` and ``instance``. ``severity`` is always removed.
        """
        labels = dict(rule.labels)
        for name in self.keep_labels:
            if name in sample.labels:
                labels[name] = sample.labels[name]
        labels[ALERT_NAME_LABEL] = rule.name
        if INSTANCE_LABEL in sample.labels:
            labels[INSTANCE_LABEL] = sample.labels[INSTANCE_LABEL]
        else:
            labels.pop(INSTANCE_LABEL, None)
        labels.pop(SEVERITY_LABEL, None)

        state, value = self.classifier.classify(sample, rule)
        expander = TemplateExpander(
            TemplateContext(
                labels=sample.labels,
                external_labels=self.external_labels,
                external_url=self.external_url,
                value=sample.value,
            ),
            name=f"__alert_{rule.name}",
        )
        expanded = {name: expander.expand(text) for name, text in labels.items()}
        return ProbeStatusRecord(labels=expanded, state=state, value=value)

    async def probe_rule(self, rule: AlertingRule) -> list[ProbeStatusRecord]:
        """Query and classify one rule; errors yield an empty list."""
        query = build_probe_query(rule)
        if query is None:
            return []
        try:
            async with asyncio.timeout(self.query_timeout):
                samples = await self._backend.query(query, self.query_timeout)
        except (BackendError, TimeoutError) as e:
            logger.error(
                "Failed to fetch probe status",
                extra={"rule": rule.name, "err": str(e) or type(e).__name__},
            )
            return []
        return [self.build_record(rule, sample) for sample in samples]

    async def collect(self) -> list[ProbeStatusRecord]:
        """Probe every rule concurrently and merge the results.

        Records of one rule keep the backend's sample order; rules are
        concatenated in the order they were listed.
        """
        rules = [r for r in await self._list_rules() if build_probe_query(r)]
        async with asyncio.TaskGroup() as group:
            tasks = [group.create_task(self.probe_rule(rule)) for rule in rules]

        records: list[ProbeStatusRecord] = []
        for task in tasks:
            records.extend(task.result())
        logger.debug(
            "Collected probe statuses",
            extra={"rules": len(rules), "records": len(records)},
        )
        return records

    async def render(self) -> str:
        """Return the ``probe_status`` exposition body."""
        return encode_probe_status(await self.collect())
