"""Classification of query samples into probe states."""

from scriptprobe.core.models import (
    AlertingRule,
    ProbeSample,
    ProbeState,
    StateMapping,
)

ALERTS_METRIC = "ALERTS"
ALERT_STATE_LABEL = "alertstate"
SEVERITY_LABEL = "severity"


class StatusClassifier:
    """Maps a sample returned for a rule to a ProbeState and its value.

    Samples of the ``ALERTS`` series are pending, warning or firing
    depending on their ``alertstate`` and ``severity`` labels; any other
    sample comes from the rule's reverse expression and is ok.
    """

    def __init__(self, mapping: StateMapping | None = None) -> None:
        self.mapping = mapping or StateMapping()

    def state(self, sample: ProbeSample, rule: AlertingRule) -> ProbeState:
        if sample.name != ALERTS_METRIC:
            return ProbeState.OK
        if sample.labels.get(ALERT_STATE_LABEL) == ProbeState.PENDING.value:
            return ProbeState.PENDING
        if sample.labels.get(SEVERITY_LABEL) == ProbeState.WARNING.value:
            return ProbeState.WARNING
        return ProbeState.FIRING

    def classify(
        self, sample: ProbeSample, rule: AlertingRule
    ) -> tuple[ProbeState, int]:
        """Return the state of ``sample`` and its configured numeric value."""
        state = self.state(sample, rule)
        return state, self.mapping.value_for(state)
