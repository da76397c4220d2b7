"""Prometheus text exposition encoding for script probes.

Rewrites raw script output into prefixed, normalized exposition text and
renders the synthetic outcome metrics reported for every script run.
"""

import re
from collections.abc import Iterable

from scriptprobe.core.models import ProbeStatusRecord, ScriptResult

NAMESPACE = "script"
PROBE_STATUS_METRIC = "probe_status"

_SUCCESS_HELP = f"# HELP {NAMESPACE}_success Script exit status (0 = error, 1 = success)."
_SUCCESS_TYPE = f"# TYPE {NAMESPACE}_success gauge"
_DURATION_HELP = (
    f"# HELP {NAMESPACE}_duration_seconds Script execution time, in seconds."
)
_DURATION_TYPE = f"# TYPE {NAMESPACE}_duration_seconds gauge"
_EXIT_CODE_HELP = f"# HELP {NAMESPACE}_exit_code The exit code of the script."
_EXIT_CODE_TYPE = f"# TYPE {NAMESPACE}_exit_code gauge"

_COMMENT_RE = re.compile(r"^(# *(?:TYPE|HELP) +)")


def _escape_label_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def format_labels(labels: dict[str, str]) -> str:
    """Render a label set as ``{a="1",b="2"}`` with keys sorted.

    Returns an empty string for an empty label set.
    """
    if not labels:
        return ""
    pairs = ",".join(
        f'{name}="{_escape_label_value(labels[name])}"' for name in sorted(labels)
    )
    return "{" + pairs + "}"


def rewrite_output(output: str, prefix: str = "") -> str:
    """Rewrite raw script output into normalized exposition text.

    Args:
        output: Raw standard output of the script.
        prefix: Namespace prefix including its trailing underscore, or "".

    Returns:
        Newline-terminated text containing the comment lines (prefixed when
        a prefix is set) and every sample line that still has a valid
        ``name{labels} value`` shape after normalization. Anything else is
        dropped. Empty string when nothing survives.
    """
    escaped = re.escape(prefix)
    token_re = re.compile("^" + escaped + r"\w*(?:\{.*\})?\s+")
    sample_re = re.compile("^" + escaped + r"\w+(?:\{.*\})?\s+[0-9.]+$")

    lines: list[str] = []
    for raw in output.splitlines():
        metric = raw.strip()
        if not metric:
            continue
        if metric.startswith("#"):
            if prefix:
                metric = _COMMENT_RE.sub(lambda m: m.group(1) + prefix, metric, count=1)
            lines.append(metric)
            continue

        metric = prefix + metric
        token = token_re.match(metric)
        if token is None:
            continue
        value = metric[token.end() :].replace(",", ".")
        candidate = token.group(0) + value
        if sample_re.match(candidate):
            lines.append(candidate)

    if not lines:
        return ""
    return "\n".join(lines) + "\n"


def encode_outcome(script: str, result: ScriptResult) -> str:
    """Render the success, duration and exit code metrics for a script run.

    Args:
        script: Script name used as the ``script`` label.
        result: Outcome of the run.

    Returns:
        Nine newline-terminated lines: a HELP/TYPE/value triple per metric.
    """
    labels = format_labels({"script": script})
    lines = [
        _SUCCESS_HELP,
        _SUCCESS_TYPE,
        f"{NAMESPACE}_success{labels} {result.success:d}",
        _DURATION_HELP,
        _DURATION_TYPE,
        f"{NAMESPACE}_duration_seconds{labels} {result.duration:f}",
        _EXIT_CODE_HELP,
        _EXIT_CODE_TYPE,
        f"{NAMESPACE}_exit_code{labels} {result.exit_code:d}",
    ]
    return "\n".join(lines) + "\n"


def encode_probe_status(records: Iterable[ProbeStatusRecord]) -> str:
    """Encode probe status records as ``probe_status{labels} value`` lines.

    Returns:
        Newline-terminated text, empty string if there are no records.
    """
    lines = [
        f"{PROBE_STATUS_METRIC}{format_labels(record.labels)} {record.value:d}"
        for record in records
    ]
    if not lines:
        return ""
    return "\n".join(lines) + "\n"
