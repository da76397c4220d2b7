"""Label template expansion for probe statuses.

Alerting rule labels may carry alert-template references such as
``{{ $labels.instance }}`` or ``{{ .Labels.job }}``. This module expands
those references against a fixed context instead of running a general
template engine. Supported actions:

- ``{{ $labels.<name> }}`` / ``{{ .Labels.<name> }}``
- ``{{ $externalLabels.<name> }}`` / ``{{ .ExternalLabels.<name> }}``
- ``{{ $externalURL }}`` / ``{{ .ExternalURL }}``
- ``{{ $value }}`` / ``{{ .Value }}``
- ``{{ $x := .X }}`` declarations of the bindings above (no output)
- ``{{/* comment */}}`` (no output)

A ``{{- `` or `` -}}`` marker trims the whitespace before or after the action.

Missing label names expand to an empty string.
"""

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from scriptprobe.core.exceptions import TemplateExpansionError

logger = logging.getLogger(__name__)

_ACTION_RE = re.compile(
    r"\{\{(?P<ltrim>-\s)?\s*(?P<action>.*?)\s*(?P<rtrim>\s-)?\}\}", re.DOTALL
)
_DECLARATION_RE = re.compile(r"^\$(\w+)\s*:=\s*\.(\w+)$")
_REFERENCE_RE = re.compile(r"^(\$\w+|\.\w+)((?:\.\w+)*)$")

_BINDINGS = {
    "$labels": "Labels",
    "$externalLabels": "ExternalLabels",
    "$externalURL": "ExternalURL",
    "$value": "Value",
}


def _format_value(value: Any) -> str:
    """Render a context value the way alert templates print it."""
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, Mapping):
        inner = " ".join(f"{k}:{value[k]}" for k in sorted(value))
        return f"map[{inner}]"
    return str(value)


@dataclass(frozen=True)
class TemplateContext:
    """Data available to label templates.

    Attributes:
        labels: Labels of the sample being rendered.
        external_labels: External labels of the backend.
        external_url: External URL of the backend.
        value: Numeric value of the sample.
    """

    labels: dict[str, str] = field(default_factory=dict)
    external_labels: dict[str, str] = field(default_factory=dict)
    external_url: str = ""
    value: float = 0.0

    def root(self) -> dict[str, Any]:
        return {
            "Labels": self.labels,
            "ExternalLabels": self.external_labels,
            "ExternalURL": self.external_url,
            "Value": self.value,
        }


class TemplateExpander:
    """Expands label templates against a TemplateContext.

    Example:
        ```python
        expander = TemplateExpander(TemplateContext(labels={"instance": "db1"}))
        expander.expand("{{ $labels.instance }} is down")  # "db1 is down"
        ```
    """

    def __init__(self, context: TemplateContext, name: str = "template") -> None:
        self._context = context
        self._root = context.root()
        self._name = name

    def _resolve(self, expression: str) -> str | None:
        if expression.startswith("/*") and expression.endswith("*/"):
            return None
        declared = _DECLARATION_RE.match(expression)
        if declared is not None:
            variable, target = declared.groups()
            if _BINDINGS.get(f"${variable}") != target:
                raise TemplateExpansionError(
                    f"{self._name}: unsupported declaration {expression!r}"
                )
            return None

        reference = _REFERENCE_RE.match(expression)
        if reference is None:
            raise TemplateExpansionError(
                f"{self._name}: unsupported expression {expression!r}"
            )
        head, path = reference.groups()
        if head.startswith("$"):
            if head not in _BINDINGS:
                raise TemplateExpansionError(
                    f"{self._name}: undefined variable {head!r}"
                )
            key = _BINDINGS[head]
        else:
            key = head[1:]
            if key not in self._root:
                raise TemplateExpansionError(
                    f"{self._name}: can't evaluate field {key}"
                )

        current: Any = self._root[key]
        for part in filter(None, path.split(".")):
            if not isinstance(current, Mapping):
                raise TemplateExpansionError(
                    f"{self._name}: can't evaluate field {part} in {key}"
                )
            current = current.get(part, "")
        return _format_value(current)

    def expand_strict(self, text: str) -> str:
        """Expand ``text``, raising on the first unsupported action.

        Raises:
            TemplateExpansionError: If an action is unknown or unbalanced.
        """
        if "{{" not in text:
            return text

        parts: list[str] = []
        position = 0
        trim_next = False
        for action in _ACTION_RE.finditer(text):
            chunk = text[position : action.start()]
            if trim_next:
                chunk = chunk.lstrip()
            if action.group("ltrim"):
                chunk = chunk.rstrip()
            parts.append(chunk)
            resolved = self._resolve(action.group("action"))
            if resolved is not None:
                parts.append(resolved)
            trim_next = action.group("rtrim") is not None
            position = action.end()
        tail = text[position:]
        if "{{" in tail:
            raise TemplateExpansionError(f"{self._name}: unclosed action")
        parts.append(tail.lstrip() if trim_next else tail)
        return "".join(parts)

    def expand(self, text: str) -> str:
        """Expand ``text``, replacing it with an error marker on failure."""
        try:
            return self.expand_strict(text)
        except TemplateExpansionError as e:
            logger.warning(
                "Expanding label template failed",
                extra={"template": self._name, "err": str(e)},
            )
            return f"<error expanding template: {e}>"
