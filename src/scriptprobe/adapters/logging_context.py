"""Per-request logging context.

Values stored here (request ID, script name) are attached to every log
record emitted while a request is handled, see ``LogContextFilter``.
"""

from contextvars import ContextVar

_log_context: ContextVar[dict[str, str] | None] = ContextVar(
    "scriptprobe_log_context", default=None
)


def get_log_context() -> dict[str, str]:
    """Return a copy of the current logging context."""
    return dict(_log_context.get() or {})


def set_log_context(**values: str) -> None:
    """Replace the current logging context with ``values``."""
    _log_context.set(dict(values))


def update_log_context(**values: str) -> None:
    """Add ``values`` to the current logging context."""
    _log_context.set({**get_log_context(), **values})


def clear_log_context() -> None:
    """Remove all values from the current logging context."""
    _log_context.set(None)
