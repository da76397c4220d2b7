"""Encoders for the exposition format."""

from scriptprobe.core.encoding.exposition import (
    encode_outcome,
    encode_probe_status,
    format_labels,
    rewrite_output,
)

__all__ = [
    "encode_outcome",
    "encode_probe_status",
    "format_labels",
    "rewrite_output",
]
