"""scriptprobe: expose script results and alert states as Prometheus metrics."""

__version__ = "0.1.0"
