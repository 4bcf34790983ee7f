"""
In-memory counters for Prometheus exposition.
Thread-safe; exported by GET /metrics.
"""
import threading
from typing import Dict

PREFIX = "starter"

# Exported series: (metric name, help text, [(labels, counter key), ...])
SERIES = (
    ("requests_total", "Total HTTP requests", [("", "requests_total")]),
    ("requests_by_status", "HTTP requests by status class", [
        ('status="2xx"', "requests_2xx"),
        ('status="4xx"', "requests_4xx"),
        ('status="5xx"', "requests_5xx"),
    ]),
    ("projects_generated_total", "Project generation attempts", [
        ('status="success"', "projects_generated_success"),
        ('status="failed"', "projects_generated_failed"),
    ]),
    ("libraries_requested_total", "Library catalog requests", [("", "libraries_requested_total")]),
    ("cleanup_removed_total", "Expired entries removed", [("", "cleanup_removed_total")]),
    ("version_lookups_failed_total", "Failed library version lookups",
     [("", "version_lookups_failed_total")]),
)


class Metrics:
    """Thread-safe counter collection."""

    def __init__(self):
        self._lock = threading.Lock()
        self._counters: Dict[str, int] = {}
        self.reset()

    def reset(self) -> None:
        """Zero every exported counter."""
        with self._lock:
            self._counters = {key: 0 for _, _, samples in SERIES for _, key in samples}

    def inc(self, name: str, value: int = 1) -> None:
        with self._lock:
            self._counters[name] = self._counters.get(name, 0) + value

    def get(self, name: str) -> int:
        with self._lock:
            return self._counters.get(name, 0)

    def get_all(self) -> Dict[str, int]:
        with self._lock:
            return self._counters.copy()

    def to_prometheus(self) -> str:
        """Render counters in Prometheus text format."""
        counters = self.get_all()
        lines = []
        for name, help_text, samples in SERIES:
            metric = f"{PREFIX}_{name}"
            lines.append(f"# HELP {metric} {help_text}")
            lines.append(f"# TYPE {metric} counter")
            for labels, key in samples:
                selector = f"{{{labels}}}" if labels else ""
                lines.append(f"{metric}{selector} {counters.get(key, 0)}")
        return "\n".join(lines) + "\n"


# Global metrics instance
metrics = Metrics()
