# tether/observability/metrics.py
from __future__ import annotations
from typing import Any, Dict

# names recorded by AutonomyController
SESSIONS_CREATED = "sessions.created"
SESSIONS_RESTORED = "sessions.restored"
PERSISTENCE_FAILURES = "persistence.failures"
GATE_ERRORS = "gate.errors"
HOOK_REJECTED = "hooks.rejected"
APPROVALS_GRANTED = "approvals.granted"
APPROVALS_BLOCKED = "approvals.blocked"
BACKGROUND_EXCEEDED = "background.capacity_exceeded"
BACKGROUND_RUNNING = "background.running"


def verdict_counter(verdict: str) -> str:
    return f"gate.verdict.{verdict}"


class Counter:
    def __init__(self):
        self.value = 0

    def inc(self, amount: int = 1) -> None:
        self.value += amount

    def get(self) -> int:
        return self.value


class Gauge:
    def __init__(self):
        self.value = 0

    def set(self, v: int) -> None:
        self.value = v

    def get(self) -> int:
        return self.value


class MetricsRegistry:
    """
    Gate and session counters for one controller. Callbacks run on the host's
    event loop, so updates are plain attribute writes.
    """

    def __init__(self):
        self._counters: Dict[str, Counter] = {}
        self._gauges: Dict[str, Gauge] = {}

    def counter(self, name: str) -> Counter:
        return self._counters.setdefault(name, Counter())

    def gauge(self, name: str) -> Gauge:
        return self._gauges.setdefault(name, Gauge())

    def snapshot(self) -> Dict[str, Any]:
        """{"counters": {...}, "gauges": {...}}, sorted by name; reported in get_status."""
        return {
            "counters": {n: self._counters[n].get() for n in sorted(self._counters)},
            "gauges": {n: self._gauges[n].get() for n in sorted(self._gauges)},
        }
