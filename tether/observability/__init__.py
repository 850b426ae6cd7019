# tether/observability/__init__.py
from .logging import CONTEXT_FIELDS, JsonFormatter, configure_logging
from .metrics import Counter, Gauge, MetricsRegistry, verdict_counter

__all__ = ["CONTEXT_FIELDS", "JsonFormatter", "configure_logging", "Counter", "Gauge", "MetricsRegistry", "verdict_counter"]
