# tether/observability/logging.py
from __future__ import annotations
import logging
import json
import os
from datetime import datetime, timezone
from typing import Optional, Dict, Any, Union

# extra= keys the gate attaches to its records
CONTEXT_FIELDS = ("conversation_id", "call_id", "action", "mode", "verdict", "reason")

PACKAGE_LOGGER = "tether"


class JsonFormatter(logging.Formatter):
    """
    One JSON object per record: UTC timestamp, level, logger, message, and
    whichever gate context fields the call site passed through extra=.
    """

    def format(self, record: logging.LogRecord) -> str:
        base: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for attr in CONTEXT_FIELDS:
            value = getattr(record, attr, None)
            if value is not None:
                base[attr] = value

        if record.exc_info:
            base["exception"] = self.formatException(record.exc_info)

        return json.dumps(base, ensure_ascii=False, default=str)


def configure_logging(
    level: Union[int, str] = logging.INFO,
    log_to_file: Optional[str] = None,
    extra_modules: Optional[Dict[str, Union[int, str]]] = None,
) -> logging.Logger:
    """
    Host-side helper: route the package's records through JsonFormatter.

    Handlers go on the "tether" logger only, so the host's root configuration
    is left alone. Calling it again replaces the handlers it installed.
    extra_modules maps sub-loggers (e.g. "tether.policy.engine") to levels.
    """
    pkg = logging.getLogger(PACKAGE_LOGGER)
    pkg.setLevel(level)

    for h in list(pkg.handlers):
        if getattr(h, "_tether_json", False):
            pkg.removeHandler(h)
            h.close()

    formatter = JsonFormatter()
    handlers = [logging.StreamHandler()]
    if log_to_file:
        os.makedirs(os.path.dirname(log_to_file) or ".", exist_ok=True)
        handlers.append(logging.FileHandler(log_to_file, encoding="utf-8"))

    for h in handlers:
        h.setFormatter(formatter)
        h._tether_json = True
        pkg.addHandler(h)

    if extra_modules:
        for mod, lvl in extra_modules.items():
            logging.getLogger(mod).setLevel(lvl)

    return pkg
