# tether/policy/risk.py
from __future__ import annotations
import re
from typing import Any, Dict, List, Optional, Pattern

from tether.schemas.mode import RiskLevel
from tether.autonomy.config import AutonomyConfig, RiskTiers

# Shell command fragments that can destroy files or data.
# Each family must stay covered; the gate relies on there being no false negatives.
DESTRUCTIVE_PATTERNS: List[str] = [
    # rm with a recursive/force flag anywhere in its arguments (-rf, -fr, -r -f, -f -r, -R)
    r"\brm\s+(?:[^|;&]*\s)?-[a-zA-Z]*[rRf]",
    r"\brm\s+(?:[^|;&]*\s)?--(?:recursive|force)\b",
    # rm with a wildcard argument (rm *, rm ./*.txt, rm .*)
    r"\brm\s+[^|;&]*\*",
    # directory removal
    r"\brmdir\s+",
    # destructive keywords
    r"(?i)\bdelete\b",
    r"(?i)\btruncate\b",
    r"(?i)\bdrop\s+(?:database|table|schema)\b",
    # redirect into an absolute path (> /etc/hosts); /dev/null is the one target left alone
    r">+\s*/(?!dev/null\b)\S+",
    # filesystem format / raw disk dump
    r"\bmkfs(?:\.\w+)?\b",
    r"\bdd\s+(?:[^|;&]*\s)?(?:if|of)=",
    # also matches flags like `git log --format=...`; accepted false positive
    r"(?i)\bformat\b",
    # elevated delete/format
    r"\b(?:sudo|doas)\s+(?:[^|;&]*\s)?rm\b",
    r"(?i)\b(?:sudo|doas)\s+.*\b(?:delete|format|mkfs)\b",
]

_COMPILED: List[Pattern[str]] = [re.compile(p) for p in DESTRUCTIVE_PATTERNS]


def is_destructive_shell_command(command: Any) -> bool:
    """True if the shell command text matches any destructive pattern. Empty/non-str -> False."""
    if not command or not isinstance(command, str):
        return False
    return any(p.search(command) for p in _COMPILED)


class RiskClassifier:
    """
    Maps action names to a risk tier using the configured allow-lists.

    Lookups are case-insensitive exact matches. Anything not listed is MEDIUM:
    an unknown capability is never treated as safe.
    """

    def __init__(self, tiers: Optional[RiskTiers] = None, shell_actions: Optional[List[str]] = None):
        if tiers is None:
            defaults = AutonomyConfig.defaults()
            tiers = defaults.risk_tiers
            if shell_actions is None:
                shell_actions = defaults.shell_actions
        self._lookup: Dict[str, RiskLevel] = tiers.as_lookup()
        self._shell = {s.lower() for s in (shell_actions or ["bash"])}

    @classmethod
    def from_config(cls, config: AutonomyConfig) -> "RiskClassifier":
        return cls(config.risk_tiers, config.shell_actions)

    def classify(self, action: Any) -> RiskLevel:
        if not action or not isinstance(action, str):
            return RiskLevel.MEDIUM
        return self._lookup.get(action.strip().lower(), RiskLevel.MEDIUM)

    def is_shell_action(self, action: Any) -> bool:
        return isinstance(action, str) and action.strip().lower() in self._shell

    def is_destructive(self, action: Any, command: Optional[str]) -> bool:
        # only shell actions are ever checked against the command patterns
        return self.is_shell_action(action) and is_destructive_shell_command(command)

    def describe(self, action: str, command: Optional[str] = None) -> str:
        if self.is_destructive(action, command):
            return "Destructive shell command detected (file deletion or system modification)"
        level = self.classify(action)
        if level == RiskLevel.HIGH:
            return f"High-risk operation: {action} can modify files or system state"
        if level == RiskLevel.MEDIUM:
            return f"Medium-risk operation: {action} can create artifacts or manage state"
        return f"Low-risk operation: {action} performs read-only operations"


_default_classifier: Optional[RiskClassifier] = None


def _default() -> RiskClassifier:
    global _default_classifier
    if _default_classifier is None:
        _default_classifier = RiskClassifier()
    return _default_classifier


def classify_action(action: Any) -> RiskLevel:
    """Classify against the built-in tier lists."""
    return _default().classify(action)


def describe_risk(action: str, command: Optional[str] = None) -> str:
    return _default().describe(action, command)
