# tether/policy/__init__.py
from .risk import RiskClassifier, classify_action, describe_risk, is_destructive_shell_command
from .engine import PermissionDecisionEngine

__all__ = [
    "RiskClassifier",
    "classify_action",
    "describe_risk",
    "is_destructive_shell_command",
    "PermissionDecisionEngine",
]
