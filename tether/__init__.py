"""
tether: autonomy modes and permission gating for tool-using coding agents.
"""
from tether.schemas import AutonomyMode, RiskLevel, Verdict
from tether.autonomy import AutonomyConfig, load_autonomy_config
from tether.policy import classify_action, is_destructive_shell_command
from tether.runtime import AutonomyController

__version__ = "0.1.0"

__all__ = [
    "AutonomyMode",
    "RiskLevel",
    "Verdict",
    "AutonomyConfig",
    "load_autonomy_config",
    "classify_action",
    "is_destructive_shell_command",
    "AutonomyController",
]
