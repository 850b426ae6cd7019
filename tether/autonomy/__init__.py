# tether/autonomy/__init__.py
from .config import AutonomyConfig, ConfigError, load_autonomy_config
from .registry import ModeRegistry
from .resolution import ModeResolver
from .task_classifier import TaskClassification, TaskClassifier

__all__ = [
    "AutonomyConfig",
    "ConfigError",
    "load_autonomy_config",
    "ModeRegistry",
    "ModeResolver",
    "TaskClassification",
    "TaskClassifier",
]
