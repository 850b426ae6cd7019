# tether/schemas/mode.py
from __future__ import annotations
from typing import Any, Dict, List
from enum import Enum
from pydantic import BaseModel, Field


class InvalidModeError(ValueError):
    pass


class AutonomyMode(str, Enum):
    PERMISSIVE = "permissive"
    BALANCED = "balanced"
    RESTRICTIVE = "restrictive"

    @classmethod
    def values(cls) -> List[str]:
        return [m.value for m in cls]

    @classmethod
    def parse(cls, value: Any) -> "AutonomyMode":
        """
        Normalize a user/config supplied mode name.
        Accepts an AutonomyMode or a case-insensitive string; raises InvalidModeError otherwise.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise InvalidModeError(
            f"Invalid mode '{value}'. Valid modes: {', '.join(cls.values())}"
        )


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Verdict(str, Enum):
    ALLOW = "allow"
    ASK = "ask"


class OverrideSource(str, Enum):
    MESSAGE = "message"
    SESSION = "session"
    DEFAULT = "default"


class ModeProfile(BaseModel):
    """
    Per-mode settings. Read-only once the configuration has been loaded.

    temperature_multiplier is only ever handed back to the host as a sampling hint.
    """
    label: str
    emoji: str = ""
    planning_approval: bool = True
    approval_gates: str = ""
    background_enabled: bool = True
    max_concurrent_background: int = Field(5, ge=0)
    temperature_multiplier: float = Field(1.0, gt=0.0)
    description: str = ""

    model_config = {"extra": "forbid", "frozen": True}

    @property
    def allows_background(self) -> bool:
        return self.background_enabled and self.max_concurrent_background > 0

    def summary(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "planning_approval": self.planning_approval,
            "approval_gates": self.approval_gates,
            "background_enabled": self.allows_background,
            "max_concurrent_background": self.max_concurrent_background,
            "temperature_multiplier": self.temperature_multiplier,
            "description": self.description,
        }
