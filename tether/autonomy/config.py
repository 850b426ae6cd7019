# tether/autonomy/config.py
from __future__ import annotations
import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from tether.schemas.mode import AutonomyMode, ModeProfile, RiskLevel
from tether.schemas.state import HISTORY_LIMIT

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

CONFIG_ENV_VAR = "TETHER_AUTONOMY_CONFIG"
DEFAULT_CONFIG_PATH = Path("~/.config/tether/autonomy.json")


class ConfigError(Exception):
    pass


DEFAULT_CONFIG: Dict[str, Any] = {
    "default_mode": "balanced",
    "modes": {
        "permissive": {
            "label": "Permissive",
            "emoji": "🚀",
            "planning_approval": False,
            "approval_gates": "Minimal",
            "background_enabled": True,
            "max_concurrent_background": 10,
            "temperature_multiplier": 1.2,
            "description": "High autonomy for rapid prototyping and exploration",
        },
        "balanced": {
            "label": "Balanced",
            "emoji": "⚖️",
            "planning_approval": True,
            "approval_gates": "Standard workflow",
            "background_enabled": True,
            "max_concurrent_background": 5,
            "temperature_multiplier": 1.0,
            "description": "Balanced mode with planning approval and autonomous execution",
        },
        "restrictive": {
            "label": "Restrictive",
            "emoji": "🛡️",
            "planning_approval": True,
            "approval_gates": "Maximum (every action)",
            "background_enabled": False,
            "max_concurrent_background": 0,
            "temperature_multiplier": 0.8,
            "description": "Maximum oversight for production and critical operations",
        },
    },
    "keywords": {
        "permissive": ["ultrawork", "ulw", "quick", "fast"],
        "restrictive": ["careful", "verify", "safe", "production"],
    },
    "risk_tiers": {
        "high": ["write", "edit", "bash", "delete", "execute", "commit", "patch"],
        "medium": ["task", "fetch", "search", "ask"],
        "low": ["read", "list", "grep", "glob", "search_files"],
    },
    "shell_actions": ["bash"],
    "planning_actions": {"task": {"type": "plan"}},
    "history_limit": HISTORY_LIMIT,
}


def _normalize_names(values: List[str]) -> List[str]:
    out: List[str] = []
    for v in values or []:
        if not isinstance(v, str):
            raise ValueError(f"expected a string, got {type(v).__name__}")
        name = v.strip().lower()
        if name and name not in out:
            out.append(name)
    return out


class KeywordTriggers(BaseModel):
    permissive: List[str] = Field(default_factory=list)
    restrictive: List[str] = Field(default_factory=list)

    model_config = {"extra": "forbid", "frozen": True}

    @field_validator("permissive", "restrictive", mode="before")
    @classmethod
    def _normalize(cls, v):
        return _normalize_names(v)

    @model_validator(mode="after")
    def _disjoint(self):
        shared = set(self.permissive) & set(self.restrictive)
        if shared:
            raise ValueError(f"keyword groups overlap: {sorted(shared)}")
        return self


class RiskTiers(BaseModel):
    high: List[str] = Field(default_factory=list)
    medium: List[str] = Field(default_factory=list)
    low: List[str] = Field(default_factory=list)

    model_config = {"extra": "forbid", "frozen": True}

    @field_validator("high", "medium", "low", mode="before")
    @classmethod
    def _normalize(cls, v):
        return _normalize_names(v)

    def as_lookup(self) -> Dict[str, RiskLevel]:
        """action name -> tier; when a name is listed twice the riskier tier wins."""
        lookup: Dict[str, RiskLevel] = {}
        for level, names in ((RiskLevel.LOW, self.low), (RiskLevel.MEDIUM, self.medium), (RiskLevel.HIGH, self.high)):
            for n in names:
                lookup[n] = level
        return lookup


class AutonomyConfig(BaseModel):
    """
    Fully resolved autonomy configuration. Built once at startup; nothing
    downstream re-checks for missing keys.
    """
    default_mode: AutonomyMode = AutonomyMode.BALANCED
    modes: Dict[AutonomyMode, ModeProfile]
    keywords: KeywordTriggers
    risk_tiers: RiskTiers
    shell_actions: List[str] = Field(default_factory=lambda: ["bash"])
    planning_actions: Dict[str, Dict[str, str]] = Field(default_factory=dict)
    history_limit: int = Field(HISTORY_LIMIT, ge=1, le=HISTORY_LIMIT)

    model_config = {"extra": "forbid", "frozen": True}

    @field_validator("default_mode", mode="before")
    @classmethod
    def _parse_mode(cls, v):
        return AutonomyMode.parse(v)

    @field_validator("shell_actions", mode="before")
    @classmethod
    def _normalize_shell(cls, v):
        return _normalize_names(v)

    @field_validator("planning_actions", mode="before")
    @classmethod
    def _normalize_planning(cls, v):
        if not isinstance(v, dict):
            raise ValueError("planning_actions must be an object")
        return {str(k).strip().lower(): dict(m or {}) for k, m in v.items()}

    @model_validator(mode="after")
    def _all_modes_present(self):
        missing = [m.value for m in AutonomyMode if m not in self.modes]
        if missing:
            raise ValueError(f"missing mode profiles: {missing}")
        return self

    @classmethod
    def defaults(cls) -> "AutonomyConfig":
        return cls.model_validate(copy.deepcopy(DEFAULT_CONFIG))

    @classmethod
    def from_overrides(cls, overrides: Dict[str, Any]) -> "AutonomyConfig":
        """Deep-merge a partial document over the built-in defaults and validate it."""
        return cls.model_validate(deep_merge(copy.deepcopy(DEFAULT_CONFIG), overrides))

    def profile(self, mode: AutonomyMode) -> ModeProfile:
        return self.modes[mode]


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def resolve_config_path(path: Optional[Union[str, Path]] = None) -> Path:
    if path:
        return Path(path).expanduser()
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_CONFIG_PATH.expanduser()


def _read_document(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as fh:
            raw = json.load(fh)
    except json.JSONDecodeError as e:
        raise ConfigError(f"malformed JSON in {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"cannot read {path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"{path} must contain a JSON object")
    # accept both {"autonomy": {...}} and a bare document
    doc = raw.get("autonomy", raw)
    if not isinstance(doc, dict):
        raise ConfigError(f"'autonomy' section in {path} must be an object")
    return doc


def load_autonomy_config(path: Optional[Union[str, Path]] = None) -> AutonomyConfig:
    """
    Load the autonomy configuration document.

    Lookup order: explicit path, $TETHER_AUTONOMY_CONFIG, ~/.config/tether/autonomy.json.
    A missing document is normal; a malformed one is logged. Both fall back to
    built-in defaults and never abort startup.
    """
    cfg_path = resolve_config_path(path)
    if not cfg_path.exists():
        logger.info("No autonomy config at %s, using defaults", cfg_path)
        return AutonomyConfig.defaults()

    try:
        doc = _read_document(cfg_path)
        config = AutonomyConfig.from_overrides(doc)
    except ConfigError as e:
        logger.warning("Invalid autonomy config, using defaults: %s", e)
        return AutonomyConfig.defaults()
    except ValidationError as e:
        logger.warning("Autonomy config failed validation, using defaults: %s", e.errors()[:3])
        return AutonomyConfig.defaults()

    logger.info("Autonomy config loaded from %s", cfg_path)
    return config
