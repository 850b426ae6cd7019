# tether/schemas/requests.py
from __future__ import annotations
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field, field_validator

from .mode import AutonomyMode, RiskLevel, Verdict


class _HostCall(BaseModel):
    conversation_id: str = Field(..., min_length=1)
    call_id: str = Field(..., min_length=1)
    action: str = Field(..., min_length=1)

    model_config = {"extra": "forbid"}


class PermissionRequest(_HostCall):
    args: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("args", mode="before")
    @classmethod
    def _none_args(cls, v):
        return {} if v is None else v

    @property
    def command(self) -> Optional[str]:
        cmd = self.args.get("command")
        return cmd if isinstance(cmd, str) else None


class ToolExecution(_HostCall):
    background: bool = False


class ToolCompletion(_HostCall):
    errored: bool = False


class PermissionDecision(BaseModel):
    verdict: Verdict
    reason: str
    mode: Optional[AutonomyMode] = None
    risk: Optional[RiskLevel] = None
    destructive: bool = False

    model_config = {"extra": "forbid"}


class BackgroundAdmission(BaseModel):
    call_id: str
    admitted: bool = True
    tracked: bool = False
    capacity_exceeded: bool = False
    running: int = 0
    limit: int = 0

    model_config = {"extra": "forbid"}


class OperationResult(BaseModel):
    """
    Result envelope for the command/query surface. Bad input never raises;
    it comes back with ok=False and a user-facing error string.
    """
    ok: bool
    error: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    message: str = ""

    model_config = {"extra": "forbid"}

    @classmethod
    def failure(cls, error: str) -> "OperationResult":
        return cls(ok=False, error=error, message=f"Error: {error}")
