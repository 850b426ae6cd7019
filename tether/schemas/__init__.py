# tether/schemas/__init__.py
from .mode import AutonomyMode, InvalidModeError, ModeProfile, OverrideSource, RiskLevel, Verdict
from .state import (
    HISTORY_LIMIT,
    ApprovalRecord,
    BackgroundAction,
    BackgroundStatus,
    PendingApproval,
    SessionAutonomyState,
    SessionMetrics,
)
from .requests import (
    BackgroundAdmission,
    OperationResult,
    PermissionDecision,
    PermissionRequest,
    ToolCompletion,
    ToolExecution,
)

__all__ = [
    "AutonomyMode",
    "InvalidModeError",
    "ModeProfile",
    "OverrideSource",
    "RiskLevel",
    "Verdict",
    "HISTORY_LIMIT",
    "ApprovalRecord",
    "BackgroundAction",
    "BackgroundStatus",
    "PendingApproval",
    "SessionAutonomyState",
    "SessionMetrics",
    "BackgroundAdmission",
    "OperationResult",
    "PermissionDecision",
    "PermissionRequest",
    "ToolCompletion",
    "ToolExecution",
]
