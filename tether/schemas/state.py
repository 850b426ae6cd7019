# tether/schemas/state.py
from __future__ import annotations
from typing import Dict, List, Optional
from enum import Enum
import time

from pydantic import BaseModel, Field

from .mode import AutonomyMode, OverrideSource

HISTORY_LIMIT = 50


def _now() -> float:
    return time.time()


class BackgroundStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


class BackgroundAction(BaseModel):
    call_id: str
    action: str
    status: BackgroundStatus = BackgroundStatus.RUNNING
    started_at: float = Field(default_factory=_now)
    ended_at: Optional[float] = None

    model_config = {"extra": "forbid"}

    @property
    def is_running(self) -> bool:
        return self.status == BackgroundStatus.RUNNING

    def finish(self, errored: bool, at: Optional[float] = None) -> bool:
        """
        Move running -> completed|error. Terminal entries are left untouched.
        Returns True if the transition happened.
        """
        if not self.is_running:
            return False
        self.status = BackgroundStatus.ERROR if errored else BackgroundStatus.COMPLETED
        self.ended_at = at if at is not None else _now()
        return True

    @property
    def duration(self) -> Optional[float]:
        if self.ended_at is None:
            return None
        return self.ended_at - self.started_at


class PendingApproval(BaseModel):
    action: str
    mode: AutonomyMode
    requested_at: float = Field(default_factory=_now)

    model_config = {"extra": "forbid"}


class ApprovalRecord(BaseModel):
    timestamp: float = Field(default_factory=_now)
    action: str
    approved: bool
    mode: AutonomyMode

    model_config = {"extra": "forbid"}


class SessionMetrics(BaseModel):
    approvals_requested: int = 0
    approvals_granted: int = 0
    actions_blocked: int = 0
    mode_changes: int = 0

    model_config = {"extra": "forbid"}

    @property
    def approval_rate(self) -> int:
        if self.approvals_requested <= 0:
            return 0
        return round(self.approvals_granted * 100 / self.approvals_requested)


class SessionAutonomyState(BaseModel):
    """
    Mutable autonomy record for a single conversation.

    pending_approvals and background_actions are keyed by call id; both keep
    insertion order, which is preserved through persistence.
    """
    conversation_id: str
    current_mode: AutonomyMode
    default_mode: AutonomyMode
    session_override: Optional[AutonomyMode] = None
    message_override: Optional[AutonomyMode] = None
    max_concurrent_background: int = 0

    pending_approvals: Dict[str, PendingApproval] = Field(default_factory=dict)
    background_actions: Dict[str, BackgroundAction] = Field(default_factory=dict)
    approval_history: List[ApprovalRecord] = Field(default_factory=list)
    metrics: SessionMetrics = Field(default_factory=SessionMetrics)

    created: float = Field(default_factory=_now)
    last_mode_change: float = Field(default_factory=_now)
    last_activity: float = Field(default_factory=_now)

    model_config = {"extra": "forbid"}

    @classmethod
    def fresh(cls, conversation_id: str, default_mode: AutonomyMode, max_concurrent_background: int = 0) -> "SessionAutonomyState":
        now = _now()
        return cls(
            conversation_id=conversation_id,
            current_mode=default_mode,
            default_mode=default_mode,
            max_concurrent_background=max_concurrent_background,
            created=now,
            last_mode_change=now,
            last_activity=now,
        )

    # -------------------------
    # Mode helpers
    # -------------------------
    def effective_mode(self) -> AutonomyMode:
        return self.message_override or self.session_override or self.default_mode

    def override_source(self) -> OverrideSource:
        if self.message_override is not None:
            return OverrideSource.MESSAGE
        if self.session_override is not None:
            return OverrideSource.SESSION
        return OverrideSource.DEFAULT

    # -------------------------
    # Background helpers
    # -------------------------
    def running_background(self) -> List[BackgroundAction]:
        return [b for b in self.background_actions.values() if b.is_running]

    # -------------------------
    # History
    # -------------------------
    def append_history(self, record: ApprovalRecord, limit: int = HISTORY_LIMIT) -> None:
        limit = min(limit, HISTORY_LIMIT)
        self.approval_history.append(record)
        overflow = len(self.approval_history) - limit
        if overflow > 0:
            # oldest first
            del self.approval_history[:overflow]

    def touch(self) -> None:
        self.last_activity = _now()
