# tether/runtime/outcome_tracker.py
from __future__ import annotations
import logging
from typing import Optional

from tether.schemas.requests import ToolCompletion
from tether.schemas.state import HISTORY_LIMIT, ApprovalRecord, SessionAutonomyState

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


class ApprovalOutcomeTracker:
    """
    Reconciles gated (ask) actions once they finish.

    Only call ids still in pending_approvals are tracked, so allowed actions
    never reach the approval history. Reporting the same call id twice is a no-op.
    """

    def __init__(self, history_limit: int = HISTORY_LIMIT):
        self.history_limit = min(history_limit, HISTORY_LIMIT)

    def record(self, state: SessionAutonomyState, completion: ToolCompletion) -> Optional[ApprovalRecord]:
        pending = state.pending_approvals.pop(completion.call_id, None)
        if pending is None:
            return None

        approved = not completion.errored
        if approved:
            state.metrics.approvals_granted += 1
        else:
            state.metrics.actions_blocked += 1

        entry = ApprovalRecord(
            action=completion.action or pending.action,
            approved=approved,
            mode=pending.mode,
        )
        state.append_history(entry, self.history_limit)
        state.touch()

        logger.info(
            "Approval outcome: %s %s",
            entry.action,
            "granted" if approved else "blocked",
            extra={
                "conversation_id": state.conversation_id,
                "call_id": completion.call_id,
                "action": entry.action,
                "mode": entry.mode.value,
            },
        )
        return entry
