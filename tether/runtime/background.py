# tether/runtime/background.py
from __future__ import annotations
import logging
from typing import Optional

from tether.schemas.requests import BackgroundAdmission, ToolCompletion, ToolExecution
from tether.schemas.state import BackgroundAction, SessionAutonomyState
from tether.autonomy.registry import ModeRegistry

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


class BackgroundConcurrencyLimiter:
    """
    Soft cap on running background actions per session.

    Going over the effective mode's cap only produces a warning
    (capacity_exceeded on the admission); execution is never blocked.
    """

    def __init__(self, registry: ModeRegistry):
        self.registry = registry

    def admit(self, state: SessionAutonomyState, execution: ToolExecution) -> BackgroundAdmission:
        if not execution.background:
            return BackgroundAdmission(call_id=execution.call_id)

        mode = state.effective_mode()
        limit = self.registry.max_background(mode)
        running = len(state.running_background())
        exceeded = running >= limit

        if exceeded:
            logger.warning(
                "Background action limit reached (%d running, max %d)",
                running,
                limit,
                extra={
                    "conversation_id": state.conversation_id,
                    "call_id": execution.call_id,
                    "action": execution.action,
                    "mode": mode.value,
                },
            )

        # a call id is tracked once; finished entries are never reopened
        if execution.call_id not in state.background_actions:
            state.background_actions[execution.call_id] = BackgroundAction(
                call_id=execution.call_id,
                action=execution.action,
            )
            running += 1

        return BackgroundAdmission(
            call_id=execution.call_id,
            admitted=True,
            tracked=True,
            capacity_exceeded=exceeded,
            running=running,
            limit=limit,
        )

    def complete(self, state: SessionAutonomyState, completion: ToolCompletion) -> Optional[BackgroundAction]:
        entry = state.background_actions.get(completion.call_id)
        if entry is None:
            # started before this session record existed
            return None
        if not entry.finish(errored=completion.errored):
            return None
        logger.debug(
            "Background action %s finished as %s in %.3fs",
            entry.action,
            entry.status.value,
            entry.duration or 0.0,
            extra={"conversation_id": state.conversation_id, "call_id": completion.call_id},
        )
        return entry
