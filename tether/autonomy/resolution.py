# tether/autonomy/resolution.py
from __future__ import annotations
import logging
import time
from typing import Optional

from tether.schemas.mode import AutonomyMode
from tether.schemas.state import SessionAutonomyState
from .registry import ModeRegistry

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


class ModeResolver:
    """
    Applies the three-tier override priority to a session:

        message override  >  session override  >  default mode

    The message override lives for exactly one message; the session override
    lives until it is changed or cleared.
    """

    def __init__(self, registry: ModeRegistry):
        self.registry = registry

    def refresh(self, state: SessionAutonomyState) -> AutonomyMode:
        mode = state.effective_mode()
        state.current_mode = mode
        state.max_concurrent_background = self.registry.max_background(mode)
        return mode

    def resolve_message(self, state: SessionAutonomyState, text: Optional[str]) -> str:
        """
        Start-of-message step. Resets the message override, applies a keyword
        trigger if the message starts with one and returns the text to pass on
        (trigger prefix stripped).
        """
        state.message_override = None
        out = text or ""

        match = self.registry.match_trigger(out)
        if match:
            mode, keyword, remaining = match
            state.message_override = mode
            out = remaining
            logger.info(
                "Keyword '%s' -> %s for this message",
                keyword,
                mode.value,
                extra={"conversation_id": state.conversation_id, "mode": mode.value},
            )

        self.refresh(state)
        state.touch()
        return out

    def set_session_override(self, state: SessionAutonomyState, mode: AutonomyMode) -> AutonomyMode:
        state.session_override = mode
        # an explicit command outranks whatever keyword started the current message
        state.message_override = None
        self._record_change(state)
        return self.refresh(state)

    def clear_session_override(self, state: SessionAutonomyState) -> AutonomyMode:
        if state.session_override is None:
            return self.refresh(state)
        state.session_override = None
        self._record_change(state)
        return self.refresh(state)

    def _record_change(self, state: SessionAutonomyState) -> None:
        now = time.time()
        state.metrics.mode_changes += 1
        state.last_mode_change = now
        state.last_activity = now
