# tether/runtime/session_store.py
from __future__ import annotations
from typing import Dict, Optional

from tether.schemas.state import SessionAutonomyState


class SessionStore:
    """
    In-memory map of conversation id -> SessionAutonomyState, owned by one controller.

    No locking: the host must deliver callbacks for a given conversation one at
    a time. Different conversations never share a record.
    """

    def __init__(self):
        self._sessions: Dict[str, SessionAutonomyState] = {}

    def get(self, conversation_id: str) -> Optional[SessionAutonomyState]:
        return self._sessions.get(conversation_id)

    def put(self, state: SessionAutonomyState) -> SessionAutonomyState:
        self._sessions[state.conversation_id] = state
        return state

    def drop(self, conversation_id: str) -> Optional[SessionAutonomyState]:
        return self._sessions.pop(conversation_id, None)
