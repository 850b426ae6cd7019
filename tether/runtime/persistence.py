# tether/runtime/persistence.py
from __future__ import annotations
import asyncio
import json
import logging
import os
from urllib.parse import quote
from typing import Any, Dict, Optional

from pydantic import ValidationError

from tether.schemas.state import SessionAutonomyState

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

DEFAULT_STATE_DIR = os.path.join(".tether", "state", "autonomy")
RECORD_VERSION = 1


class PersistenceError(Exception):
    pass


# -------------------------
# Record codec
# -------------------------
def encode_state(state: SessionAutonomyState) -> Dict[str, Any]:
    """
    Durable form of a session: mappings become ordered [key, value] pair lists
    so the record stays plain JSON and keeps insertion order.
    """
    data = state.model_dump(mode="json")
    data["pending_approvals"] = [[cid, entry] for cid, entry in data["pending_approvals"].items()]
    data["background_actions"] = [[cid, entry] for cid, entry in data["background_actions"].items()]
    data["_version"] = RECORD_VERSION
    return data


def decode_state(data: Dict[str, Any]) -> SessionAutonomyState:
    payload = dict(data)
    payload.pop("_version", None)
    payload["pending_approvals"] = _pairs_to_dict(payload.get("pending_approvals", []))
    payload["background_actions"] = _pairs_to_dict(payload.get("background_actions", []))
    return SessionAutonomyState.model_validate(payload)


def _pairs_to_dict(pairs: Any) -> Dict[str, Any]:
    if isinstance(pairs, dict):
        return dict(pairs)
    out: Dict[str, Any] = {}
    for item in pairs or []:
        if not isinstance(item, (list, tuple)) or len(item) != 2:
            raise ValueError(f"expected [key, value] pair, got {item!r}")
        out[str(item[0])] = item[1]
    return out


# -------------------------
# Storage Adapter Interface
# -------------------------
class StorageAdapter:
    """
    Minimal storage interface for per-conversation records.
    load() returns None when no record exists; every other failure raises PersistenceError.
    """

    def load(self, conversation_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError()

    def save(self, conversation_id: str, data: Dict[str, Any]) -> None:
        raise NotImplementedError()


class JsonFileStorageAdapter(StorageAdapter):
    """One JSON document per conversation under state_dir, written atomically."""

    def __init__(self, state_dir: str = DEFAULT_STATE_DIR):
        self.state_dir = state_dir

    def path_for(self, conversation_id: str) -> str:
        # percent-encoding is reversible, so distinct ids never share a file
        return os.path.join(self.state_dir, f"{quote(conversation_id, safe='')}.json")

    def load(self, conversation_id: str) -> Optional[Dict[str, Any]]:
        path = self.path_for(conversation_id)
        try:
            with open(path, "r", encoding="utf-8") as fh:
                raw = json.load(fh)
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"failed reading {path}: {e}") from e
        if not isinstance(raw, dict):
            raise PersistenceError(f"{path} does not contain a JSON object")
        return raw

    def save(self, conversation_id: str, data: Dict[str, Any]) -> None:
        path = self.path_for(conversation_id)
        tmp = f"{path}.tmp"
        try:
            os.makedirs(self.state_dir, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as fh:
                json.dump(data, fh, ensure_ascii=False, indent=2)
            os.replace(tmp, path)
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f"failed writing {path}: {e}") from e


class InMemoryStorageAdapter(StorageAdapter):
    """Keeps encoded records in a dict; records round-trip through JSON like the file adapter."""

    def __init__(self):
        self._records: Dict[str, str] = {}

    def load(self, conversation_id: str) -> Optional[Dict[str, Any]]:
        raw = self._records.get(conversation_id)
        return json.loads(raw) if raw is not None else None

    def save(self, conversation_id: str, data: Dict[str, Any]) -> None:
        try:
            self._records[conversation_id] = json.dumps(data, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise PersistenceError(str(e)) from e


# -------------------------
# Async persistence facade
# -------------------------
class StatePersistence:
    """
    Async wrapper used by the controller. Storage I/O runs in the default
    executor and is awaited before the calling hook returns.

    Failures are logged and reported as None/False; the in-memory state stays
    authoritative for the current process.
    """

    def __init__(self, adapter: Optional[StorageAdapter] = None):
        self.adapter = adapter or JsonFileStorageAdapter()

    async def load(self, conversation_id: str) -> Optional[SessionAutonomyState]:
        loop = asyncio.get_running_loop()
        try:
            raw = await loop.run_in_executor(None, self.adapter.load, conversation_id)
        except PersistenceError:
            logger.exception("Failed loading autonomy state", extra={"conversation_id": conversation_id})
            return None
        if raw is None:
            # brand-new conversation
            return None
        try:
            state = decode_state(raw)
        except (ValidationError, ValueError, TypeError):
            logger.exception("Stored autonomy state is invalid; using defaults", extra={"conversation_id": conversation_id})
            return None
        if state.conversation_id != conversation_id:
            logger.warning(
                "Stored record belongs to conversation %r; ignoring it",
                state.conversation_id,
                extra={"conversation_id": conversation_id},
            )
            return None
        return state

    async def save(self, state: SessionAutonomyState) -> bool:
        data = encode_state(state)
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self.adapter.save, state.conversation_id, data)
        except PersistenceError:
            logger.exception("Failed persisting autonomy state", extra={"conversation_id": state.conversation_id})
            return False
        return True
