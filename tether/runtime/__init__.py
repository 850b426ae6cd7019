"""
Runtime package for tether
Exports: AutonomyController, SessionStore, StatePersistence and the storage adapters
"""
from .session_store import SessionStore
from .persistence import (
    InMemoryStorageAdapter,
    JsonFileStorageAdapter,
    PersistenceError,
    StatePersistence,
    StorageAdapter,
    decode_state,
    encode_state,
)
from .outcome_tracker import ApprovalOutcomeTracker
from .background import BackgroundConcurrencyLimiter
from .controller import AutonomyController

__all__ = [
    "SessionStore",
    "InMemoryStorageAdapter",
    "JsonFileStorageAdapter",
    "PersistenceError",
    "StatePersistence",
    "StorageAdapter",
    "decode_state",
    "encode_state",
    "ApprovalOutcomeTracker",
    "BackgroundConcurrencyLimiter",
    "AutonomyController",
]
