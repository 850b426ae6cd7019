# tether/runtime/controller.py
from __future__ import annotations
import logging
from typing import Any, Dict, Optional, Union
from pathlib import Path

from pydantic import ValidationError

from tether.schemas.mode import AutonomyMode, InvalidModeError, Verdict
from tether.schemas.requests import (
    BackgroundAdmission,
    OperationResult,
    PermissionDecision,
    PermissionRequest,
    ToolCompletion,
    ToolExecution,
)
from tether.schemas.state import ApprovalRecord, SessionAutonomyState
from tether.autonomy.config import AutonomyConfig, load_autonomy_config
from tether.autonomy.registry import ModeRegistry
from tether.autonomy.resolution import ModeResolver
from tether.autonomy.task_classifier import TaskClassification, TaskClassifier
from tether.policy.engine import PermissionDecisionEngine
from tether.observability import metrics as m
from tether.observability.metrics import MetricsRegistry
from tether.formatting import format_current_mode, format_detailed_status, format_mode_change
from .background import BackgroundConcurrencyLimiter
from .outcome_tracker import ApprovalOutcomeTracker
from .persistence import JsonFileStorageAdapter, StatePersistence, StorageAdapter
from .session_store import SessionStore

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

DEFAULT_TEMPERATURE = 0.7
MIN_TEMPERATURE = 0.1
MAX_TEMPERATURE = 1.0

CONTROL_ACTIONS = ("set", "get", "status")


class AutonomyController:
    """
    Host-facing facade. One instance owns the session store, the persistence
    layer and the decision components; each host extension point maps to one
    coroutine here:

      permission check    -> check_permission
      message preprocess  -> preprocess_message
      tool pre-execute    -> before_tool
      tool post-execute   -> after_tool
      lifecycle           -> conversation_created / conversation_destroyed
      command surface     -> set_mode / clear_mode / get_mode / get_status / dispatch_control

    Precondition: callbacks for one conversation are delivered sequentially.
    """

    def __init__(self, config: Optional[AutonomyConfig] = None, storage: Optional[StorageAdapter] = None, state_dir: Optional[str] = None):
        self.config = config or AutonomyConfig.defaults()
        self.registry = ModeRegistry(self.config)
        self.resolver = ModeResolver(self.registry)
        self.engine = PermissionDecisionEngine.from_config(self.config, resolver=self.resolver)
        self.tracker = ApprovalOutcomeTracker(self.config.history_limit)
        self.limiter = BackgroundConcurrencyLimiter(self.registry)
        self.task_classifier = TaskClassifier()
        self.sessions = SessionStore()
        if storage is None:
            storage = JsonFileStorageAdapter(state_dir) if state_dir else JsonFileStorageAdapter()
        self.persistence = StatePersistence(storage)
        self.metrics = MetricsRegistry()

    @classmethod
    def from_config_file(cls, path: Optional[Union[str, Path]] = None, state_dir: Optional[str] = None) -> "AutonomyController":
        return cls(load_autonomy_config(path), state_dir=state_dir)

    # -------------------------
    # State helpers
    # -------------------------
    def _new_state(self, conversation_id: str) -> SessionAutonomyState:
        mode = self.registry.default_mode
        return SessionAutonomyState.fresh(conversation_id, mode, self.registry.max_background(mode))

    async def _state(self, conversation_id: str) -> SessionAutonomyState:
        """In-memory record, else the durable one, else a fresh one (not persisted here)."""
        state = self.sessions.get(conversation_id)
        if state is not None:
            return state
        state = await self.persistence.load(conversation_id)
        if state is None:
            state = self._new_state(conversation_id)
            self.metrics.counter(m.SESSIONS_CREATED).inc()
        else:
            self.metrics.counter(m.SESSIONS_RESTORED).inc()
        self.resolver.refresh(state)
        return self.sessions.put(state)

    async def _persist(self, state: SessionAutonomyState) -> bool:
        ok = await self.persistence.save(state)
        if not ok:
            self.metrics.counter(m.PERSISTENCE_FAILURES).inc()
        return ok

    def _rejected(self, hook: str, error: ValidationError, conversation_id: Any, call_id: Any, action: Any) -> None:
        # malformed host input leaves state untouched
        self.metrics.counter(m.HOOK_REJECTED).inc()
        logger.warning(
            "Ignoring malformed %s call: %s",
            hook,
            "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in error.errors()),
            extra={"conversation_id": conversation_id, "call_id": call_id, "action": action},
        )

    def state(self, conversation_id: str) -> Optional[SessionAutonomyState]:
        return self.sessions.get(conversation_id)

    # -------------------------
    # Lifecycle
    # -------------------------
    async def conversation_created(self, conversation_id: str) -> SessionAutonomyState:
        existing = self.sessions.get(conversation_id)
        if existing is not None:
            return existing

        restored = await self.persistence.load(conversation_id)
        if restored is not None:
            self.resolver.refresh(restored)
            self.sessions.put(restored)
            self.metrics.counter(m.SESSIONS_RESTORED).inc()
            logger.info(
                "Autonomy state restored (mode %s)",
                restored.current_mode.value,
                extra={"conversation_id": conversation_id, "mode": restored.current_mode.value},
            )
            return restored

        state = self.sessions.put(self._new_state(conversation_id))
        self.metrics.counter(m.SESSIONS_CREATED).inc()
        await self._persist(state)
        logger.info(
            "Autonomy state initialized (default %s)",
            state.default_mode.value,
            extra={"conversation_id": conversation_id, "mode": state.default_mode.value},
        )
        return state

    async def conversation_destroyed(self, conversation_id: str) -> Optional[SessionAutonomyState]:
        """Drop the in-memory record; the durable copy is left alone."""
        state = self.sessions.drop(conversation_id)
        if state is not None:
            stats = state.metrics
            logger.info(
                "Session closed: mode changes=%d approvals=%d/%d blocked=%d",
                stats.mode_changes,
                stats.approvals_granted,
                stats.approvals_requested,
                stats.actions_blocked,
                extra={"conversation_id": conversation_id},
            )
        return state

    def touch(self, conversation_id: str) -> None:
        state = self.sessions.get(conversation_id)
        if state is not None:
            state.touch()

    # -------------------------
    # Command / query surface
    # -------------------------
    async def set_mode(self, conversation_id: str, target: Any) -> OperationResult:
        if not conversation_id:
            return OperationResult.failure("conversation id is required")
        try:
            mode = AutonomyMode.parse(target)
        except InvalidModeError as e:
            return OperationResult.failure(str(e))

        state = await self._state(conversation_id)
        previous = state.current_mode
        self.resolver.set_session_override(state, mode)
        await self._persist(state)

        logger.info(
            "Mode changed %s -> %s",
            previous.value,
            mode.value,
            extra={"conversation_id": conversation_id, "mode": mode.value},
        )
        settings = self.registry.profile(mode).summary()
        settings["max_concurrent_background"] = state.max_concurrent_background
        return OperationResult(
            ok=True,
            data={"mode": mode.value, "previous_mode": previous.value, "settings": settings},
            message=format_mode_change(state, self.registry),
        )

    async def clear_mode(self, conversation_id: str) -> OperationResult:
        if not conversation_id:
            return OperationResult.failure("conversation id is required")
        state = await self._state(conversation_id)
        had_override = state.session_override is not None
        mode = self.resolver.clear_session_override(state)
        if had_override:
            await self._persist(state)
        return OperationResult(
            ok=True,
            data={"mode": mode.value, "cleared": had_override},
            message=format_current_mode(state, self.registry),
        )

    async def get_mode(self, conversation_id: str) -> OperationResult:
        if not conversation_id:
            return OperationResult.failure("conversation id is required")
        state = await self._state(conversation_id)
        return OperationResult(
            ok=True,
            data={
                "mode": state.current_mode.value,
                "override": state.override_source().value,
                "default_mode": state.default_mode.value,
                "session_override": state.session_override.value if state.session_override else None,
                "message_override": state.message_override.value if state.message_override else None,
            },
            message=format_current_mode(state, self.registry),
        )

    async def get_status(self, conversation_id: str) -> OperationResult:
        if not conversation_id:
            return OperationResult.failure("conversation id is required")
        state = await self._state(conversation_id)
        snapshot = state.model_dump(mode="json")
        snapshot["override"] = state.override_source().value
        snapshot["running_background"] = len(state.running_background())
        snapshot["approval_rate"] = state.metrics.approval_rate
        snapshot["process_metrics"] = self.metrics.snapshot()
        return OperationResult(
            ok=True,
            data=snapshot,
            message=format_detailed_status(state, self.registry),
        )

    async def dispatch_control(self, conversation_id: str, action: Optional[str], mode: Optional[str] = None) -> OperationResult:
        """Entry point for a slash-command / control tool: action is set, get or status."""
        act = (action or "").strip().lower()
        if act == "set":
            if not mode:
                return OperationResult.failure("mode is required when action is 'set'")
            return await self.set_mode(conversation_id, mode)
        if act == "get":
            return await self.get_mode(conversation_id)
        if act == "status":
            return await self.get_status(conversation_id)
        return OperationResult.failure(
            f"Unknown action '{action}'. Valid actions: {', '.join(CONTROL_ACTIONS)}"
        )

    # -------------------------
    # Host callbacks
    # -------------------------
    async def check_permission(self, conversation_id: str, action: str, args: Optional[Dict[str, Any]], call_id: str) -> PermissionDecision:
        """Always returns a verdict; any internal failure yields ask."""
        try:
            request = PermissionRequest(conversation_id=conversation_id, action=action, args=args, call_id=call_id)
            state = await self._state(conversation_id)
            decision = self.engine.decide(state, request)
            self.metrics.counter(m.verdict_counter(decision.verdict.value)).inc()
            if decision.verdict == Verdict.ASK:
                await self._persist(state)
            return decision
        except Exception:
            logger.exception(
                "Permission check failed; defaulting to ask",
                extra={"conversation_id": conversation_id, "call_id": call_id, "action": action},
            )
            self.metrics.counter(m.GATE_ERRORS).inc()
            return PermissionDecision(verdict=Verdict.ASK, reason="internal_error")

    async def preprocess_message(self, conversation_id: str, text: Optional[str]) -> str:
        """Apply keyword overrides for this message and return the text with the trigger stripped."""
        try:
            state = await self._state(conversation_id)
            out = self.resolver.resolve_message(state, text)
        except Exception:
            logger.exception("Message preprocessing failed", extra={"conversation_id": conversation_id})
            return text or ""
        await self._persist(state)
        return out

    async def before_tool(self, conversation_id: str, action: str, call_id: str, background: bool = False) -> BackgroundAdmission:
        try:
            execution = ToolExecution(conversation_id=conversation_id, action=action, call_id=call_id, background=background)
        except ValidationError as e:
            self._rejected("before_tool", e, conversation_id, call_id, action)
            return BackgroundAdmission(call_id=str(call_id or ""))
        if not background:
            return BackgroundAdmission(call_id=call_id)
        state = await self._state(conversation_id)
        admission = self.limiter.admit(state, execution)
        if admission.capacity_exceeded:
            self.metrics.counter(m.BACKGROUND_EXCEEDED).inc()
        self.metrics.gauge(m.BACKGROUND_RUNNING).set(admission.running)
        await self._persist(state)
        return admission

    async def after_tool(self, conversation_id: str, action: str, call_id: str, errored: bool = False) -> Optional[ApprovalRecord]:
        """Reconcile a pending approval (if any) and close a background entry (if any)."""
        try:
            completion = ToolCompletion(conversation_id=conversation_id, action=action, call_id=call_id, errored=errored)
        except ValidationError as e:
            self._rejected("after_tool", e, conversation_id, call_id, action)
            return None
        state = await self._state(conversation_id)

        record = self.tracker.record(state, completion)
        if record is not None:
            self.metrics.counter(m.APPROVALS_GRANTED if record.approved else m.APPROVALS_BLOCKED).inc()

        finished = self.limiter.complete(state, completion)

        if record is not None or finished is not None:
            await self._persist(state)
        return record

    def adjust_temperature(self, conversation_id: str, temperature: Optional[float] = None) -> Optional[float]:
        """Sampling hint for the host: scale by the effective mode's multiplier."""
        state = self.sessions.get(conversation_id)
        if state is None:
            return temperature
        base = DEFAULT_TEMPERATURE if temperature is None else float(temperature)
        multiplier = self.registry.profile(state.current_mode).temperature_multiplier
        if multiplier == 1.0:
            return base
        return min(max(base * multiplier, MIN_TEMPERATURE), MAX_TEMPERATURE)

    def classify_task(self, prompt: Optional[str]) -> TaskClassification:
        return self.task_classifier.classify(prompt)
