# tether/policy/engine.py
from __future__ import annotations
import logging
from typing import Any, Dict, Optional

from tether.schemas.mode import AutonomyMode, RiskLevel, Verdict
from tether.schemas.requests import PermissionDecision, PermissionRequest
from tether.schemas.state import PendingApproval, SessionAutonomyState
from tether.autonomy.config import AutonomyConfig
from tether.autonomy.resolution import ModeResolver
from .risk import RiskClassifier

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


class PermissionDecisionEngine:
    """
    Turns (effective mode, action) into an allow/ask verdict.

    Decision table, first match wins:

      permissive   shell + destructive command      -> ask
                   anything else                    -> allow
      balanced     planning sub-type                -> ask
                   high risk                        -> ask
                   shell + destructive command      -> ask
                   anything else                    -> allow
      restrictive  low risk (read-only)             -> allow
                   anything else                    -> ask

    The table never denies outright; rejection is a human answering an ask.
    Any mode outside the three known values gets ask.
    """

    def __init__(self, classifier: Optional[RiskClassifier] = None, planning_actions: Optional[Dict[str, Dict[str, str]]] = None, resolver: Optional[ModeResolver] = None):
        if classifier is None or planning_actions is None:
            defaults = AutonomyConfig.defaults()
            classifier = classifier or RiskClassifier.from_config(defaults)
            planning_actions = planning_actions if planning_actions is not None else defaults.planning_actions
        self.classifier = classifier
        self.planning_actions = {k.lower(): dict(v) for k, v in planning_actions.items()}
        self.resolver = resolver

    @classmethod
    def from_config(cls, config: AutonomyConfig, resolver: Optional[ModeResolver] = None) -> "PermissionDecisionEngine":
        return cls(RiskClassifier.from_config(config), config.planning_actions, resolver)

    # -------------------------
    # Pure evaluation
    # -------------------------
    def is_planning(self, action: str, args: Dict[str, Any]) -> bool:
        marker = self.planning_actions.get((action or "").strip().lower())
        if not marker:
            return False
        for key, expected in marker.items():
            value = args.get(key)
            if not isinstance(value, str) or value.strip().lower() != str(expected).lower():
                return False
        return True

    def evaluate(self, mode: Any, request: PermissionRequest) -> PermissionDecision:
        action = request.action
        risk = self.classifier.classify(action)
        destructive = self.classifier.is_destructive(action, request.command)

        def verdict(v: Verdict, reason: str, m: Optional[AutonomyMode]) -> PermissionDecision:
            return PermissionDecision(verdict=v, reason=reason, mode=m, risk=risk, destructive=destructive)

        try:
            mode = AutonomyMode.parse(mode)
        except ValueError:
            logger.warning("Unknown autonomy mode %r; asking", mode, extra={"call_id": request.call_id})
            return verdict(Verdict.ASK, "unknown_mode", None)

        if mode == AutonomyMode.PERMISSIVE:
            if destructive:
                return verdict(Verdict.ASK, "permissive_destructive_shell", mode)
            return verdict(Verdict.ALLOW, "permissive_default_allow", mode)

        if mode == AutonomyMode.BALANCED:
            if self.is_planning(action, request.args):
                return verdict(Verdict.ASK, "balanced_planning_approval", mode)
            if risk == RiskLevel.HIGH:
                return verdict(Verdict.ASK, "balanced_high_risk", mode)
            if destructive:
                return verdict(Verdict.ASK, "balanced_destructive_shell", mode)
            return verdict(Verdict.ALLOW, f"balanced_{risk.value}_risk_allow", mode)

        # restrictive
        if risk == RiskLevel.LOW:
            return verdict(Verdict.ALLOW, "restrictive_read_only", mode)
        return verdict(Verdict.ASK, "restrictive_default_ask", mode)

    # -------------------------
    # Stateful decision
    # -------------------------
    def decide(self, state: SessionAutonomyState, request: PermissionRequest) -> PermissionDecision:
        """
        Evaluate against the session's effective mode. An ask registers the call
        id as pending and counts one approval request; allow touches nothing.
        """
        if self.resolver is not None:
            mode = self.resolver.refresh(state)
        else:
            mode = state.effective_mode()
            state.current_mode = mode

        decision = self.evaluate(mode, request)

        if decision.verdict == Verdict.ASK and request.call_id not in state.pending_approvals:
            state.pending_approvals[request.call_id] = PendingApproval(
                action=request.action,
                mode=decision.mode or mode,
            )
            state.metrics.approvals_requested += 1

        logger.debug(
            "Permission %s for %s (%s)",
            decision.verdict.value,
            request.action,
            decision.reason,
            extra={
                "conversation_id": request.conversation_id,
                "call_id": request.call_id,
                "action": request.action,
                "mode": mode.value,
                "verdict": decision.verdict.value,
                "reason": decision.reason,
            },
        )
        return decision
