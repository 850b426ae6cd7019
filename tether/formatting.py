# tether/formatting.py
from __future__ import annotations
import time
from datetime import datetime
from typing import Optional

from tether.schemas.mode import OverrideSource
from tether.schemas.state import SessionAutonomyState
from tether.autonomy.registry import ModeRegistry

_OVERRIDE_LABELS = {
    OverrideSource.MESSAGE: "Keyword override active",
    OverrideSource.SESSION: "Session override active",
    OverrideSource.DEFAULT: "Using default",
}


def format_duration(seconds: float) -> str:
    total = max(int(seconds), 0)
    minutes, secs = divmod(total, 60)
    hours, minutes = divmod(minutes, 60)
    days, hours = divmod(hours, 24)
    if days > 0:
        return f"{days}d {hours}h"
    if hours > 0:
        return f"{hours}h {minutes}m"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def _ts(value: float, fmt: str = "%Y-%m-%d %H:%M:%S") -> str:
    return datetime.fromtimestamp(value).strftime(fmt)


def format_mode_change(state: SessionAutonomyState, registry: ModeRegistry) -> str:
    mode = state.current_mode
    profile = registry.profile(mode)
    if profile.allows_background:
        background = f"Enabled (max {state.max_concurrent_background} concurrent)"
    else:
        background = "Disabled"
    return (
        f"✅ Mode changed: {mode.value.upper()} {profile.emoji}\n"
        f"\n"
        f"Settings:\n"
        f"- Planning approval: {'Required' if profile.planning_approval else 'Auto-approved'}\n"
        f"- Background tasks: {background}\n"
        f"- Approval gates: {profile.approval_gates}\n"
        f"\n"
        f"{profile.description}"
    )


def format_current_mode(state: SessionAutonomyState, registry: ModeRegistry) -> str:
    profile = registry.profile(state.current_mode)
    return (
        f"Current autonomy mode: {state.current_mode.value.upper()} {profile.emoji}\n"
        f"Override: {_OVERRIDE_LABELS[state.override_source()]}\n"
        f"Background tasks: {len(state.running_background())} running (max {state.max_concurrent_background})"
    )


def format_detailed_status(state: SessionAutonomyState, registry: ModeRegistry, now: Optional[float] = None) -> str:
    now = now if now is not None else time.time()
    profile = registry.profile(state.current_mode)
    running = state.running_background()
    m = state.metrics

    tasks = "\n".join(f"  - {b.action} ({b.call_id})" for b in running) or "  (none)"

    recent = list(reversed(state.approval_history[-5:]))
    history = "\n".join(
        f"  - {h.action}: {'✓ Approved' if h.approved else '✗ Blocked'} [{h.mode.value}] at {_ts(h.timestamp, '%H:%M:%S')}"
        for h in recent
    ) or "  (none)"

    return (
        f"📊 Autonomy Control Status\n"
        f"\n"
        f"Mode: {state.current_mode.value.upper()} {profile.emoji}\n"
        f"Override: {state.override_source().value.capitalize()}\n"
        f"Default: {state.default_mode.value.upper()}\n"
        f"\n"
        f"Background Tasks:\n"
        f"- Running: {len(running)}\n"
        f"- Max concurrent: {state.max_concurrent_background}\n"
        f"{tasks}\n"
        f"\n"
        f"Approval Metrics:\n"
        f"- Requests: {m.approvals_requested}\n"
        f"- Granted: {m.approvals_granted}\n"
        f"- Approval rate: {m.approval_rate}%\n"
        f"- Blocked actions: {m.actions_blocked}\n"
        f"- Mode changes: {m.mode_changes}\n"
        f"\n"
        f"Recent Approval History (last 5):\n"
        f"{history}\n"
        f"\n"
        f"Session Info:\n"
        f"- Created: {_ts(state.created)}\n"
        f"- Last mode change: {_ts(state.last_mode_change)}\n"
        f"- Duration: {format_duration(now - state.created)}"
    )
