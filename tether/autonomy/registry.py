# tether/autonomy/registry.py
from __future__ import annotations
import re
from typing import List, Optional, Pattern, Tuple

from tether.schemas.mode import AutonomyMode, ModeProfile
from .config import AutonomyConfig

# a trigger is "<keyword>:" at the very start of the message
_TRIGGER_DELIMITER = ":"


class ModeRegistry:
    """
    Read-only view over the configured modes: profiles plus the keyword
    triggers that raise (permissive) or lower (restrictive) autonomy for one message.
    """

    def __init__(self, config: Optional[AutonomyConfig] = None):
        self.config = config or AutonomyConfig.defaults()
        self._triggers: List[Tuple[AutonomyMode, Pattern[str]]] = []
        groups = (
            (AutonomyMode.PERMISSIVE, self.config.keywords.permissive),
            (AutonomyMode.RESTRICTIVE, self.config.keywords.restrictive),
        )
        for mode, words in groups:
            if not words:
                continue
            # longest first so "ultrawork" is not shadowed by a shorter prefix keyword
            alternation = "|".join(re.escape(w) for w in sorted(words, key=len, reverse=True))
            pattern = re.compile(rf"^({alternation}){re.escape(_TRIGGER_DELIMITER)}\s*", re.IGNORECASE)
            self._triggers.append((mode, pattern))

    @property
    def default_mode(self) -> AutonomyMode:
        return self.config.default_mode

    def profile(self, mode: AutonomyMode) -> ModeProfile:
        return self.config.profile(mode)

    def max_background(self, mode: AutonomyMode) -> int:
        profile = self.profile(mode)
        return profile.max_concurrent_background if profile.background_enabled else 0

    def match_trigger(self, text: str) -> Optional[Tuple[AutonomyMode, str, str]]:
        """
        Look for a keyword trigger at the start of text (leading whitespace ignored).
        Returns (mode, keyword, remaining_text) or None.
        """
        if not text:
            return None
        stripped = text.strip()
        for mode, pattern in self._triggers:
            m = pattern.match(stripped)
            if m:
                return mode, m.group(1).lower(), stripped[m.end():]
        return None
