# tether/autonomy/task_classifier.py
from __future__ import annotations
from typing import Dict, List, Optional
from pydantic import BaseModel, Field

from tether.schemas.mode import RiskLevel

# keyword hints for how much autonomy a task description calls for
DEFAULT_TASK_KEYWORDS: Dict[str, List[str]] = {
    "high": ["explore", "find", "analyze", "search", "review", "ultrawork", "ulw", "quick", "fast"],
    "medium": ["implement", "add", "modify", "create", "update", "refactor"],
    "low": ["design", "architect", "breaking", "api", "structure", "careful", "verify", "safe"],
}


class TaskClassification(BaseModel):
    level: RiskLevel
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    matched_keywords: List[str] = Field(default_factory=list)
    reasoning: str = ""

    model_config = {"extra": "forbid"}


class TaskClassifier:
    """
    Advisory, keyword-counting classifier for free-text task prompts.

    Levels here describe how much autonomy the task suggests (high = run freely).
    The result is informational only and is never consulted by the permission gate.
    """

    def __init__(self, keywords: Optional[Dict[str, List[str]]] = None, default_level: RiskLevel = RiskLevel.MEDIUM, confidence_threshold: float = 0.5):
        kw = keywords or DEFAULT_TASK_KEYWORDS
        self.keywords = {lvl: [k.lower() for k in kw.get(lvl, [])] for lvl in ("high", "medium", "low")}
        self.default_level = default_level
        self.confidence_threshold = confidence_threshold

    def classify(self, prompt: Optional[str]) -> TaskClassification:
        text = (prompt or "").lower()
        high = [k for k in self.keywords["high"] if k in text]
        medium = [k for k in self.keywords["medium"] if k in text]
        low = [k for k in self.keywords["low"] if k in text]
        matched = high + medium + low

        # high wins over low, low over medium
        if high:
            return TaskClassification(
                level=RiskLevel.HIGH,
                confidence=min(0.5 + len(high) * 0.15, 0.95),
                matched_keywords=matched,
                reasoning=f"Matched high-autonomy keywords: {', '.join(high)}",
            )
        if low:
            return TaskClassification(
                level=RiskLevel.LOW,
                confidence=min(0.5 + len(low) * 0.15, 0.95),
                matched_keywords=matched,
                reasoning=f"Matched low-autonomy keywords: {', '.join(low)}",
            )
        if medium:
            return TaskClassification(
                level=RiskLevel.MEDIUM,
                confidence=min(0.5 + len(medium) * 0.15, 0.9),
                matched_keywords=matched,
                reasoning=f"Matched medium-autonomy keywords: {', '.join(medium)}",
            )
        return TaskClassification(
            level=self.default_level,
            confidence=0.4,
            matched_keywords=[],
            reasoning="No keywords matched, using default level",
        )

    def determine_level(self, classification: TaskClassification) -> RiskLevel:
        if classification.confidence < self.confidence_threshold:
            return self.default_level
        return classification.level
