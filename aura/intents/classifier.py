"""
Local Intent Classifier

A keyword fallback used when the remote classifier cannot be reached.
It only picks an intent; entity extraction is left to the derivation
fallbacks, which fill every field from the transcript.

Rules are checked in order and the first hit wins:

| Order | Intent   | Confidence | Triggers                                   |
|-------|----------|------------|--------------------------------------------|
| 1     | EXPENSE  | 0.95       | spending words, currency mentions ("50rs") |
| 2     | MOOD     | 0.90       | feeling and reflection words               |
| 3     | REMINDER | 0.90       | remind, alert                              |
| 4     | TODO     | 0.85       | todo, task, "need to", "remember to"       |
| 5     | NOTE     | 0.50       | anything else                              |
"""

import re
from typing import NamedTuple

import structlog

from aura.models.records import Intent


logger = structlog.get_logger(__name__)


EXPENSE_KEYWORDS = ("spent", "bought", "cost", "paid", "price", "rupees", " rs")
EXPENSE_PATTERN = re.compile(r"\d+\s?rs\b")

MOOD_KEYWORDS = (
    "feel", "feeling", "happy", "sad", "stressed", "anxious", "tired",
    "great", "awesome", "bad", "terrible", "thought", "think", "reflection",
    "realized", "wondering", "excited", "angry", "mood", "today was",
    "day was",
)

REMINDER_KEYWORDS = ("remind", "reminder", "alert")

TODO_KEYWORDS = ("todo", "task", "need to", "remember to")


class LocalClassification(NamedTuple):
    intent: Intent
    confidence: float


def _mentions(text: str, keywords: tuple[str, ...]) -> bool:
    return any(keyword in text for keyword in keywords)


def classify_raw_text(text: str) -> LocalClassification:
    """
    Guess the intent of a transcript from keywords alone.

    Returns:
        (intent, confidence)
    """
    lowered = f" {(text or '').lower().strip()}"

    if _mentions(lowered, EXPENSE_KEYWORDS) or EXPENSE_PATTERN.search(lowered):
        result = LocalClassification(Intent.EXPENSE, 0.95)
    elif _mentions(lowered, MOOD_KEYWORDS):
        result = LocalClassification(Intent.MOOD, 0.9)
    elif _mentions(lowered, REMINDER_KEYWORDS):
        result = LocalClassification(Intent.REMINDER, 0.9)
    elif _mentions(lowered, TODO_KEYWORDS):
        result = LocalClassification(Intent.TODO, 0.85)
    else:
        result = LocalClassification(Intent.NOTE, 0.5)

    logger.debug(
        "local_classification",
        intent=result.intent.value,
        confidence=result.confidence,
    )
    return result
