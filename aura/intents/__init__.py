"""Intent classification helpers."""

from aura.intents.classifier import LocalClassification, classify_raw_text

__all__ = [
    "LocalClassification",
    "classify_raw_text",
]
