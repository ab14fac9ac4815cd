"""
Capture Package

Derivation rules, the commit pipeline and the materialized view.
"""

from aura.capture.derivation import (
    DerivedRecord,
    build_voice_entry,
    coerce_amount,
    derive_record,
    infer_category_from_text,
    resolve_day,
    resolve_expense_category,
)
from aura.capture.manager import CaptureManager, CaptureResult
from aura.capture.view import VaultView
from aura.models.capture import CaptureDraft, CaptureValidationError

__all__ = [
    "CaptureDraft",
    "CaptureManager",
    "CaptureResult",
    "CaptureValidationError",
    "DerivedRecord",
    "VaultView",
    "build_voice_entry",
    "coerce_amount",
    "derive_record",
    "infer_category_from_text",
    "resolve_day",
    "resolve_expense_category",
]
