"""
Classification Payload Models

The classifier hands back `{intent, entities}` where `entities` is whatever
the model felt like returning. These models pin that down into a tagged
union keyed by intent, so the derivation rules downstream work against
named, optional fields instead of an untyped map.

CRITICAL: Nothing here applies defaults. A missing field stays None and
the per-intent fallback rules in `aura.capture.derivation` decide what
it becomes.
"""

from typing import Annotated, Any, Literal, Optional, Union

import structlog
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
)

from aura.models.records import Intent


logger = structlog.get_logger(__name__)


class CaptureValidationError(ValueError):
    """A classification payload that cannot be coerced into a capture."""
    pass


# =============================================================================
# ENTITY PAYLOADS - one per intent, all fields optional
# =============================================================================

class _Entities(BaseModel):
    model_config = ConfigDict(
        extra="allow",
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )

    @field_validator("*", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        """Treat empty strings like absent values."""
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v


class ExpenseEntities(_Entities):
    amount: Any = None
    currency: Optional[str] = None
    category: Optional[str] = None
    date: Optional[str] = None
    description: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("description", "details"),
    )


class TodoEntities(_Entities):
    title: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("title", "headline"),
    )
    description: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("description", "details"),
    )
    priority: Optional[str] = None
    date: Optional[str] = None


class ReminderEntities(_Entities):
    title: Optional[str] = None
    description: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("description", "details", "time"),
    )
    date: Optional[str] = None


class MoodEntities(_Entities):
    sentiment: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("sentiment", "vibe"),
    )
    sentence: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("sentence", "headline"),
    )
    reason: Optional[str] = None


class NoteEntities(_Entities):
    text: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("text", "content"),
    )
    date: Optional[str] = None


# =============================================================================
# TAGGED UNION
# =============================================================================

class ExpenseClassification(BaseModel):
    intent: Literal["EXPENSE"]
    entities: ExpenseEntities = Field(default_factory=ExpenseEntities)


class TodoClassification(BaseModel):
    intent: Literal["TODO"]
    entities: TodoEntities = Field(default_factory=TodoEntities)


class ReminderClassification(BaseModel):
    intent: Literal["REMINDER"]
    entities: ReminderEntities = Field(default_factory=ReminderEntities)


class MoodClassification(BaseModel):
    intent: Literal["MOOD"]
    entities: MoodEntities = Field(default_factory=MoodEntities)


class NoteClassification(BaseModel):
    intent: Literal["NOTE"]
    entities: NoteEntities = Field(default_factory=NoteEntities)


Classification = Annotated[
    Union[
        ExpenseClassification,
        TodoClassification,
        ReminderClassification,
        MoodClassification,
        NoteClassification,
    ],
    Field(discriminator="intent"),
]

_classification_adapter: TypeAdapter[Classification] = TypeAdapter(Classification)


def normalize_intent(raw_intent: Any) -> Intent:
    """
    Map whatever the classifier said to a known intent.

    Unknown or missing intents become NOTE: a capture is never dropped
    just because the classifier was unsure.
    """
    if isinstance(raw_intent, Intent):
        return raw_intent
    value = str(raw_intent or "").strip().upper()
    try:
        return Intent(value)
    except ValueError:
        logger.warning("unknown_intent_coerced", raw_intent=value, coerced_to=Intent.NOTE.value)
        return Intent.NOTE


def parse_classification(raw_intent: Any, entities: Any) -> Classification:
    """
    Validate a raw `{intent, entities}` pair into the tagged union.

    Raises:
        CaptureValidationError: entities are present but unusable
    """
    intent = normalize_intent(raw_intent)
    if entities is None:
        entities = {}
    if not isinstance(entities, dict):
        raise CaptureValidationError(
            f"Entities for {intent.value} must be a mapping, got {type(entities).__name__}"
        )
    try:
        return _classification_adapter.validate_python(
            {"intent": intent.value, "entities": entities}
        )
    except ValidationError as e:
        raise CaptureValidationError(
            f"Could not read {intent.value} entities: {e.error_count()} invalid field(s)"
        ) from e


class CaptureDraft(BaseModel):
    """
    A classified utterance awaiting confirmation.

    This is PROPOSED data. Nothing is persisted until the draft is
    committed through the capture manager.
    """

    raw_text: str = Field(
        ...,
        description="Transcript of the utterance"
    )
    classification: Classification
    raw_entities: dict[str, Any] = Field(
        default_factory=dict,
        description="Entities exactly as the classifier returned them"
    )
    confidence: float = Field(
        default=0.95,
        ge=0.0,
        le=1.0,
    )

    @property
    def intent(self) -> Intent:
        return Intent(self.classification.intent)

    @classmethod
    def build(
        cls,
        raw_text: str,
        intent: Any,
        entities: Optional[dict[str, Any]] = None,
        confidence: float = 0.95,
    ) -> "CaptureDraft":
        """Build a draft from the classifier's loose output."""
        classification = parse_classification(intent, entities)
        return cls(
            raw_text=raw_text or "",
            classification=classification,
            raw_entities=dict(entities or {}),
            confidence=confidence,
        )
