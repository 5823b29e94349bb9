"""Interaction records — durable operator decisions on suggestions."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from focus_triage.models.crm import to_naive_utc
from focus_triage.models.suggestion import EntityType, SuggestionKey, SuggestionType


class InteractionAction(str, Enum):
    ACCEPTED = "ACCEPTED"
    DISMISSED = "DISMISSED"
    SNOOZED = "SNOOZED"


class InteractionRecord(BaseModel):
    """
    The operator's latest decision for one (type, entity) pair.

    At most one outstanding record exists per (operator, suggestion_type,
    entity_id); a newer write replaces the older one.
    """

    operator_id: str = "default"
    suggestion_type: SuggestionType
    entity_type: EntityType
    entity_id: str
    action: InteractionAction
    snoozed_until: Optional[datetime] = None
    recorded_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator("snoozed_until", "recorded_at")
    @classmethod
    def normalize_timestamps(cls, v):
        return to_naive_utc(v)

    @property
    def key(self) -> SuggestionKey:
        return SuggestionKey(type=self.suggestion_type, entity_id=self.entity_id)

    def suppresses(self, now: datetime) -> bool:
        """Whether this record hides its suggestion at ``now``."""
        if self.action in (InteractionAction.ACCEPTED, InteractionAction.DISMISSED):
            return True
        return self.snoozed_until is not None and now < self.snoozed_until
