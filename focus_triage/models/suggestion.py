"""Suggestions — synthesized, never persisted candidate tasks."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from focus_triage.models.crm import ContactSnapshot, DealSnapshot


class SuggestionType(str, Enum):
    UPSELL = "UPSELL"
    STALLED = "STALLED"
    RESCUE = "RESCUE"


class SuggestionPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    SuggestionPriority.HIGH: 0,
    SuggestionPriority.MEDIUM: 1,
    SuggestionPriority.LOW: 2,
}


class EntityType(str, Enum):
    DEAL = "deal"
    CONTACT = "contact"


class SuggestionKey(BaseModel):
    """
    Identity of a suggestion: the (type, entity) pair.

    Suppression matching is done on this pair end-to-end. The string id is
    derived from it for display and cross-refresh dedup, never parsed back.
    """

    model_config = ConfigDict(frozen=True)

    type: SuggestionType
    entity_id: str

    @property
    def suggestion_id(self) -> str:
        return f"{self.type.value.lower()}-{self.entity_id}"


class DealRef(BaseModel):
    kind: Literal["deal"] = "deal"
    deal: DealSnapshot


class ContactRef(BaseModel):
    kind: Literal["contact"] = "contact"
    contact: ContactSnapshot


SuggestionPayload = Annotated[Union[DealRef, ContactRef], Field(discriminator="kind")]


class Suggestion(BaseModel):
    """A candidate task derived from deal or contact heuristics."""

    id: str
    type: SuggestionType
    title: str
    description: str
    priority: SuggestionPriority
    payload: SuggestionPayload
    score: Optional[float] = None           # Only set for deal-derived families
    created_at: datetime

    @property
    def entity_type(self) -> EntityType:
        if isinstance(self.payload, DealRef):
            return EntityType.DEAL
        return EntityType.CONTACT

    @property
    def entity_id(self) -> str:
        if isinstance(self.payload, DealRef):
            return self.payload.deal.id
        return self.payload.contact.id

    @property
    def key(self) -> SuggestionKey:
        return SuggestionKey(type=self.type, entity_id=self.entity_id)
