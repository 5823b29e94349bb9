"""CRM snapshots — read-only records consumed from the backlog sources."""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Timestamps are compared as naive UTC; aware values are converted."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class ActivityType(str, Enum):
    CALL = "CALL"
    MEETING = "MEETING"
    EMAIL = "EMAIL"
    TASK = "TASK"
    NOTE = "NOTE"
    STATUS_CHANGE = "STATUS_CHANGE"


# Activities scheduled against the operator's calendar
MEETING_TYPES = frozenset({ActivityType.CALL, ActivityType.MEETING})


class ContactStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    CHURNED = "CHURNED"


class Activity(BaseModel):
    """A scheduled follow-up owned by the CRM."""

    id: str
    type: ActivityType
    title: str
    description: Optional[str] = None
    date: datetime                          # Due timestamp
    completed: bool = False
    deal_id: Optional[str] = None
    contact_id: Optional[str] = None

    @field_validator("date")
    @classmethod
    def normalize_date(cls, v):
        return to_naive_utc(v)

    @property
    def is_meeting(self) -> bool:
        return self.type in MEETING_TYPES


class DealSnapshot(BaseModel):
    """A deal as seen by the deal-view feed."""

    id: str
    title: str
    value: float = Field(ge=0, default=0)
    probability: Optional[int] = Field(ge=0, le=100, default=50)
    updated_at: datetime
    is_won: bool = False
    is_lost: bool = False
    company_name: Optional[str] = None
    company_id: Optional[str] = None
    contact_id: Optional[str] = None

    @field_validator("updated_at")
    @classmethod
    def normalize_updated_at(cls, v):
        return to_naive_utc(v)

    @property
    def is_open(self) -> bool:
        return not (self.is_won or self.is_lost)


class ContactSnapshot(BaseModel):
    """A contact as seen by the contact feed."""

    id: str
    name: str
    status: ContactStatus = ContactStatus.ACTIVE
    last_interaction: Optional[datetime] = None
    last_purchase_date: Optional[datetime] = None

    @field_validator("last_interaction", "last_purchase_date")
    @classmethod
    def normalize_activity_dates(cls, v):
        return to_naive_utc(v)

    @property
    def last_activity_at(self) -> Optional[datetime]:
        """Most recent of last interaction and last purchase, if any."""
        dates = [d for d in (self.last_interaction, self.last_purchase_date) if d]
        return max(dates) if dates else None


class DealDraft(BaseModel):
    """A deal to be created by the CRM (it assigns the id)."""

    title: str
    value: float = Field(ge=0, default=0)
    probability: int = Field(ge=0, le=100, default=50)
    contact_id: Optional[str] = None
    company_id: Optional[str] = None
    company_name: Optional[str] = None
    tags: List[str] = []
