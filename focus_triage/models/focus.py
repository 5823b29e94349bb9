"""Focus items — the unified queue entries handed to the presentation layer."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

from focus_triage.models.crm import Activity
from focus_triage.models.suggestion import Suggestion


class ActivityItem(BaseModel):
    kind: Literal["activity"] = "activity"
    priority: int                           # Lower = more urgent
    activity: Activity

    @property
    def id(self) -> str:
        return self.activity.id


class SuggestionItem(BaseModel):
    kind: Literal["suggestion"] = "suggestion"
    priority: int
    suggestion: Suggestion

    @property
    def id(self) -> str:
        return self.suggestion.id


FocusItem = Annotated[Union[ActivityItem, SuggestionItem], Field(discriminator="kind")]


class NoticeLevel(str, Enum):
    SUCCESS = "success"
    INFO = "info"
    ERROR = "error"


class Notice(BaseModel):
    """Operator-facing message about a navigation step or a mutation outcome."""

    level: NoticeLevel
    message: str
    item_id: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
