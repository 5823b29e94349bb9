"""Focus Triage data models."""

from focus_triage.models.config import TriageConfig
from focus_triage.models.crm import (
    Activity,
    ActivityType,
    ContactSnapshot,
    ContactStatus,
    DealDraft,
    DealSnapshot,
    MEETING_TYPES,
)
from focus_triage.models.focus import (
    ActivityItem,
    FocusItem,
    Notice,
    NoticeLevel,
    SuggestionItem,
)
from focus_triage.models.interaction import InteractionAction, InteractionRecord
from focus_triage.models.suggestion import (
    ContactRef,
    DealRef,
    EntityType,
    Suggestion,
    SuggestionKey,
    SuggestionPriority,
    SuggestionType,
)

__all__ = [
    "Activity",
    "ActivityItem",
    "ActivityType",
    "ContactRef",
    "ContactSnapshot",
    "ContactStatus",
    "DealDraft",
    "DealRef",
    "DealSnapshot",
    "EntityType",
    "FocusItem",
    "InteractionAction",
    "InteractionRecord",
    "MEETING_TYPES",
    "Notice",
    "NoticeLevel",
    "Suggestion",
    "SuggestionItem",
    "SuggestionKey",
    "SuggestionPriority",
    "SuggestionType",
    "TriageConfig",
]
