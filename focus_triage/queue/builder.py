"""
Queue Builder — merges activities and suggestions into one ordered queue.

Items are placed into reserved priority bands so that cross-band ordering
never depends on how many items a band holds:

    0-99    overdue activities, earliest due first
    100-199 high-priority suggestions
    200-299 today's CALL/MEETING activities, chronological
    300-399 today's other activities, chronological
    400+    medium/low-priority suggestions

The queue is rebuilt from scratch on every change. Determinism, not
incremental performance, is the requirement.
"""

from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from pydantic import BaseModel

from focus_triage.models.crm import Activity
from focus_triage.models.focus import ActivityItem, FocusItem, SuggestionItem
from focus_triage.models.suggestion import Suggestion, SuggestionPriority

BAND_OVERDUE = 0
BAND_HIGH_SUGGESTIONS = 100
BAND_TODAY_MEETINGS = 200
BAND_TODAY_TASKS = 300
BAND_OTHER_SUGGESTIONS = 400
BAND_WIDTH = 100


class Backlog(BaseModel):
    """Pending activities partitioned by due date relative to today."""

    overdue: List[Activity] = []
    today_meetings: List[Activity] = []
    today_tasks: List[Activity] = []
    upcoming: List[Activity] = []

    @property
    def today(self) -> List[Activity]:
        return sorted(self.today_meetings + self.today_tasks, key=lambda a: a.date)


class FocusStats(BaseModel):
    overdue_count: int
    today_count: int
    upcoming_count: int
    suggestions_count: int
    total_pending: int
    is_inbox_zero: bool


def start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def partition_activities(
    activities: Sequence[Activity],
    now: Optional[datetime] = None,
) -> Backlog:
    """Split pending activities into overdue / today / upcoming."""
    if now is None:
        now = datetime.utcnow()
    today = start_of_day(now)
    tomorrow = today + timedelta(days=1)

    pending = sorted((a for a in activities if not a.completed), key=lambda a: a.date)

    backlog = Backlog()
    for activity in pending:
        if activity.date < today:
            backlog.overdue.append(activity)
        elif activity.date < tomorrow:
            if activity.is_meeting:
                backlog.today_meetings.append(activity)
            else:
                backlog.today_tasks.append(activity)
        else:
            backlog.upcoming.append(activity)
    return backlog


def _band_priority(base: int, index: int, bounded: bool = True) -> int:
    # A full band saturates at its last integer; the stable sort keeps order.
    if bounded:
        return base + min(index, BAND_WIDTH - 1)
    return base + index


def build_focus_queue(
    activities: Sequence[Activity],
    suggestions: Sequence[Suggestion],
    now: Optional[datetime] = None,
) -> List[FocusItem]:
    """Build the unified focus queue, sorted ascending by band priority."""
    backlog = partition_activities(activities, now)

    high = [s for s in suggestions if s.priority == SuggestionPriority.HIGH]
    rest = [s for s in suggestions if s.priority != SuggestionPriority.HIGH]

    items: List[FocusItem] = []
    for i, activity in enumerate(backlog.overdue):
        items.append(ActivityItem(priority=_band_priority(BAND_OVERDUE, i), activity=activity))
    for i, suggestion in enumerate(high):
        items.append(SuggestionItem(
            priority=_band_priority(BAND_HIGH_SUGGESTIONS, i), suggestion=suggestion,
        ))
    for i, activity in enumerate(backlog.today_meetings):
        items.append(ActivityItem(
            priority=_band_priority(BAND_TODAY_MEETINGS, i), activity=activity,
        ))
    for i, activity in enumerate(backlog.today_tasks):
        items.append(ActivityItem(
            priority=_band_priority(BAND_TODAY_TASKS, i), activity=activity,
        ))
    for i, suggestion in enumerate(rest):
        items.append(SuggestionItem(
            priority=_band_priority(BAND_OTHER_SUGGESTIONS, i, bounded=False),
            suggestion=suggestion,
        ))

    return sorted(items, key=lambda item: item.priority)


def compute_stats(backlog: Backlog, suggestions: Sequence[Suggestion]) -> FocusStats:
    """Inbox counters shown next to the queue."""
    today_count = len(backlog.today_meetings) + len(backlog.today_tasks)
    total = len(backlog.overdue) + today_count + len(suggestions)
    return FocusStats(
        overdue_count=len(backlog.overdue),
        today_count=today_count,
        upcoming_count=len(backlog.upcoming),
        suggestions_count=len(suggestions),
        total_pending=total,
        is_inbox_zero=total == 0,
    )
