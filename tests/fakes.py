"""In-memory collaborators shared by the tests."""

import asyncio
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from focus_triage.models.crm import (
    Activity,
    ActivityType,
    ContactSnapshot,
    ContactStatus,
    DealDraft,
    DealSnapshot,
)

NOW = datetime(2026, 10, 18, 12, 0, 0)


def make_activity(
    activity_id: str,
    date: datetime,
    activity_type: ActivityType = ActivityType.TASK,
    completed: bool = False,
    deal_id: Optional[str] = None,
) -> Activity:
    return Activity(
        id=activity_id,
        type=activity_type,
        title=f"Activity {activity_id}",
        date=date,
        completed=completed,
        deal_id=deal_id,
    )


def make_deal(
    deal_id: str,
    days_idle: int,
    value: float = 10000,
    probability: Optional[int] = 50,
    is_won: bool = False,
    is_lost: bool = False,
) -> DealSnapshot:
    return DealSnapshot(
        id=deal_id,
        title=f"Deal {deal_id}",
        value=value,
        probability=probability,
        updated_at=NOW - timedelta(days=days_idle),
        is_won=is_won,
        is_lost=is_lost,
        company_name=f"Company {deal_id}",
    )


def make_contact(
    contact_id: str,
    days_idle: Optional[int],
    status: ContactStatus = ContactStatus.ACTIVE,
) -> ContactSnapshot:
    return ContactSnapshot(
        id=contact_id,
        name=f"Contact {contact_id}",
        status=status,
        last_interaction=NOW - timedelta(days=days_idle) if days_idle is not None else None,
    )


class FakeGateway:
    """Records every mutation; optionally fails all of them."""

    def __init__(self, fail: bool = False, delay: float = 0.0):
        self.fail = fail
        self.delay = delay
        self.calls: List[tuple] = []
        self._counter = 0

    async def _call(self, *call):
        if self.delay:
            await asyncio.sleep(self.delay)
        self.calls.append(call)
        if self.fail:
            raise RuntimeError("CRM unavailable")

    def _next_id(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}_{self._counter}"

    async def create_activity(self, activity: Activity) -> Activity:
        await self._call("create_activity", activity)
        return activity.model_copy(update={"id": self._next_id("act")})

    async def update_activity(self, activity_id: str, patch: dict) -> Activity:
        await self._call("update_activity", activity_id, patch)
        return Activity(id=activity_id, type=ActivityType.TASK, title="updated", date=NOW)

    async def delete_activity(self, activity_id: str) -> None:
        await self._call("delete_activity", activity_id)

    async def create_deal(self, draft: DealDraft) -> DealSnapshot:
        await self._call("create_deal", draft)
        return DealSnapshot(
            id=self._next_id("deal"),
            updated_at=NOW,
            **draft.model_dump(exclude={"tags"}),
        )

    async def update_deal(self, deal_id: str, patch: dict) -> DealSnapshot:
        await self._call("update_deal", deal_id, patch)
        return DealSnapshot(id=deal_id, title="touched", updated_at=NOW)


class FailingSource:
    """A backlog source that always raises."""

    def __init__(self):
        self.attempts = 0

    async def fetch(self):
        self.attempts += 1
        raise ConnectionError("feed unreachable")


class FakeBriefingGenerator:
    def __init__(self, text: str = "Three things need you today.", fail: bool = False,
                 delay: float = 0.0):
        self.text = text
        self.fail = fail
        self.delay = delay
        self.calls = 0

    async def generate_briefing(self, stats) -> str:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("provider quota exceeded")
        return self.text
