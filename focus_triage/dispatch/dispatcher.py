"""
Action Dispatcher — turns a focus action into CRM mutations and a
suppression write, and computes the cursor the navigation should move to.

Behavioral Contract:
- DONE/SNOOZE/DISMISS on an Activity mutate the activity through the gateway.
- DONE/SNOOZE/DISMISS on a Suggestion run its accept behavior (DONE only)
  and record ACCEPTED/SNOOZED/DISMISSED in the suppression store.
- Mutations are fire-and-forget relative to navigation: the optimistic
  local effect and the new cursor are applied immediately, the collaborator
  calls run as tasks and report back through notices.
- No automatic retry and no rollback on failure.
"""

import asyncio
import logging
from collections import deque
from datetime import datetime, timedelta
from enum import Enum
from typing import Awaitable, Callable, Deque, Optional, Protocol, Set

from focus_triage.dispatch.pending import (
    PendingKind,
    PendingWrite,
    PendingWrites,
    new_temp_id,
)
from focus_triage.models.config import TriageConfig
from focus_triage.models.crm import Activity, ActivityType, DealDraft, DealSnapshot
from focus_triage.models.focus import ActivityItem, FocusItem, Notice, NoticeLevel, SuggestionItem
from focus_triage.models.interaction import InteractionAction, InteractionRecord
from focus_triage.models.suggestion import ContactRef, DealRef, Suggestion, SuggestionType
from focus_triage.navigation.controller import cursor_after_removal
from focus_triage.suppression.store import SuppressionStore

logger = logging.getLogger(__name__)

# Oldest notices are dropped once the history is full
MAX_NOTICES = 100


class DispatchError(Exception):
    """Raised when an action cannot be dispatched."""
    pass


class UnknownFocusItemError(TypeError):
    """Raised for a focus item variant the dispatcher does not handle."""
    pass


class FocusAction(str, Enum):
    DONE = "done"
    SNOOZE = "snooze"
    DISMISS = "dismiss"


class CRMGateway(Protocol):
    """Protocol for the CRM mutation endpoints. All idempotent at the id level."""

    async def create_activity(self, activity: Activity) -> Activity: ...

    async def update_activity(self, activity_id: str, patch: dict) -> Activity: ...

    async def delete_activity(self, activity_id: str) -> None: ...

    async def create_deal(self, draft: DealDraft) -> DealSnapshot: ...

    async def update_deal(self, deal_id: str, patch: dict) -> DealSnapshot: ...


class ActionDispatcher:
    """Dispatches focus actions to the CRM gateway and the suppression store."""

    def __init__(
        self,
        gateway: CRMGateway,
        suppression_store: SuppressionStore,
        pending: Optional[PendingWrites] = None,
        config: Optional[TriageConfig] = None,
    ):
        self.gateway = gateway
        self.suppression_store = suppression_store
        self.pending = pending if pending is not None else PendingWrites()
        self.config = config if config is not None else TriageConfig()
        self.notices: Deque[Notice] = deque(maxlen=MAX_NOTICES)
        self._tasks: Set[asyncio.Task] = set()

    def dispatch(
        self,
        action: FocusAction,
        item: FocusItem,
        cursor: int,
        queue_length: int,
        now: Optional[datetime] = None,
    ) -> int:
        """
        Dispatch ``action`` on ``item`` and return the new cursor.

        Must be called with a running event loop; collaborator calls are
        scheduled on it and not awaited.
        """
        if now is None:
            now = datetime.utcnow()
        try:
            action = FocusAction(action)
        except ValueError:
            raise DispatchError(f"Unsupported focus action: {action!r}")

        if isinstance(item, ActivityItem):
            handlers = {
                FocusAction.DONE: self.complete_activity,
                FocusAction.SNOOZE: self.snooze_activity,
                FocusAction.DISMISS: self.discard_activity,
            }
            handlers[action](item.activity, now)
        elif isinstance(item, SuggestionItem):
            handlers = {
                FocusAction.DONE: self.accept_suggestion,
                FocusAction.SNOOZE: self.snooze_suggestion,
                FocusAction.DISMISS: self.dismiss_suggestion,
            }
            handlers[action](item.suggestion, now)
        else:
            raise UnknownFocusItemError(f"Cannot dispatch on {type(item).__name__}")

        # The item leaves the queue on the next rebuild
        return cursor_after_removal(cursor, queue_length)

    # --- Activities ---

    def complete_activity(self, activity: Activity, now: datetime) -> None:
        completed = not activity.completed
        message = "Activity completed!" if completed else "Activity reopened"
        self._update_activity(activity, {"completed": completed}, now, message)

    def snooze_activity(
        self, activity: Activity, now: datetime, days: Optional[int] = None
    ) -> None:
        days = days or self.config.activity_snooze_days
        new_date = activity.date + timedelta(days=days)
        self._update_activity(
            activity,
            {"date": new_date, "completed": False},
            now,
            f"Snoozed until {new_date.date().isoformat()}",
        )

    def discard_activity(self, activity: Activity, now: datetime) -> None:
        activity_id = self.pending.resolve_id(activity.id)
        write = self.pending.add(PendingWrite(
            temp_id=new_temp_id(),
            kind=PendingKind.DELETE_ACTIVITY,
            target_id=activity.id,
            created_at=now,
        ))
        self._spawn(
            write.temp_id,
            lambda: self.gateway.delete_activity(activity_id),
            Notice(level=NoticeLevel.INFO, message="Activity removed", item_id=activity.id),
        )

    def create_activity_from_action(
        self,
        title: str,
        activity_type: ActivityType,
        date: Optional[datetime] = None,
        now: Optional[datetime] = None,
        deal_id: Optional[str] = None,
        contact_id: Optional[str] = None,
        description: str = "",
    ) -> str:
        """Create a follow-up activity (e.g. from a parsed assistant action)."""
        if now is None:
            now = datetime.utcnow()
        return self._create_activity(
            Activity(
                id="",
                type=activity_type,
                title=title,
                description=description,
                date=date or now,
                deal_id=deal_id,
                contact_id=contact_id,
            ),
            now,
            f"Activity created: {title}",
        )

    def _update_activity(
        self, activity: Activity, patch: dict, now: datetime, success_message: str
    ) -> None:
        activity_id = self.pending.resolve_id(activity.id)
        write = self.pending.add(PendingWrite(
            temp_id=new_temp_id(),
            kind=PendingKind.UPDATE_ACTIVITY,
            target_id=activity.id,
            patch=patch,
            created_at=now,
        ))
        self._spawn(
            write.temp_id,
            lambda: self.gateway.update_activity(activity_id, patch),
            Notice(level=NoticeLevel.SUCCESS, message=success_message, item_id=activity.id),
        )

    def _create_activity(self, activity: Activity, now: datetime, success_message: str) -> str:
        temp_id = new_temp_id()
        activity = activity.model_copy(update={"id": temp_id})
        self.pending.add(PendingWrite(
            temp_id=temp_id,
            kind=PendingKind.CREATE_ACTIVITY,
            activity=activity,
            created_at=now,
        ))
        self._spawn(
            temp_id,
            lambda: self.gateway.create_activity(activity),
            Notice(level=NoticeLevel.SUCCESS, message=success_message, item_id=temp_id),
        )
        return temp_id

    # --- Suggestions ---

    def accept_suggestion(self, suggestion: Suggestion, now: datetime) -> None:
        """Run the suggestion's accept behavior, then record ACCEPTED."""
        payload = suggestion.payload
        if suggestion.type == SuggestionType.UPSELL and isinstance(payload, DealRef):
            self._create_upsell_deal(payload.deal, now)
        elif suggestion.type == SuggestionType.STALLED and isinstance(payload, DealRef):
            self._touch_deal(payload.deal, now)
        elif suggestion.type == SuggestionType.RESCUE and isinstance(payload, ContactRef):
            contact = payload.contact
            self._create_activity(
                Activity(
                    id="",
                    type=ActivityType.CALL,
                    title=f"Reactivate customer: {contact.name}",
                    description="Customer at churn risk - call to reactivate",
                    date=now,
                    contact_id=contact.id,
                ),
                now,
                "Reactivation task created!",
            )
        else:
            raise DispatchError(
                f"Suggestion {suggestion.id} has a {suggestion.entity_type.value} "
                f"payload, which {suggestion.type.value} cannot accept"
            )
        self._record(suggestion, InteractionAction.ACCEPTED, now)

    def snooze_suggestion(self, suggestion: Suggestion, now: datetime) -> None:
        until = now + timedelta(days=self.config.suggestion_snooze_days)
        self._record(
            suggestion,
            InteractionAction.SNOOZED,
            now,
            snoozed_until=until,
            message=f"Suggestion snoozed until {until.date().isoformat()}",
        )

    def dismiss_suggestion(self, suggestion: Suggestion, now: datetime) -> None:
        self._record(
            suggestion, InteractionAction.DISMISSED, now, message="Suggestion dismissed"
        )

    def _create_upsell_deal(self, deal: DealSnapshot, now: datetime) -> None:
        draft = DealDraft(
            title=f"Upsell/Renewal: {deal.title}",
            value=round(deal.value * 1.2),
            probability=30,
            contact_id=deal.contact_id,
            company_id=deal.company_id,
            company_name=deal.company_name,
            tags=["Upsell"],
        )
        write = self.pending.add(PendingWrite(
            temp_id=new_temp_id(),
            kind=PendingKind.CREATE_DEAL,
            deal=draft,
            created_at=now,
        ))
        self._spawn(
            write.temp_id,
            lambda: self.gateway.create_deal(draft),
            Notice(level=NoticeLevel.SUCCESS, message="Upsell opportunity created!"),
        )

    def _touch_deal(self, deal: DealSnapshot, now: datetime) -> None:
        write = self.pending.add(PendingWrite(
            temp_id=new_temp_id(),
            kind=PendingKind.UPDATE_DEAL,
            target_id=deal.id,
            created_at=now,
        ))
        self._spawn(
            write.temp_id,
            lambda: self.gateway.update_deal(deal.id, {}),
            Notice(level=NoticeLevel.SUCCESS, message="Deal reactivated!", item_id=deal.id),
        )

    def _record(
        self,
        suggestion: Suggestion,
        action: InteractionAction,
        now: datetime,
        snoozed_until: Optional[datetime] = None,
        message: Optional[str] = None,
    ) -> None:
        record = InteractionRecord(
            operator_id=self.config.operator_id,
            suggestion_type=suggestion.type,
            entity_type=suggestion.entity_type,
            entity_id=suggestion.entity_id,
            action=action,
            snoozed_until=snoozed_until,
            recorded_at=now,
        )
        write = self.pending.add(PendingWrite(
            temp_id=new_temp_id(),
            kind=PendingKind.RECORD_INTERACTION,
            target_id=suggestion.entity_id,
            interaction=record,
            created_at=now,
        ))
        notice = (
            Notice(level=NoticeLevel.INFO, message=message, item_id=suggestion.id)
            if message
            else None
        )
        self._spawn(
            write.temp_id,
            lambda: self.suppression_store.record_interaction(record),
            notice,
        )

    # --- Task plumbing ---

    def _spawn(
        self,
        temp_id: str,
        call: Callable[[], Awaitable],
        notice: Optional[Notice],
    ) -> None:
        loop = asyncio.get_running_loop()
        task = loop.create_task(self._run(temp_id, call, notice))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(
        self,
        temp_id: str,
        call: Callable[[], Awaitable],
        notice: Optional[Notice],
    ) -> None:
        try:
            result = await call()
        except Exception as e:
            logger.exception("Mutation %s failed", temp_id)
            self.pending.fail(temp_id, str(e))
            self.notices.append(Notice(
                level=NoticeLevel.ERROR,
                message=f"Could not save your change: {e}",
                item_id=notice.item_id if notice else None,
            ))
            return

        self.pending.succeed(temp_id, getattr(result, "id", None))
        if notice is not None:
            self.notices.append(notice)

    async def drain(self) -> None:
        """Wait for every in-flight mutation to settle."""
        while True:
            pending = [t for t in self._tasks if not t.done()]
            if not pending:
                return
            await asyncio.gather(*pending)
