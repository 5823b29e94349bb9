"""
Pending Writes — optimistic local state for in-flight mutations.

Every mutation the dispatcher starts is registered here under a temporary
id before the collaborator answers. The session folds pending writes over
the last-known snapshots so the operator sees the effect immediately.

Reconciliation:
- A successful create binds its temporary id to the id the CRM assigned.
- Settled writes (succeeded or failed) are pruned by the first refresh of
  their source that started after they settled. Failed writes are not
  rolled back; that refresh is what corrects the view.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence
from uuid import uuid4

from pydantic import BaseModel

from focus_triage.models.crm import Activity, DealDraft, DealSnapshot
from focus_triage.models.interaction import InteractionRecord


class PendingKind(str, Enum):
    CREATE_ACTIVITY = "create_activity"
    UPDATE_ACTIVITY = "update_activity"
    DELETE_ACTIVITY = "delete_activity"
    CREATE_DEAL = "create_deal"
    UPDATE_DEAL = "update_deal"
    RECORD_INTERACTION = "record_interaction"


ACTIVITY_KINDS = frozenset({
    PendingKind.CREATE_ACTIVITY,
    PendingKind.UPDATE_ACTIVITY,
    PendingKind.DELETE_ACTIVITY,
})
DEAL_KINDS = frozenset({PendingKind.CREATE_DEAL, PendingKind.UPDATE_DEAL})
INTERACTION_KINDS = frozenset({PendingKind.RECORD_INTERACTION})


class PendingStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class PendingWrite(BaseModel):
    temp_id: str
    kind: PendingKind
    target_id: Optional[str] = None         # Entity being mutated (None for creates)
    activity: Optional[Activity] = None     # CREATE_ACTIVITY payload
    deal: Optional[DealDraft] = None        # CREATE_DEAL payload
    patch: dict = {}
    interaction: Optional[InteractionRecord] = None
    real_id: Optional[str] = None
    status: PendingStatus = PendingStatus.PENDING
    error: Optional[str] = None
    created_at: datetime
    settled_tick: Optional[int] = None


def new_temp_id() -> str:
    return f"tmp_{uuid4().hex[:12]}"


class PendingWrites:
    """Reconciliation map of in-flight writes, keyed by temporary id."""

    def __init__(self):
        self._writes: Dict[str, PendingWrite] = {}
        self._tick = 0

    def __len__(self) -> int:
        return len(self._writes)

    def get(self, temp_id: str) -> Optional[PendingWrite]:
        return self._writes.get(temp_id)

    def add(self, write: PendingWrite) -> PendingWrite:
        self._writes[write.temp_id] = write
        return write

    def succeed(self, temp_id: str, real_id: Optional[str] = None) -> None:
        write = self._writes.get(temp_id)
        if write is None:
            return
        write.status = PendingStatus.SUCCEEDED
        if real_id is not None and write.kind in (
            PendingKind.CREATE_ACTIVITY, PendingKind.CREATE_DEAL
        ):
            write.real_id = real_id
        write.settled_tick = self._next_tick()

    def fail(self, temp_id: str, error: str) -> None:
        write = self._writes.get(temp_id)
        if write is None:
            return
        write.status = PendingStatus.FAILED
        write.error = error
        write.settled_tick = self._next_tick()

    def resolve_id(self, entity_id: str) -> str:
        """Real id for a temporary id once bound, else the id unchanged."""
        write = self._writes.get(entity_id)
        if write is not None and write.real_id:
            return write.real_id
        return entity_id

    def mark(self) -> int:
        """Tick to pass to ``prune`` once a refresh started now has landed."""
        return self._next_tick()

    def prune(self, before_tick: int, kinds: Iterable[PendingKind]) -> int:
        """Drop writes of ``kinds`` that settled before ``before_tick``."""
        kinds = frozenset(kinds)
        stale = [
            temp_id for temp_id, w in self._writes.items()
            if w.kind in kinds
            and w.settled_tick is not None
            and w.settled_tick < before_tick
        ]
        for temp_id in stale:
            del self._writes[temp_id]
        return len(stale)

    def _next_tick(self) -> int:
        self._tick += 1
        return self._tick

    # --- Overlays ---

    def overlay_activities(self, activities: Sequence[Activity]) -> List[Activity]:
        """Fold pending activity writes over a snapshot."""
        by_id: Dict[str, Activity] = {a.id: a for a in activities}
        for write in self._writes.values():
            if write.kind == PendingKind.CREATE_ACTIVITY and write.activity:
                activity_id = write.real_id or write.temp_id
                if activity_id not in by_id:
                    by_id[activity_id] = write.activity.model_copy(update={"id": activity_id})
            elif write.kind == PendingKind.UPDATE_ACTIVITY and write.target_id in by_id:
                current = by_id[write.target_id]
                by_id[write.target_id] = current.model_copy(update=write.patch)
            elif write.kind == PendingKind.DELETE_ACTIVITY:
                by_id.pop(write.target_id, None)
        return list(by_id.values())

    def overlay_deals(self, deals: Sequence[DealSnapshot]) -> List[DealSnapshot]:
        """Fold pending deal writes over a snapshot."""
        by_id: Dict[str, DealSnapshot] = {d.id: d for d in deals}
        for write in self._writes.values():
            if write.kind == PendingKind.CREATE_DEAL and write.deal:
                deal_id = write.real_id or write.temp_id
                if deal_id not in by_id:
                    by_id[deal_id] = DealSnapshot(
                        id=deal_id,
                        updated_at=write.created_at,
                        **write.deal.model_dump(exclude={"tags"}),
                    )
            elif write.kind == PendingKind.UPDATE_DEAL and write.target_id in by_id:
                # Any update, even an empty patch, touches the deal
                patch = {"updated_at": write.created_at, **write.patch}
                by_id[write.target_id] = by_id[write.target_id].model_copy(update=patch)
        return list(by_id.values())

    def overlay_interactions(
        self, records: Sequence[InteractionRecord]
    ) -> List[InteractionRecord]:
        """Latest record per key, local writes applied after the stored ones."""
        by_key = {r.key: r for r in records}
        for write in self._writes.values():
            if write.kind == PendingKind.RECORD_INTERACTION and write.interaction:
                by_key[write.interaction.key] = write.interaction
        return list(by_key.values())
