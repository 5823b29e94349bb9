"""
Backlog sources and their last-known snapshots.

A failed fetch never blocks queue construction: the cache keeps serving the
last snapshot it received. Responses are applied in arrival order, so a
late response simply folds into the next rebuild (last write wins per source).
"""

import logging
from datetime import datetime
from typing import Generic, List, Optional, Protocol, Sequence, TypeVar

from focus_triage.models.crm import Activity, ContactSnapshot, DealSnapshot

logger = logging.getLogger(__name__)

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)


class BacklogSource(Protocol[T_co]):
    """Protocol for a read-only backlog feed."""

    async def fetch(self) -> List[T_co]: ...


class StaticSource(Generic[T]):
    """A source serving a fixed list, replaceable between fetches."""

    def __init__(self, items: Optional[Sequence[T]] = None):
        self.items: List[T] = list(items or [])

    async def fetch(self) -> List[T]:
        return list(self.items)


class SnapshotCache(Generic[T]):
    """Last-known snapshot of one backlog source."""

    def __init__(self, name: str, source: BacklogSource[T]):
        self.name = name
        self.source = source
        self._items: List[T] = []
        self.last_refreshed_at: Optional[datetime] = None
        self.last_error: Optional[str] = None

    @property
    def items(self) -> List[T]:
        return list(self._items)

    @property
    def is_loaded(self) -> bool:
        return self.last_refreshed_at is not None

    async def refresh(self) -> bool:
        """
        Fetch a fresh snapshot. Returns False (and keeps the previous
        snapshot) if the source raised.
        """
        try:
            items = await self.source.fetch()
        except Exception as e:
            self.last_error = str(e)
            logger.warning(
                "Fetching %s failed, keeping last-known snapshot (%d items): %s",
                self.name, len(self._items), e,
            )
            return False

        self.replace(items)
        return True

    def replace(self, items: Sequence[T]) -> None:
        """Apply a snapshot, e.g. one pushed by a realtime channel."""
        self._items = list(items)
        self.last_refreshed_at = datetime.utcnow()
        self.last_error = None


class BacklogCaches:
    """The three backlog caches consumed by a focus session."""

    def __init__(
        self,
        activities: BacklogSource[Activity],
        deals: BacklogSource[DealSnapshot],
        contacts: BacklogSource[ContactSnapshot],
    ):
        self.activities: SnapshotCache[Activity] = SnapshotCache("activities", activities)
        self.deals: SnapshotCache[DealSnapshot] = SnapshotCache("deals", deals)
        self.contacts: SnapshotCache[ContactSnapshot] = SnapshotCache("contacts", contacts)

    def all(self) -> List[SnapshotCache]:
        return [self.activities, self.deals, self.contacts]

    @property
    def is_loading(self) -> bool:
        return not all(c.is_loaded for c in self.all())
