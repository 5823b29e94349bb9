"""
Focus Session — one operator's unified work queue.

Holds the last-known backlog snapshots, the interaction records, the
pending writes and the cursor. Everything else is recomputed: the queue is
a pure function of (snapshots ⊕ pending writes, suppressions, now) and is
rebuilt from scratch after every refresh and every action.

Flow:
  refresh → rebuild → (navigate | act → dispatch → rebuild) → ...
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Deque, List, Optional

from focus_triage.briefing.advisor import DealAdvisor, DealAnalyzer, NextBestAction
from focus_triage.briefing.service import BriefingGenerator, BriefingService, BriefingStats
from focus_triage.dispatch.dispatcher import ActionDispatcher, CRMGateway, FocusAction
from focus_triage.dispatch.pending import (
    ACTIVITY_KINDS,
    DEAL_KINDS,
    INTERACTION_KINDS,
    PendingWrites,
)
from focus_triage.models.config import TriageConfig
from focus_triage.models.crm import ActivityType, DealSnapshot, to_naive_utc
from focus_triage.models.focus import ActivityItem, FocusItem, Notice, NoticeLevel, SuggestionItem
from focus_triage.models.interaction import InteractionRecord
from focus_triage.models.suggestion import DealRef, Suggestion, SuggestionType
from focus_triage.navigation.controller import NavigationController, NavigationResult
from focus_triage.queue.builder import (
    Backlog,
    FocusStats,
    build_focus_queue,
    compute_stats,
    partition_activities,
)
from focus_triage.sources.cache import BacklogCaches
from focus_triage.suppression.store import SuppressionStore, active_suppressions
from focus_triage.synthesis.synthesizer import SuggestionSynthesizer

logger = logging.getLogger(__name__)


class FocusSession:
    """The Focus Triage Engine for a single operator."""

    def __init__(
        self,
        caches: BacklogCaches,
        suppression_store: SuppressionStore,
        gateway: CRMGateway,
        briefing_generator: Optional[BriefingGenerator] = None,
        deal_analyzer: Optional[DealAnalyzer] = None,
        config: Optional[TriageConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.config = config or TriageConfig()
        self.caches = caches
        self.suppression_store = suppression_store
        self.pending = PendingWrites()
        self.dispatcher = ActionDispatcher(
            gateway=gateway,
            suppression_store=suppression_store,
            pending=self.pending,
            config=self.config,
        )
        self.synthesizer = SuggestionSynthesizer(self.config)
        self.navigation = NavigationController()
        self.briefing_service = BriefingService(
            briefing_generator, self.config.briefing_timeout_seconds
        )
        self.advisor = DealAdvisor(deal_analyzer, self.config.briefing_timeout_seconds)
        self._clock = clock or datetime.utcnow

        self._interactions: List[InteractionRecord] = []
        self._suggestions: List[Suggestion] = []
        self._backlog = Backlog()
        self._queue: List[FocusItem] = []

    # --- State ---

    @property
    def queue(self) -> List[FocusItem]:
        return list(self._queue)

    @property
    def suggestions(self) -> List[Suggestion]:
        return list(self._suggestions)

    @property
    def backlog(self) -> Backlog:
        return self._backlog

    @property
    def cursor(self) -> int:
        return self.navigation.cursor

    @property
    def current_item(self) -> Optional[FocusItem]:
        return self.navigation.current(self._queue)

    @property
    def notices(self) -> Deque[Notice]:
        return self.dispatcher.notices

    @property
    def is_loading(self) -> bool:
        return self.caches.is_loading

    def apply_config(self, config: TriageConfig) -> None:
        """Swap the configuration and rebuild with the new thresholds."""
        self.config = config
        self.dispatcher.config = config
        self.synthesizer.config = config
        self.rebuild()

    def stats(self) -> FocusStats:
        return compute_stats(self._backlog, self._suggestions)

    def briefing_stats(self) -> BriefingStats:
        counts = {t: 0 for t in SuggestionType}
        for suggestion in self._suggestions:
            counts[suggestion.type] += 1
        return BriefingStats(
            overdue_activities=len(self._backlog.overdue),
            stalled_deals=counts[SuggestionType.STALLED],
            upsell_deals=counts[SuggestionType.UPSELL],
            rescue_contacts=counts[SuggestionType.RESCUE],
        )

    # --- Refresh / rebuild ---

    async def refresh(self) -> List[FocusItem]:
        """Re-read every source, prune reconciled writes and rebuild."""
        tick = self.pending.mark()
        activities_ok, deals_ok, _, interactions_ok = await asyncio.gather(
            self.caches.activities.refresh(),
            self.caches.deals.refresh(),
            self.caches.contacts.refresh(),
            self._refresh_interactions(),
        )
        if activities_ok:
            self.pending.prune(tick, ACTIVITY_KINDS)
        if deals_ok:
            self.pending.prune(tick, DEAL_KINDS)
        if interactions_ok:
            self.pending.prune(tick, INTERACTION_KINDS)
        return self.rebuild()

    async def _refresh_interactions(self) -> bool:
        try:
            self._interactions = await self.suppression_store.list_interactions()
        except Exception as e:
            logger.warning(
                "Reading interactions failed, keeping %d known records: %s",
                len(self._interactions), e,
            )
            return False
        return True

    def rebuild(self, now: Optional[datetime] = None) -> List[FocusItem]:
        """Recompute suggestions and the queue from the cached state."""
        if now is None:
            now = self._clock()
        now = to_naive_utc(now)

        activities = self.pending.overlay_activities(self.caches.activities.items)
        deals = self.pending.overlay_deals(self.caches.deals.items)
        interactions = self.pending.overlay_interactions(self._interactions)
        suppressed = active_suppressions(interactions, now)

        self._suggestions = self.synthesizer.synthesize(
            deals, self.caches.contacts.items, suppressed, now
        )
        self._backlog = partition_activities(activities, now)
        self._queue = build_focus_queue(activities, self._suggestions, now)
        self.navigation.on_rebuild(len(self._queue))

        logger.debug(
            "Rebuilt focus queue: %d items, cursor %d", len(self._queue), self.cursor
        )
        return self.queue

    async def settle(self) -> List[FocusItem]:
        """Wait for in-flight mutations, then rebuild."""
        await self.dispatcher.drain()
        return self.rebuild()

    # --- Navigation ---

    def next(self) -> NavigationResult:
        return self.navigation.next(self._queue)

    def prev(self) -> NavigationResult:
        return self.navigation.prev(self._queue)

    def skip(self) -> NavigationResult:
        result = self.navigation.skip(self._queue)
        if result.notice and self._queue:
            self.notices.append(Notice(level=NoticeLevel.INFO, message=result.notice))
        return result

    def select(self, item_id: str) -> NavigationResult:
        return self.navigation.select(item_id, self._queue)

    # --- Actions ---

    def act(self, action: FocusAction, now: Optional[datetime] = None) -> Optional[FocusItem]:
        """
        Apply ``action`` to the current item. Returns the item now under the
        cursor, or None if the queue was (or became) empty.
        """
        item = self.current_item
        if item is None:
            return None
        if now is None:
            now = self._clock()
        now = to_naive_utc(now)

        cursor = self.dispatcher.dispatch(action, item, self.cursor, len(self._queue), now)
        self.navigation.move_to(cursor, len(self._queue))
        self.rebuild(now)
        return self.current_item

    def done(self, now: Optional[datetime] = None) -> Optional[FocusItem]:
        return self.act(FocusAction.DONE, now)

    def snooze(self, now: Optional[datetime] = None) -> Optional[FocusItem]:
        return self.act(FocusAction.SNOOZE, now)

    def dismiss(self, now: Optional[datetime] = None) -> Optional[FocusItem]:
        return self.act(FocusAction.DISMISS, now)

    def create_activity(
        self,
        title: str,
        activity_type: ActivityType,
        date: Optional[datetime] = None,
    ) -> str:
        """Create a follow-up activity; returns its temporary id."""
        now = self._clock()
        temp_id = self.dispatcher.create_activity_from_action(title, activity_type, date, now)
        self.rebuild(now)
        return temp_id

    # --- Best-effort text ---

    async def briefing(self) -> str:
        return await self.briefing_service.get_briefing(self.briefing_stats())

    async def advise_current(self) -> Optional[NextBestAction]:
        """Next-best-action for the deal behind the current item, if any."""
        deal = self._deal_for(self.current_item)
        if deal is None:
            return None
        return await self.advisor.advise(deal)

    def _deal_for(self, item: Optional[FocusItem]) -> Optional[DealSnapshot]:
        if isinstance(item, SuggestionItem):
            payload = item.suggestion.payload
            return payload.deal if isinstance(payload, DealRef) else None
        if isinstance(item, ActivityItem) and item.activity.deal_id:
            deal_id = item.activity.deal_id
            return next((d for d in self.caches.deals.items if d.id == deal_id), None)
        return None
