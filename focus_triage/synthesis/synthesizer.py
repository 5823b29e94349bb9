"""
Suggestion Synthesizer — derives candidate suggestions from CRM snapshots.

Three independent families, not mutually exclusive per entity:
  STALLED: open deal untouched for more than 7 days
  UPSELL:  won deal untouched for more than 30 days
  RESCUE:  active contact with no interaction/purchase for more than 30 days

Every candidate is checked against the operator's suppressions before it
becomes a Suggestion. Output is stable-sorted by priority.
"""

import logging
from datetime import datetime, timedelta
from typing import AbstractSet, Callable, List, Optional, Sequence

from focus_triage.models.config import TriageConfig
from focus_triage.models.crm import ContactSnapshot, ContactStatus, DealSnapshot
from focus_triage.models.suggestion import (
    ContactRef,
    DealRef,
    Suggestion,
    SuggestionKey,
    SuggestionPriority,
    SuggestionType,
)
from focus_triage.scoring.engine import bucket, days_since, score

logger = logging.getLogger(__name__)


class SuggestionInvariantError(Exception):
    """Raised when synthesis would emit two suggestions with the same id."""
    pass


def _format_value(value: float) -> str:
    return f"{value:,.0f}"


class SuggestionSynthesizer:
    """
    Rule-based suggestion synthesizer.
    Each rule maps the snapshots to a list of candidates of one family.
    """

    def __init__(self, config: Optional[TriageConfig] = None):
        self.config = config or TriageConfig()
        self._rules: List[Callable] = []
        self._register_default_rules()

    def _register_default_rules(self) -> None:
        """Register the built-in families, in output order."""
        self._rules = [
            self._stalled_deals,
            self._upsell_deals,
            self._rescue_contacts,
        ]

    def synthesize(
        self,
        deals: Sequence[DealSnapshot],
        contacts: Sequence[ContactSnapshot],
        suppressed: AbstractSet[SuggestionKey] = frozenset(),
        now: Optional[datetime] = None,
    ) -> List[Suggestion]:
        """Derive the surviving suggestions for the given snapshots."""
        if now is None:
            now = datetime.utcnow()

        suggestions: List[Suggestion] = []
        seen = set()
        for rule in self._rules:
            for candidate in rule(deals, contacts, now):
                if candidate.id in seen:
                    raise SuggestionInvariantError(
                        f"Duplicate suggestion id {candidate.id!r}"
                    )
                seen.add(candidate.id)
                if candidate.key in suppressed:
                    continue
                suggestions.append(candidate)

        # sorted() is stable: equal priorities keep family/score order
        suggestions = sorted(suggestions, key=lambda s: s.priority.rank)
        logger.debug(
            "Synthesized %d suggestions (%d candidates, %d suppressed keys)",
            len(suggestions), len(seen), len(suppressed),
        )
        return suggestions

    # --- Families ---

    def _stalled_deals(
        self,
        deals: Sequence[DealSnapshot],
        contacts: Sequence[ContactSnapshot],
        now: datetime,
    ) -> List[Suggestion]:
        cutoff = now - timedelta(days=self.config.stalled_after_days)
        scored = [
            (deal, score(deal, SuggestionType.STALLED, now))
            for deal in deals
            if deal.is_open and deal.updated_at < cutoff
        ]
        scored.sort(key=lambda pair: pair[1], reverse=True)

        results = []
        for deal, value in scored:
            idle_days = days_since(deal.updated_at, now)
            probability = deal.probability if deal.probability is not None else 50
            results.append(self._deal_suggestion(
                SuggestionType.STALLED,
                deal,
                value,
                title=f"Stalled deal ({idle_days}d)",
                description=(
                    f"{deal.title} - {_format_value(deal.value)} "
                    f"• {probability}% probability"
                ),
                now=now,
            ))
        return results

    def _upsell_deals(
        self,
        deals: Sequence[DealSnapshot],
        contacts: Sequence[ContactSnapshot],
        now: datetime,
    ) -> List[Suggestion]:
        cutoff = now - timedelta(days=self.config.upsell_after_days)
        scored = [
            (deal, score(deal, SuggestionType.UPSELL, now))
            for deal in deals
            if deal.is_won and deal.updated_at < cutoff
        ]
        scored.sort(key=lambda pair: pair[1], reverse=True)

        results = []
        for deal, value in scored:
            closed_days = days_since(deal.updated_at, now)
            results.append(self._deal_suggestion(
                SuggestionType.UPSELL,
                deal,
                value,
                title="Upsell opportunity",
                description=(
                    f"{deal.company_name or deal.title} closed {closed_days} days ago "
                    f"• {_format_value(deal.value)}"
                ),
                now=now,
            ))
        return results

    def _rescue_contacts(
        self,
        deals: Sequence[DealSnapshot],
        contacts: Sequence[ContactSnapshot],
        now: datetime,
    ) -> List[Suggestion]:
        cutoff = now - timedelta(days=self.config.rescue_after_days)
        results = []
        for contact in contacts:
            if contact.status != ContactStatus.ACTIVE:
                continue

            last_activity = contact.last_activity_at
            if last_activity is None:
                priority = SuggestionPriority.HIGH
                description = f"{contact.name} never interacted - reach out!"
            elif last_activity < cutoff:
                idle_days = days_since(last_activity, now)
                priority = (
                    SuggestionPriority.HIGH
                    if idle_days > self.config.rescue_high_after_days
                    else SuggestionPriority.MEDIUM
                )
                description = f"{contact.name} has not interacted for {idle_days} days"
            else:
                continue

            key = SuggestionKey(type=SuggestionType.RESCUE, entity_id=contact.id)
            results.append(Suggestion(
                id=key.suggestion_id,
                type=SuggestionType.RESCUE,
                title="Churn risk",
                description=description,
                priority=priority,
                payload=ContactRef(contact=contact),
                created_at=now,
            ))
        return results

    def _deal_suggestion(
        self,
        kind: SuggestionType,
        deal: DealSnapshot,
        value: float,
        title: str,
        description: str,
        now: datetime,
    ) -> Suggestion:
        key = SuggestionKey(type=kind, entity_id=deal.id)
        return Suggestion(
            id=key.suggestion_id,
            type=kind,
            title=title,
            description=description,
            priority=bucket(value, kind, self.config),
            payload=DealRef(deal=deal),
            score=round(value, 4),
            created_at=now,
        )
