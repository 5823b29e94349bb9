"""Next-best-action advice for the deal behind the current focus item."""

import asyncio
import logging
from typing import Dict, Optional, Protocol

from pydantic import BaseModel, Field

from focus_triage.models.crm import ActivityType, DealSnapshot

logger = logging.getLogger(__name__)


class NextBestAction(BaseModel):
    """Short actionable advice for one deal."""

    action: str                             # Short imperative, e.g. "Call the buyer"
    reason: str
    action_type: ActivityType = ActivityType.TASK
    urgency: str = "low"                    # "low" | "medium" | "high"
    probability_score: int = Field(ge=0, le=100, default=50)
    error: Optional[str] = None


class DealHealth(BaseModel):
    score: int
    status: str                             # "critical" | "warning" | "good" | "excellent"


class DealAnalyzer(Protocol):
    """Protocol for the external next-best-action capability."""

    async def analyze_deal(self, deal: DealSnapshot) -> NextBestAction: ...


def derive_health(probability: int) -> DealHealth:
    """Map a 0-100 probability onto a health status."""
    if probability >= 80:
        return DealHealth(score=probability, status="excellent")
    if probability >= 60:
        return DealHealth(score=probability, status="good")
    if probability >= 40:
        return DealHealth(score=probability, status="warning")
    return DealHealth(score=probability, status="critical")


class DealAdvisor:
    """
    Best-effort next-best-action lookup, cached per deal for the session.
    Failures produce a manual-review fallback and are cached too.
    """

    def __init__(
        self,
        analyzer: Optional[DealAnalyzer] = None,
        timeout_seconds: float = 10.0,
    ):
        self.analyzer = analyzer
        self.timeout_seconds = timeout_seconds
        self._cache: Dict[str, NextBestAction] = {}

    async def advise(self, deal: DealSnapshot) -> NextBestAction:
        cached = self._cache.get(deal.id)
        if cached is not None:
            return cached

        if self.analyzer is None:
            advice = self._fallback(deal, None)
        else:
            try:
                advice = await asyncio.wait_for(
                    self.analyzer.analyze_deal(deal), timeout=self.timeout_seconds
                )
            except Exception as e:
                logger.warning("Deal analysis failed for %s: %s", deal.id, e)
                advice = self._fallback(deal, e)

        self._cache[deal.id] = advice
        return advice

    def _fallback(self, deal: DealSnapshot, error: Optional[Exception]) -> NextBestAction:
        probability = deal.probability if deal.probability is not None else 50
        return NextBestAction(
            action="Review deal manually",
            reason="Automated analysis is unavailable",
            probability_score=probability,
            error=str(error) if error else None,
        )
