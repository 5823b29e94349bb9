"""
Scoring Engine — urgency of deal-derived suggestions.

Pure and total: no I/O, no error conditions. Malformed inputs fall back to
neutral defaults (probability 50, value 0).
"""

import math
from datetime import datetime
from typing import Optional

from focus_triage.models.config import TriageConfig
from focus_triage.models.crm import DealSnapshot
from focus_triage.models.suggestion import SuggestionPriority, SuggestionType

DEFAULT_PROBABILITY = 50
TIME_FACTOR_CAP = 2.0


def days_since(moment: datetime, now: datetime) -> int:
    """Whole days elapsed from ``moment`` to ``now``, never negative."""
    return max(0, (now - moment).days)


def score(
    deal: DealSnapshot,
    kind: SuggestionType,
    now: Optional[datetime] = None,
) -> float:
    """
    Urgency score for a STALLED or UPSELL suggestion on ``deal``.

    score = log10(max(value, 1)) * 10 * probFactor * (1 + timeFactor)

    STALLED rewards high probability (a likely deal going cold), UPSELL
    rewards low probability. The time factor grows by 1 every 30 days and
    is capped at 2.
    """
    if now is None:
        now = datetime.utcnow()

    value = deal.value or 0
    probability = deal.probability if deal.probability is not None else DEFAULT_PROBABILITY
    probability = min(100, max(0, probability))

    value_score = math.log10(max(value, 1)) * 10

    if kind == SuggestionType.STALLED:
        prob_factor = probability / 100
    else:
        prob_factor = (100 - probability) / 100

    time_factor = min(days_since(deal.updated_at, now) / 30, TIME_FACTOR_CAP)

    return value_score * prob_factor * (1 + time_factor)


def bucket(
    value: float,
    kind: SuggestionType,
    config: Optional[TriageConfig] = None,
) -> SuggestionPriority:
    """Map a score to a suggestion priority."""
    config = config or TriageConfig()
    if kind == SuggestionType.STALLED:
        high, medium = config.stalled_high_score, config.stalled_medium_score
    else:
        high, medium = config.upsell_high_score, config.upsell_medium_score

    if value > high:
        return SuggestionPriority.HIGH
    if value > medium:
        return SuggestionPriority.MEDIUM
    return SuggestionPriority.LOW
