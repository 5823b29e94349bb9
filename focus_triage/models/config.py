"""Triage configuration — thresholds and timings for one operator session."""

from pydantic import BaseModel, Field


class TriageConfig(BaseModel):
    """Configuration for the Focus Triage Engine."""

    operator_id: str = "default"

    # Suggestion synthesis
    stalled_after_days: int = 7
    upsell_after_days: int = 30
    rescue_after_days: int = 30
    rescue_high_after_days: int = 60

    # Score buckets (score > high → high, score > medium → medium, else low)
    stalled_high_score: float = 30.0
    stalled_medium_score: float = 15.0
    upsell_high_score: float = 25.0
    upsell_medium_score: float = 10.0

    # Dispatcher
    activity_snooze_days: int = Field(ge=1, default=1)
    suggestion_snooze_days: int = Field(ge=1, default=1)

    # Briefing
    briefing_timeout_seconds: float = Field(gt=0, default=10.0)
