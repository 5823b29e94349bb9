"""
Briefing Service — best-effort natural-language summary of the backlog.

Behavioral Contract:
- Requested at most once per session; never retried automatically.
- Bounded by a timeout. On failure or timeout a deterministic fallback,
  built from backlog sizes, is used instead.
- An empty backlog never reaches the generator.
"""

import asyncio
import logging
from typing import Optional, Protocol

from pydantic import BaseModel

logger = logging.getLogger(__name__)

EMPTY_INBOX_BRIEFING = "Your inbox is clear! Nothing pending right now."
EMPTY_GENERATOR_BRIEFING = "No critical items pending. Good work!"


class BriefingStats(BaseModel):
    """Backlog sizes handed to the briefing generator."""

    overdue_activities: int = 0
    stalled_deals: int = 0
    upsell_deals: int = 0
    rescue_contacts: int = 0

    @property
    def is_empty(self) -> bool:
        return not (
            self.overdue_activities
            or self.stalled_deals
            or self.upsell_deals
            or self.rescue_contacts
        )


class BriefingGenerator(Protocol):
    """Protocol for the external text-generation capability."""

    async def generate_briefing(self, stats: BriefingStats) -> str: ...


def fallback_briefing(stats: BriefingStats) -> str:
    return (
        f"You have {stats.overdue_activities} overdue activities, "
        f"{stats.stalled_deals} stalled deals and "
        f"{stats.upsell_deals} upsell opportunities."
    )


class BriefingService:
    """Guards the single briefing request of a session."""

    def __init__(
        self,
        generator: Optional[BriefingGenerator] = None,
        timeout_seconds: float = 10.0,
    ):
        self.generator = generator
        self.timeout_seconds = timeout_seconds
        self._briefing: Optional[str] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def briefing(self) -> Optional[str]:
        return self._briefing

    async def get_briefing(self, stats: BriefingStats) -> str:
        """Return the session briefing, generating it on first use."""
        if self._briefing is not None:
            return self._briefing
        if self._task is None:
            self._task = asyncio.ensure_future(self._generate(stats))
        return await asyncio.shield(self._task)

    async def _generate(self, stats: BriefingStats) -> str:
        if stats.is_empty:
            self._briefing = EMPTY_INBOX_BRIEFING
            return self._briefing

        if self.generator is None:
            self._briefing = fallback_briefing(stats)
            return self._briefing

        try:
            text = await asyncio.wait_for(
                self.generator.generate_briefing(stats),
                timeout=self.timeout_seconds,
            )
            self._briefing = text or EMPTY_GENERATOR_BRIEFING
        except asyncio.TimeoutError:
            logger.warning(
                "Briefing generation timed out after %.1fs, using fallback",
                self.timeout_seconds,
            )
            self._briefing = fallback_briefing(stats)
        except Exception as e:
            logger.warning("Briefing generation failed, using fallback: %s", e)
            self._briefing = fallback_briefing(stats)
        return self._briefing
