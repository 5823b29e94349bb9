"""Tests for the briefing service and deal advisor."""

import asyncio

from fakes import FakeBriefingGenerator, make_deal
from focus_triage.briefing.advisor import DealAdvisor, NextBestAction, derive_health
from focus_triage.briefing.service import (
    EMPTY_INBOX_BRIEFING,
    BriefingService,
    BriefingStats,
    fallback_briefing,
)

STATS = BriefingStats(overdue_activities=2, stalled_deals=3, upsell_deals=1)


class TestBriefingService:
    def test_generated_once_per_session(self):
        generator = FakeBriefingGenerator()
        service = BriefingService(generator)

        async def scenario():
            first = await service.get_briefing(STATS)
            second = await service.get_briefing(BriefingStats(overdue_activities=9))
            return first, second

        first, second = asyncio.run(scenario())
        assert first == second == "Three things need you today."
        assert generator.calls == 1

    def test_concurrent_requests_share_one_call(self):
        generator = FakeBriefingGenerator(delay=0.01)
        service = BriefingService(generator)

        async def scenario():
            return await asyncio.gather(
                service.get_briefing(STATS), service.get_briefing(STATS)
            )

        results = asyncio.run(scenario())
        assert results[0] == results[1]
        assert generator.calls == 1

    def test_failure_falls_back_without_retry(self):
        generator = FakeBriefingGenerator(fail=True)
        service = BriefingService(generator)

        async def scenario():
            await service.get_briefing(STATS)
            return await service.get_briefing(STATS)

        text = asyncio.run(scenario())
        assert text == fallback_briefing(STATS)
        assert "2 overdue activities" in text
        assert "3 stalled deals" in text
        assert generator.calls == 1

    def test_timeout_falls_back(self):
        service = BriefingService(FakeBriefingGenerator(delay=1.0), timeout_seconds=0.01)
        assert asyncio.run(service.get_briefing(STATS)) == fallback_briefing(STATS)

    def test_empty_backlog_skips_generator(self):
        generator = FakeBriefingGenerator()
        service = BriefingService(generator)
        assert asyncio.run(service.get_briefing(BriefingStats())) == EMPTY_INBOX_BRIEFING
        assert generator.calls == 0

    def test_empty_generator_text(self):
        service = BriefingService(FakeBriefingGenerator(text=""))
        assert asyncio.run(service.get_briefing(STATS)) != ""


class _Analyzer:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = 0

    async def analyze_deal(self, deal):
        self.calls += 1
        if self.fail:
            raise RuntimeError("model offline")
        return NextBestAction(action="Call the buyer", reason="No reply in 2 weeks",
                              urgency="high", probability_score=70)


class TestDealAdvisor:
    def test_advice_is_cached_per_deal(self):
        analyzer = _Analyzer()
        advisor = DealAdvisor(analyzer)
        deal = make_deal("d1", days_idle=10)

        async def scenario():
            await advisor.advise(deal)
            return await advisor.advise(deal)

        advice = asyncio.run(scenario())
        assert advice.action == "Call the buyer"
        assert analyzer.calls == 1

    def test_failure_falls_back_to_manual_review(self):
        advisor = DealAdvisor(_Analyzer(fail=True))
        advice = asyncio.run(advisor.advise(make_deal("d1", days_idle=10, probability=65)))
        assert advice.action == "Review deal manually"
        assert advice.probability_score == 65
        assert "model offline" in advice.error

    def test_health(self):
        assert derive_health(85).status == "excellent"
        assert derive_health(60).status == "good"
        assert derive_health(40).status == "warning"
        assert derive_health(39).status == "critical"
