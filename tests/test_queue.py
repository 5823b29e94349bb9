"""Tests for the Queue Builder."""

from datetime import timedelta

from fakes import NOW, make_activity, make_contact, make_deal
from focus_triage.models.crm import ActivityType
from focus_triage.models.focus import ActivityItem, SuggestionItem
from focus_triage.queue.builder import (
    BAND_HIGH_SUGGESTIONS,
    BAND_OTHER_SUGGESTIONS,
    BAND_OVERDUE,
    BAND_TODAY_MEETINGS,
    BAND_TODAY_TASKS,
    build_focus_queue,
    compute_stats,
    partition_activities,
)
from focus_triage.synthesis.synthesizer import SuggestionSynthesizer

YESTERDAY = NOW - timedelta(days=1)
TOMORROW = NOW + timedelta(days=1)


def _band(priority: int) -> int:
    return min(priority // 100, 4)


class TestPartition:
    def test_overdue_today_upcoming(self):
        activities = [
            make_activity("late", YESTERDAY),
            make_activity("morning", NOW.replace(hour=1)),
            make_activity("call", NOW.replace(hour=15), ActivityType.CALL),
            make_activity("later", TOMORROW),
            make_activity("done", YESTERDAY, completed=True),
        ]
        backlog = partition_activities(activities, NOW)
        assert [a.id for a in backlog.overdue] == ["late"]
        assert [a.id for a in backlog.today_meetings] == ["call"]
        assert [a.id for a in backlog.today_tasks] == ["morning"]
        assert [a.id for a in backlog.upcoming] == ["later"]
        assert [a.id for a in backlog.today] == ["morning", "call"]

    def test_earlier_today_is_not_overdue(self):
        """Overdue means due before the start of today."""
        backlog = partition_activities([make_activity("a", NOW - timedelta(hours=3))], NOW)
        assert backlog.overdue == []
        assert len(backlog.today_tasks) == 1


class TestBuildFocusQueue:
    def setup_method(self):
        self.synth = SuggestionSynthesizer()

    def test_band_example(self):
        """[overdue A, high suggestion S, today meeting B] → [A, S, B]."""
        a = make_activity("A", YESTERDAY)
        b = make_activity("B", NOW.replace(hour=16), ActivityType.MEETING)
        suggestions = self.synth.synthesize(
            [make_deal("S", days_idle=40, value=100000, probability=80)], [], now=NOW
        )
        queue = build_focus_queue([b, a], suggestions, NOW)

        assert [item.id for item in queue] == ["A", "stalled-S", "B"]
        assert [item.priority for item in queue] == [0, 100, 200]
        assert isinstance(queue[0], ActivityItem)
        assert isinstance(queue[1], SuggestionItem)

    def test_all_bands(self):
        activities = [
            make_activity("task", NOW.replace(hour=9), ActivityType.EMAIL),
            make_activity("meet", NOW.replace(hour=18), ActivityType.CALL),
            make_activity("late2", NOW - timedelta(days=2)),
            make_activity("late1", NOW - timedelta(days=5)),
        ]
        suggestions = self.synth.synthesize(
            [make_deal("hi", days_idle=40, value=100000, probability=80)],
            [make_contact("med", days_idle=40)],
            now=NOW,
        )
        queue = build_focus_queue(activities, suggestions, NOW)
        assert [item.id for item in queue] == [
            "late1", "late2", "stalled-hi", "meet", "task", "rescue-med",
        ]
        assert [item.priority for item in queue] == [
            BAND_OVERDUE, BAND_OVERDUE + 1, BAND_HIGH_SUGGESTIONS,
            BAND_TODAY_MEETINGS, BAND_TODAY_TASKS, BAND_OTHER_SUGGESTIONS,
        ]

    def test_band_invariant_with_overfull_band(self):
        """150 overdue activities still all precede the first high suggestion."""
        overdue = [
            make_activity(f"o{i:03d}", NOW - timedelta(days=200 - i)) for i in range(150)
        ]
        suggestions = self.synth.synthesize(
            [make_deal("hi", days_idle=40, value=100000, probability=80)], [], now=NOW
        )
        queue = build_focus_queue(overdue, suggestions, NOW)

        assert [item.id for item in queue[:150]] == [a.id for a in overdue]
        assert queue[150].id == "stalled-hi"
        bands = [_band(item.priority) for item in queue]
        assert bands == sorted(bands)

    def test_upcoming_and_completed_are_excluded(self):
        activities = [
            make_activity("later", TOMORROW),
            make_activity("done", YESTERDAY, completed=True),
        ]
        assert build_focus_queue(activities, [], NOW) == []

    def test_rebuild_is_deterministic(self):
        activities = [make_activity(f"a{i}", NOW - timedelta(hours=i * 7)) for i in range(8)]
        deals = [make_deal(f"d{i}", days_idle=8 + i * 5, value=500 * (i + 1)) for i in range(8)]
        contacts = [make_contact(f"c{i}", days_idle=31 + i * 10) for i in range(4)]

        def ids():
            suggestions = self.synth.synthesize(deals, contacts, now=NOW)
            return [item.id for item in build_focus_queue(activities, suggestions, NOW)]

        assert ids() == ids()


class TestStats:
    def test_counts(self):
        activities = [
            make_activity("late", YESTERDAY),
            make_activity("today", NOW.replace(hour=20)),
            make_activity("later", TOMORROW),
        ]
        suggestions = SuggestionSynthesizer().synthesize(
            [make_deal("d", days_idle=9)], [], now=NOW
        )
        stats = compute_stats(partition_activities(activities, NOW), suggestions)
        assert stats.overdue_count == 1
        assert stats.today_count == 1
        assert stats.upcoming_count == 1
        assert stats.suggestions_count == 1
        assert stats.total_pending == 3
        assert not stats.is_inbox_zero

    def test_inbox_zero(self):
        stats = compute_stats(partition_activities([], NOW), [])
        assert stats.is_inbox_zero
