"""Tests for the Navigation Controller."""

import random
from datetime import timedelta

import pytest

from fakes import NOW, make_activity
from focus_triage.models.focus import ActivityItem
from focus_triage.navigation.controller import (
    NavigationAction,
    NavigationController,
    SKIPPED_NOTICE,
    clamp_cursor,
    cursor_after_removal,
    reduce_cursor,
)


def _queue(n: int):
    return [
        ActivityItem(priority=i, activity=make_activity(f"a{i}", NOW - timedelta(days=n - i)))
        for i in range(n)
    ]


class TestReduceCursor:
    def test_next_and_prev_are_bounded(self):
        queue = _queue(3)
        assert reduce_cursor(0, NavigationAction.NEXT, queue).cursor == 1
        assert reduce_cursor(2, NavigationAction.NEXT, queue).cursor == 2
        assert reduce_cursor(1, NavigationAction.PREV, queue).cursor == 0
        assert reduce_cursor(0, NavigationAction.PREV, queue).cursor == 0

    def test_skip_moves_and_notices(self):
        result = reduce_cursor(0, NavigationAction.SKIP, _queue(2))
        assert result.cursor == 1
        assert result.notice == SKIPPED_NOTICE

    def test_select(self):
        queue = _queue(4)
        assert reduce_cursor(0, NavigationAction.SELECT, queue, "a3").cursor == 3
        assert reduce_cursor(2, NavigationAction.SELECT, queue, "missing").cursor == 2

    @pytest.mark.parametrize("action", list(NavigationAction))
    def test_empty_queue_is_terminal(self, action):
        result = reduce_cursor(5, action, [], "a0")
        assert result.cursor == 0
        assert result.notice is None

    def test_stale_cursor_is_clamped_first(self):
        assert reduce_cursor(10, NavigationAction.PREV, _queue(3)).cursor == 1


class TestCursorHelpers:
    def test_clamp(self):
        assert clamp_cursor(-1, 3) == 0
        assert clamp_cursor(7, 3) == 2
        assert clamp_cursor(4, 0) == 0

    def test_removal_keeps_position(self):
        """Removing the current item lets the next one slide under the cursor."""
        assert cursor_after_removal(0, 3) == 0
        assert cursor_after_removal(1, 3) == 1

    def test_removal_of_last_steps_back(self):
        assert cursor_after_removal(2, 3) == 1
        assert cursor_after_removal(0, 1) == 0


class TestNavigationController:
    def test_current_item(self):
        nav = NavigationController()
        queue = _queue(3)
        assert nav.current(queue).id == "a0"
        nav.next(queue)
        assert nav.current(queue).id == "a1"
        assert nav.current([]) is None

    def test_rebuild_shrinks_cursor(self):
        nav = NavigationController()
        queue = _queue(5)
        nav.select("a4", queue)
        nav.on_rebuild(2)
        assert nav.cursor == 1
        nav.on_rebuild(0)
        assert nav.cursor == 0

    def test_cursor_bound_under_random_interleaving(self):
        """0 <= cursor < max(1, len(queue)) after every transition."""
        rng = random.Random(1234)
        nav = NavigationController()
        length = 5
        for _ in range(2000):
            step = rng.choice(["next", "prev", "skip", "select", "remove", "grow", "shrink"])
            queue = _queue(length)
            if step == "next":
                nav.next(queue)
            elif step == "prev":
                nav.prev(queue)
            elif step == "skip":
                nav.skip(queue)
            elif step == "select":
                nav.select(f"a{rng.randrange(0, 8)}", queue)
            elif step == "remove" and length:
                nav.move_to(cursor_after_removal(nav.cursor, length), length)
                length -= 1
                nav.on_rebuild(length)
            elif step == "grow":
                length += rng.randrange(1, 3)
                nav.on_rebuild(length)
            elif step == "shrink":
                length = max(0, length - rng.randrange(1, 4))
                nav.on_rebuild(length)

            assert 0 <= nav.cursor < max(1, length)
            if length == 0:
                assert nav.cursor == 0
                assert nav.current(_queue(0)) is None
