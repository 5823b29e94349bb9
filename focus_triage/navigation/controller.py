"""
Navigation Controller — cursor state machine over the focus queue.

States:
  EMPTY (no current item, cursor = 0) ⇄ POSITIONED (0 <= cursor < len(queue))

The controller tracks the integer position, not item identity, across
rebuilds: when an action removes the current item, the same index shows the
next one.
"""

from enum import Enum
from typing import NamedTuple, Optional, Sequence

from focus_triage.models.focus import FocusItem


class NavigationAction(str, Enum):
    NEXT = "next"
    PREV = "prev"
    SKIP = "skip"
    SELECT = "select"


class NavigationResult(NamedTuple):
    cursor: int
    notice: Optional[str] = None


SKIPPED_NOTICE = "Skipped to the next item"


def clamp_cursor(cursor: int, length: int) -> int:
    """Clamp a cursor into [0, length - 1], or 0 for an empty queue."""
    if length <= 0:
        return 0
    return min(max(cursor, 0), length - 1)


def reduce_cursor(
    cursor: int,
    action: NavigationAction,
    queue: Sequence[FocusItem],
    item_id: Optional[str] = None,
) -> NavigationResult:
    """Pure transition function: (cursor, action, queue) -> new cursor."""
    length = len(queue)
    cursor = clamp_cursor(cursor, length)
    if length == 0:
        return NavigationResult(cursor=0)

    if action == NavigationAction.NEXT:
        return NavigationResult(cursor=min(cursor + 1, length - 1))
    if action == NavigationAction.PREV:
        return NavigationResult(cursor=max(cursor - 1, 0))
    if action == NavigationAction.SKIP:
        return NavigationResult(cursor=min(cursor + 1, length - 1), notice=SKIPPED_NOTICE)
    if action == NavigationAction.SELECT:
        for index, item in enumerate(queue):
            if item.id == item_id:
                return NavigationResult(cursor=index)
        return NavigationResult(cursor=cursor)

    raise ValueError(f"Unknown navigation action: {action!r}")


def cursor_after_removal(cursor: int, length: int) -> int:
    """
    Cursor to use after the current item is about to leave the queue.

    Stays put (the next item slides into place) unless the cursor sat on the
    last index, in which case it steps back by one.
    """
    if length <= 0:
        return 0
    if cursor >= length - 1:
        return max(0, length - 2)
    return cursor


class NavigationController:
    """Holds the cursor for one operator session."""

    def __init__(self):
        self._cursor = 0

    @property
    def cursor(self) -> int:
        return self._cursor

    def current(self, queue: Sequence[FocusItem]) -> Optional[FocusItem]:
        """The item under the cursor, or None for an empty queue."""
        if not queue:
            return None
        return queue[clamp_cursor(self._cursor, len(queue))]

    def apply(
        self,
        action: NavigationAction,
        queue: Sequence[FocusItem],
        item_id: Optional[str] = None,
    ) -> NavigationResult:
        result = reduce_cursor(self._cursor, action, queue, item_id)
        self._cursor = result.cursor
        return result

    def next(self, queue: Sequence[FocusItem]) -> NavigationResult:
        return self.apply(NavigationAction.NEXT, queue)

    def prev(self, queue: Sequence[FocusItem]) -> NavigationResult:
        return self.apply(NavigationAction.PREV, queue)

    def skip(self, queue: Sequence[FocusItem]) -> NavigationResult:
        return self.apply(NavigationAction.SKIP, queue)

    def select(self, item_id: str, queue: Sequence[FocusItem]) -> NavigationResult:
        return self.apply(NavigationAction.SELECT, queue, item_id)

    def move_to(self, cursor: int, length: int) -> None:
        self._cursor = clamp_cursor(cursor, length)

    def on_rebuild(self, length: int) -> None:
        """Re-clamp after the queue was rebuilt."""
        if self._cursor >= length:
            self._cursor = max(0, length - 1)
