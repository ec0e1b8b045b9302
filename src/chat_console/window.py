"""Visible-slice computation for the fixed-height message viewport."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Sequence, Tuple, TypeVar

VISIBLE_ITEMS = 15

T = TypeVar("T")


@dataclass(frozen=True)
class MessageWindow(Generic[T]):
    items: Tuple[T, ...]
    start: int
    end: int
    adjusted_start: int
    adjusted_end: int
    selected_index: int
    total: int
    show_scroll_up: bool
    show_scroll_down: bool

    @property
    def earlier_count(self) -> int:
        return self.adjusted_start if self.show_scroll_up else 0

    @property
    def more_count(self) -> int:
        return self.total - self.end if self.show_scroll_down else 0


def compute_window(entries: Sequence[T], selected_index: int, capacity: int = VISIBLE_ITEMS) -> MessageWindow[T]:
    """Return the slice of ``entries`` to draw so ``selected_index`` stays visible.

    Scroll indicators take one row each out of ``capacity``. With a capacity
    below 3 the selection may fall outside the drawn slice.
    """

    total = len(entries)
    if capacity <= 0:
        raise ValueError("capacity must be positive")
    selected_index = max(0, min(selected_index, total - 1)) if total else 0
    if total <= capacity:
        return MessageWindow(
            items=tuple(entries),
            start=0,
            end=total,
            adjusted_start=0,
            adjusted_end=total,
            selected_index=selected_index,
            total=total,
            show_scroll_up=False,
            show_scroll_down=False,
        )

    start = max(0, selected_index - capacity // 2)
    start = min(start, total - capacity)
    end = start + capacity
    show_scroll_up = start > 0
    show_scroll_down = end < total
    adjusted_start = start + 1 if show_scroll_up else start
    adjusted_end = end - 1 if show_scroll_down else end
    return MessageWindow(
        items=tuple(entries[adjusted_start:adjusted_end]),
        start=start,
        end=end,
        adjusted_start=adjusted_start,
        adjusted_end=adjusted_end,
        selected_index=selected_index,
        total=total,
        show_scroll_up=show_scroll_up,
        show_scroll_down=show_scroll_down,
    )
