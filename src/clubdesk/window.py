"""
Windowed message rendering math.

Only the slice of messages inside (or near) the viewport is rendered; the
rest of the list is represented by top and bottom spacers sized with a fixed
estimated item height. Real items may be taller or shorter, so the scroll
position drifts slightly; that is accepted.
"""

import math
from typing import Optional

ITEM_HEIGHT = 80
OVERSCAN = 5
TOP_THRESHOLD = 100
BOTTOM_THRESHOLD = 100


def visible_range(
    scroll_top: float,
    container_height: float,
    length: int,
    item_height: float = ITEM_HEIGHT,
    overscan: int = OVERSCAN,
) -> tuple[int, int]:
    """Inclusive ``(start, end)`` indexes to render. ``(0, -1)`` for an empty list."""
    if length <= 0:
        return 0, -1
    start = max(0, math.floor(scroll_top / item_height) - overscan)
    end = min(length - 1, math.ceil((scroll_top + container_height) / item_height) + overscan)
    return start, max(start - 1, end)


class MessageWindow:
    def __init__(
        self,
        container_height: float = 0,
        item_height: float = ITEM_HEIGHT,
        overscan: int = OVERSCAN,
        top_threshold: float = TOP_THRESHOLD,
        bottom_threshold: float = BOTTOM_THRESHOLD,
    ):
        if item_height <= 0:
            raise ValueError("item_height must be positive")
        self.item_height = item_height
        self.overscan = overscan
        self.top_threshold = top_threshold
        self.bottom_threshold = bottom_threshold
        self.container_height = container_height
        self.scroll_top: float = 0
        self.length = 0
        self.unseen = 0
        self._load_armed = True

    @property
    def scroll_height(self) -> float:
        return self.length * self.item_height

    @property
    def max_scroll_top(self) -> float:
        return max(0.0, self.scroll_height - self.container_height)

    @property
    def near_bottom(self) -> bool:
        return self.scroll_height - self.scroll_top - self.container_height < self.bottom_threshold

    @property
    def near_top(self) -> bool:
        return self.scroll_top < self.top_threshold

    @property
    def show_new_messages(self) -> bool:
        """Whether to show the "new messages" affordance instead of jumping."""
        return self.unseen > 0

    @property
    def visible(self) -> tuple[int, int]:
        return visible_range(self.scroll_top, self.container_height, self.length, self.item_height, self.overscan)

    @property
    def top_spacer(self) -> float:
        start, _ = self.visible
        return start * self.item_height

    @property
    def bottom_spacer(self) -> float:
        _, end = self.visible
        return max(0, self.length - end - 1) * self.item_height

    def slice(self, items: list) -> list:
        start, end = self.visible
        return items[start:end + 1]

    def resize(self, container_height: float) -> None:
        self.container_height = container_height
        self.scroll_top = min(self.scroll_top, self.max_scroll_top)

    def reset(self, length: int) -> None:
        """Show a freshly loaded list pinned to the bottom."""
        self.length = length
        self.unseen = 0
        self.scroll_top = self.max_scroll_top
        self._load_armed = True

    def on_scroll(self, scroll_top: float, has_more: bool, loading_more: bool) -> bool:
        """Record a scroll; returns True when a backward page load should start.

        Fires once per entry into the near-top zone. It re-arms only after the
        viewport leaves the zone, so scroll ticks inside the zone while a load
        is running never trigger another one.
        """
        self.scroll_top = max(0.0, min(scroll_top, self.max_scroll_top))
        if self.near_bottom:
            self.unseen = 0
        if not self.near_top:
            self._load_armed = True
            return False
        if self._load_armed and has_more and not loading_more:
            self._load_armed = False
            return True
        return False

    def on_prepended(self, count: int) -> None:
        """Older messages were inserted above: keep the same messages in view."""
        if count <= 0:
            return
        self.length += count
        self.scroll_top += count * self.item_height
        if not self.near_top:
            self._load_armed = True

    def on_appended(self, count: int) -> bool:
        """New messages arrived below. Returns True if the view auto-scrolled to them.

        Auto-scroll happens only when the viewport was near the bottom before
        the append; otherwise the position is kept and the messages count as unseen.
        """
        if count <= 0:
            return False
        was_near_bottom = self.near_bottom
        self.length += count
        if was_near_bottom:
            self.scroll_top = self.max_scroll_top
            self.unseen = 0
            return True
        self.unseen += count
        return False

    def on_removed(self, count: int) -> None:
        if count <= 0:
            return
        self.length = max(0, self.length - count)
        self.scroll_top = min(self.scroll_top, self.max_scroll_top)

    def scroll_to_bottom(self) -> None:
        self.scroll_top = self.max_scroll_top
        self.unseen = 0

    def index_at(self, offset: float) -> Optional[int]:
        """Index of the item under a content offset, or None past the end."""
        if offset < 0 or self.length == 0:
            return None
        idx = int(offset // self.item_height)
        return idx if idx < self.length else None
