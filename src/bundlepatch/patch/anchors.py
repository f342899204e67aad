from __future__ import annotations

import re
from typing import List, Optional, Tuple

from .models import (
    Anchor,
    AnchorNotFound,
    SearchDirection,
    SecondaryAnchorMissing,
    Window,
)


def _primary_offsets(buffer: str, anchor: Anchor, start: int, end: int) -> List[int]:
    if anchor.regex:
        pattern = re.compile(anchor.pattern)
        return [m.start() for m in pattern.finditer(buffer, start, end)]

    offsets: List[int] = []
    pos = buffer.find(anchor.pattern, start, end)
    while pos != -1:
        offsets.append(pos)
        pos = buffer.find(anchor.pattern, pos + 1, end)
    return offsets


def _has_secondary(buffer: str, anchor: Anchor, offset: int) -> bool:
    assert anchor.secondary is not None
    limit = min(len(buffer), offset + anchor.secondary_distance)
    return buffer.find(anchor.secondary, offset, limit) != -1


def find_anchor_offsets(
    buffer: str,
    anchor: Anchor,
    start: int = 0,
    end: Optional[int] = None,
) -> List[int]:
    """
    Return every offset in buffer[start:end] where the anchor matches, in
    buffer order.

    When the anchor carries a secondary, an occurrence only qualifies if the
    secondary text fits entirely within the anchor.secondary_distance
    characters that start at it.
    """
    stop = len(buffer) if end is None else min(end, len(buffer))
    begin = max(0, start)

    offsets = _primary_offsets(buffer, anchor, begin, stop)
    if not offsets:
        raise AnchorNotFound(
            f"Anchor not found: {anchor.pattern!r}",
            hint="The bundle layout may have changed for this version.",
        )

    if anchor.secondary is None:
        return offsets

    qualified = [o for o in offsets if _has_secondary(buffer, anchor, o)]
    if not qualified:
        raise SecondaryAnchorMissing(
            f"Anchor {anchor.pattern!r} found {len(offsets)} time(s) but "
            f"{anchor.secondary!r} never follows within {anchor.secondary_distance}",
        )
    return qualified


def select_offset(offsets: List[int], direction: SearchDirection) -> int:
    if not offsets:
        raise AnchorNotFound("No anchor offsets to select from")
    if direction == SearchDirection.BACKWARD:
        return offsets[-1]
    return offsets[0]


def locate_anchor(
    buffer: str,
    anchor: Anchor,
    start: int = 0,
    end: Optional[int] = None,
) -> Tuple[int, List[int]]:
    """Return (chosen offset, all qualifying offsets)."""
    offsets = find_anchor_offsets(buffer, anchor, start, end)
    return select_offset(offsets, anchor.direction), offsets


def extract_window(buffer: str, offset: int, lookback: int, lookahead: int) -> Window:
    size = len(buffer)
    center = min(max(offset, 0), size)
    start = max(0, center - max(lookback, 0))
    end = min(size, center + max(lookahead, 0))
    return Window(start=start, end=end, text=buffer[start:end])
