from __future__ import annotations

import re
from typing import Callable, List, Optional, Pattern, Union

from .models import Location, Match, PatternNotFound, ValidationFailed, Window

PatternLike = Union[str, Pattern[str]]


def _compile(pattern: PatternLike) -> Pattern[str]:
    if isinstance(pattern, str):
        return re.compile(pattern)
    return pattern


def _to_match(m: "re.Match[str]") -> Match:
    return Match(start=m.start(), end=m.end(), text=m.group(0), groups=m.groups())


def match_all(window: Window, pattern: PatternLike) -> List[Match]:
    return [_to_match(m) for m in _compile(pattern).finditer(window.text)]


def match_structure(
    window: Window, pattern: PatternLike, *, what: str = "fragment"
) -> Match:
    """
    Return the first match of pattern inside the window.

    Raises PatternNotFound when the window holds no match: the anchor was found
    but the expected structure next to it was not.
    """
    compiled = _compile(pattern)
    m = compiled.search(window.text)
    if m is None:
        raise PatternNotFound(
            f"Could not find {what} near anchor",
            hint=f"Pattern {compiled.pattern!r} did not match in "
            f"[{window.start}, {window.end})",
        )
    return _to_match(m)


def validate_candidates(
    buffer: str,
    candidates: List[int],
    predicate: Callable[[str, int], bool],
    *,
    what: str = "candidate",
) -> List[int]:
    """Keep every candidate offset accepted by predicate, in input order."""
    survivors = [c for c in candidates if predicate(buffer, c)]
    if not survivors:
        raise ValidationFailed(
            f"No {what} passed validation ({len(candidates)} examined)"
        )
    return survivors


def contains_between(token: str, end: int) -> Callable[[str, int], bool]:
    """Predicate: buffer[candidate:end] contains token."""

    def _check(buffer: str, candidate: int) -> bool:
        return token in buffer[candidate:end]

    return _check


def resolve_location(
    window: Window, match: Match, captured: Optional[str] = None
) -> Location:
    return Location(
        start=window.start + match.start,
        end=window.start + match.end,
        captured=captured,
    )
