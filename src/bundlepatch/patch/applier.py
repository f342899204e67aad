from __future__ import annotations

from typing import Iterable

from .models import DiffRecord, Location, PatchOperation

DIFF_CONTEXT = 50


def _check_bounds(buffer: str, location: Location) -> None:
    if not 0 <= location.start <= location.end <= len(buffer):
        raise ValueError(
            f"Location [{location.start}, {location.end}) is outside buffer "
            f"of length {len(buffer)}"
        )


def splice(buffer: str, location: Location, replacement: str) -> str:
    _check_bounds(buffer, location)
    return buffer[: location.start] + replacement + buffer[location.end :]


def build_diff(
    buffer: str, location: Location, replacement: str, context: int = DIFF_CONTEXT
) -> DiffRecord:
    _check_bounds(buffer, location)
    ctx_start = max(0, location.start - context)
    ctx_end = min(len(buffer), location.end + context)
    return DiffRecord(
        before=buffer[ctx_start : location.start],
        old=buffer[location.start : location.end],
        new=replacement,
        after=buffer[location.end : ctx_end],
        start=location.start,
        end=location.end,
    )


def apply_operation(buffer: str, op: PatchOperation) -> str:
    return splice(buffer, op.location, op.replacement)


def replay_operations(original: str, operations: Iterable[PatchOperation]) -> str:
    """
    Re-apply recorded operations in order. Each operation's offsets refer to
    the buffer as it was right after the previous one, so order matters.
    """
    buffer = original
    for op in operations:
        buffer = apply_operation(buffer, op)
    return buffer
