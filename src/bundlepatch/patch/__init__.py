from __future__ import annotations

from typing import List

from .anchors import extract_window, find_anchor_offsets, locate_anchor, select_offset
from .applier import build_diff, replay_operations, splice
from .kinds import DEFAULT_KINDS, BasePatchKind, PatchKindRegistry
from .matcher import match_all, match_structure, resolve_location, validate_candidates
from .models import (
    Anchor,
    AnchorNotFound,
    DiffRecord,
    Location,
    PatchError,
    PatchIOError,
    PatchOperation,
    PatchOutcome,
    PatchStatus,
    PatternNotFound,
    Resolution,
    SearchDirection,
    SecondaryAnchorMissing,
    SessionResult,
    ValidationFailed,
    Window,
)
from .session import PatchRequest, PatchSession


def summarize_session(result: SessionResult) -> str:
    """Plain-text report of a session, one section per outcome kind."""
    lines: List[str] = []
    if not result.outcomes:
        return "No patches requested."

    if result.ok:
        lines.append("All patches succeeded.")
    elif result.applied or result.already_applied:
        lines.append("Patching completed with errors. Summary:")
    else:
        lines.append("Patching failed. No changes were applied.")

    if result.applied:
        lines.append("Applied:")
        for name in result.applied:
            lines.append(f"* {name}")
    if result.already_applied:
        lines.append("Already applied:")
        for name in result.already_applied:
            lines.append(f"* {name}")
    if result.failed:
        lines.append("Failed:")
        for name in result.failed:
            outcome = result.outcomes[name]
            lines.append(f"* {name}: {outcome.reason}: {outcome.message}")
    return "\n".join(lines)


__all__ = [
    "Anchor",
    "AnchorNotFound",
    "BasePatchKind",
    "DEFAULT_KINDS",
    "DiffRecord",
    "Location",
    "PatchError",
    "PatchIOError",
    "PatchKindRegistry",
    "PatchOperation",
    "PatchOutcome",
    "PatchRequest",
    "PatchSession",
    "PatchStatus",
    "PatternNotFound",
    "Resolution",
    "SearchDirection",
    "SecondaryAnchorMissing",
    "SessionResult",
    "ValidationFailed",
    "Window",
    "build_diff",
    "extract_window",
    "find_anchor_offsets",
    "locate_anchor",
    "match_all",
    "match_structure",
    "replay_operations",
    "resolve_location",
    "select_offset",
    "splice",
    "summarize_session",
    "validate_candidates",
]
