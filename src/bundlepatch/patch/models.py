from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, List, Optional, Tuple


class PatchError(ValueError):
    """Any problem detected while locating a fragment in the bundle."""

    def __init__(self, msg: str, *, hint: Optional[str] = None) -> None:
        super().__init__(msg)
        self.msg = msg
        self.hint = hint

    @property
    def reason(self) -> str:
        return type(self).__name__


class AnchorNotFound(PatchError):
    pass


class SecondaryAnchorMissing(PatchError):
    pass


class PatternNotFound(PatchError):
    pass


class ValidationFailed(PatchError):
    pass


class PatchIOError(OSError):
    """Reading or writing the target bundle failed."""


class SearchDirection(Enum):
    FORWARD = auto()
    BACKWARD = auto()


@dataclass(frozen=True)
class Anchor:
    # Literal text unless regex is set
    pattern: str
    regex: bool = False
    direction: SearchDirection = SearchDirection.FORWARD
    # Validation only; never used to compute offsets
    secondary: Optional[str] = None
    secondary_distance: int = 200


@dataclass(frozen=True)
class Window:
    start: int
    end: int
    text: str


@dataclass(frozen=True)
class Match:
    # Window-relative span
    start: int
    end: int
    text: str
    groups: Tuple[Optional[str], ...] = ()


@dataclass(frozen=True)
class Location:
    start: int
    end: int
    captured: Optional[str] = None

    @property
    def is_insertion(self) -> bool:
        return self.start == self.end


@dataclass
class Resolution:
    location: Location
    # Absolute offsets of every candidate that survived validation
    candidates: List[int] = field(default_factory=list)
    strategy: Optional[str] = None

    @property
    def ambiguous(self) -> bool:
        return len(self.candidates) > 1


@dataclass(frozen=True)
class PatchOperation:
    name: str
    location: Location
    replacement: str
    description: str = ""


@dataclass(frozen=True)
class DiffRecord:
    before: str
    old: str
    new: str
    after: str
    start: int
    end: int

    @property
    def old_text(self) -> str:
        return f"{self.before}{self.old}{self.after}"

    @property
    def new_text(self) -> str:
        return f"{self.before}{self.new}{self.after}"


class PatchStatus(str, Enum):
    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"
    FAILED = "failed"


@dataclass
class PatchOutcome:
    name: str
    status: PatchStatus
    reason: Optional[str] = None
    message: Optional[str] = None
    operation: Optional[PatchOperation] = None
    diff: Optional[DiffRecord] = None
    resolution: Optional[Resolution] = None

    @property
    def ok(self) -> bool:
        return self.status != PatchStatus.FAILED


@dataclass
class SessionResult:
    outcomes: Dict[str, PatchOutcome] = field(default_factory=dict)

    def add(self, outcome: PatchOutcome) -> None:
        self.outcomes[outcome.name] = outcome

    @property
    def applied(self) -> List[str]:
        return [n for n, o in self.outcomes.items() if o.status == PatchStatus.APPLIED]

    @property
    def already_applied(self) -> List[str]:
        return [
            n
            for n, o in self.outcomes.items()
            if o.status == PatchStatus.ALREADY_APPLIED
        ]

    @property
    def failed(self) -> List[str]:
        return [n for n, o in self.outcomes.items() if o.status == PatchStatus.FAILED]

    @property
    def ok(self) -> bool:
        return not self.failed
