from __future__ import annotations

import os
import pathlib
import tempfile
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set, Union

from bundlepatch.logger import logger

from .applier import build_diff, replay_operations, splice
from .kinds import BasePatchKind, PatchKindRegistry
from .models import (
    PatchError,
    PatchIOError,
    PatchOperation,
    PatchOutcome,
    PatchStatus,
    SessionResult,
)

PathLike = Union[str, "os.PathLike[str]"]


@dataclass
class PatchRequest:
    name: str
    options: Dict[str, Any] = field(default_factory=dict)

    def build(self) -> BasePatchKind:
        return PatchKindRegistry.create(self.name, **self.options)


def _read_text(path: pathlib.Path) -> str:
    try:
        return path.read_bytes().decode("utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise PatchIOError(f"Failed to read {path}: {type(e).__name__}: {e}") from e


def _write_text(path: pathlib.Path, content: str) -> None:
    data = content.encode("utf-8")
    fd = None
    tmp_name = None
    try:
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
        )
        with os.fdopen(fd, "wb") as fh:
            fd = None
            fh.write(data)
        if path.exists():
            os.chmod(tmp_name, path.stat().st_mode & 0o7777)
        os.replace(tmp_name, path)
        tmp_name = None
    except OSError as e:
        raise PatchIOError(f"Failed to write {path}: {type(e).__name__}: {e}") from e
    finally:
        if fd is not None:
            os.close(fd)
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)


class PatchSession:
    """
    Exclusive owner of one bundle buffer.

    Patch kinds are applied one at a time, each located against the buffer as
    left by the previous one. Every applied splice is recorded so the final
    buffer can be re-derived from the original.
    """

    def __init__(self, content: str, path: Optional[PathLike] = None) -> None:
        self._original = content
        self._buffer = content
        self._path = pathlib.Path(path) if path is not None else None
        self._operations: List[PatchOperation] = []

    @classmethod
    def load(cls, path: PathLike) -> "PatchSession":
        p = pathlib.Path(path)
        content = _read_text(p)
        logger.info("loaded bundle", path=str(p), size=len(content))
        return cls(content, path=p)

    @property
    def buffer(self) -> str:
        return self._buffer

    @property
    def operations(self) -> List[PatchOperation]:
        return list(self._operations)

    @property
    def modified(self) -> bool:
        return self._buffer != self._original

    def apply(self, kind: Union[str, BasePatchKind], **options: Any) -> PatchOutcome:
        if isinstance(kind, str):
            kind = PatchKindRegistry.create(kind, **options)
        name = kind.name

        if kind.is_applied(self._buffer):
            logger.info("patch already applied", kind=name)
            return PatchOutcome(name=name, status=PatchStatus.ALREADY_APPLIED)

        try:
            resolution = kind.locate(self._buffer)
        except PatchError as e:
            logger.warning("patch failed", kind=name, reason=e.reason, msg=e.msg)
            return PatchOutcome(
                name=name,
                status=PatchStatus.FAILED,
                reason=e.reason,
                message=e.msg if not e.hint else f"{e.msg} ({e.hint})",
            )

        if resolution.ambiguous:
            logger.warning(
                "ambiguous patch location",
                kind=name,
                candidates=resolution.candidates,
                chosen=resolution.location.start,
            )

        location = resolution.location
        replacement = kind.replacement(resolution)
        if self._buffer[location.start : location.end] == replacement:
            logger.info("patch already applied", kind=name, start=location.start)
            return PatchOutcome(
                name=name,
                status=PatchStatus.ALREADY_APPLIED,
                resolution=resolution,
            )

        op = PatchOperation(
            name=name,
            location=location,
            replacement=replacement,
            description=kind.description,
        )
        diff = build_diff(self._buffer, location, replacement)
        self._buffer = splice(self._buffer, location, replacement)
        self._operations.append(op)
        logger.info(
            "patch applied",
            kind=name,
            start=location.start,
            end=location.end,
            strategy=resolution.strategy,
        )
        return PatchOutcome(
            name=name,
            status=PatchStatus.APPLIED,
            operation=op,
            diff=diff,
            resolution=resolution,
        )

    def run(self, requests: Iterable[Union[str, PatchRequest]]) -> SessionResult:
        """
        Apply each requested kind once, in order. A kind may appear only once
        per run since outcomes are reported per kind name.
        """
        batch = [PatchRequest(name=r) if isinstance(r, str) else r for r in requests]
        seen: Set[str] = set()
        for req in batch:
            if req.name in seen:
                raise ValueError(f"Patch kind '{req.name}' requested more than once")
            seen.add(req.name)

        result = SessionResult()
        for req in batch:
            result.add(self.apply(req.build()))
        return result

    def replay(self) -> str:
        return replay_operations(self._original, self._operations)

    def save(self, path: Optional[PathLike] = None) -> pathlib.Path:
        target = pathlib.Path(path) if path is not None else self._path
        if target is None:
            raise PatchIOError("No target path to save to")
        _write_text(target, self._buffer)
        logger.info("saved bundle", path=str(target), operations=len(self._operations))
        return target
