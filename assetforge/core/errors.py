"""Typed build errors.

Every failure that aborts a generation attempt is an ``AssetError`` whose
``kind`` says which layer raised it, so callers can branch without matching
on messages. The original exception is always chained as ``__cause__``.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path


class ErrorKind(str, Enum):
    """Layer that produced an AssetError."""

    TRAVERSAL = "traversal"
    STALENESS = "staleness"
    STAGE = "stage"
    RESOLUTION = "resolution"


class AssetError(RuntimeError):
    """Base class for errors that abort a generation attempt.

    Parameters
    ----------
    message:
        Human-readable description.
    path:
        The filesystem path involved, when there is one.
    """

    kind: ErrorKind

    def __init__(self, message: str, *, path: Path | str | None = None) -> None:
        super().__init__(message)
        self.path = Path(path) if path is not None else None

    def to_dict(self) -> dict[str, str | None]:
        return {
            "kind": self.kind.value,
            "message": str(self),
            "path": str(self.path) if self.path is not None else None,
        }


class TraversalError(AssetError):
    """A root path is missing or a directory could not be listed."""

    kind = ErrorKind.TRAVERSAL


class StalenessError(AssetError):
    """The destination could not be stat'ed or the predicate failed."""

    kind = ErrorKind.STALENESS


class StageError(AssetError):
    """A pipeline stage raised instead of returning a result."""

    kind = ErrorKind.STAGE

    def __init__(
        self,
        message: str,
        *,
        stage: str,
        path: Path | str | None = None,
    ) -> None:
        super().__init__(message, path=path)
        self.stage = stage

    def to_dict(self) -> dict[str, str | None]:
        d = super().to_dict()
        d["stage"] = self.stage
        return d


class ResolutionError(AssetError):
    """The resource or source resolver failed.

    ``target`` is ``"destination"`` when the requested resource could not
    be mapped to an artifact path, ``"sources"`` when the source resolver
    failed.
    """

    kind = ErrorKind.RESOLUTION

    def __init__(
        self,
        message: str,
        *,
        path: Path | str | None = None,
        target: str = "destination",
    ) -> None:
        super().__init__(message, path=path)
        self.target = target

    def to_dict(self) -> dict[str, str | None]:
        d = super().to_dict()
        d["target"] = self.target
        return d


class IteratorStateError(RuntimeError):
    """Raised when a SubpathIterator is driven outside its contract."""
