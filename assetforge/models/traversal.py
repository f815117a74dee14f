"""Traversal models — leaf-file metadata and iterator lifecycle states."""

from __future__ import annotations

import os
import stat
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict


class IteratorState(str, Enum):
    """Lifecycle of a SubpathIterator.

    ``exhausted`` and ``errored`` are terminal.
    """

    IDLE = "idle"
    TRAVERSING = "traversing"
    EXHAUSTED = "exhausted"
    ERRORED = "errored"


class TraversalNode(BaseModel):
    """A path plus the filesystem metadata observed when it was visited.

    Produced transiently by the iterator; never persisted.
    """

    model_config = ConfigDict(frozen=True)

    path: Path
    is_dir: bool
    is_file: bool
    mtime: float  # st_mtime, seconds since the epoch
    size: int = 0

    @classmethod
    def from_stat(cls, path: Path, st: os.stat_result) -> TraversalNode:
        """Build a node from an ``os.stat`` result."""
        return cls(
            path=path,
            is_dir=stat.S_ISDIR(st.st_mode),
            is_file=stat.S_ISREG(st.st_mode),
            mtime=st.st_mtime,
            size=st.st_size,
        )
