"""Lazy depth-first enumeration of leaf files under ordered root paths.

The iterator keeps an explicit stack of pending frames instead of recursing.
Each frame is a list of paths plus a cursor; the bottom frame holds the
roots. A directory pushes a new frame for its entries, so its children are
drained before the iterator returns to the directory's siblings.

The iterator is single-use and forward-only:

    idle -> traversing -> exhausted
                       -> errored

Calling ``next()`` after ``exhausted``/``errored``, or while a previous
``next()`` is still pending, raises ``IteratorStateError``.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path

from assetforge.core.errors import IteratorStateError, TraversalError
from assetforge.models.traversal import IteratorState, TraversalNode

logger = logging.getLogger(__name__)


@dataclass
class _Frame:
    paths: list[Path]
    cursor: int = 0

    def pop(self) -> Path | None:
        if self.cursor >= len(self.paths):
            return None
        path = self.paths[self.cursor]
        self.cursor += 1
        return path


class SubpathIterator:
    """Yields every leaf file under *roots*, in root order, depth-first.

    Parameters
    ----------
    roots:
        Files or directories. Order is significant and preserved.
    stat, listdir:
        Blocking filesystem calls, run in a worker thread. Default to
        ``os.stat`` and ``os.listdir``.
    """

    def __init__(
        self,
        roots: Iterable[Path | str],
        *,
        stat: Callable[[Path], os.stat_result] | None = None,
        listdir: Callable[[Path], list[str]] | None = None,
    ) -> None:
        self.roots = [Path(r) for r in roots]
        self._stat_fn = stat or os.stat
        self._listdir_fn = listdir or os.listdir
        self._stack: list[_Frame] = [_Frame(list(self.roots))]
        self._state = IteratorState.IDLE
        self._pending = False

    @property
    def state(self) -> IteratorState:
        return self._state

    # ------------------------------------------------------------------
    # Production
    # ------------------------------------------------------------------

    async def next(self) -> TraversalNode | None:
        """Return the next leaf file, or ``None`` once every root is drained.

        Raises ``TraversalError`` on the first stat or listing failure;
        the iterator is then unusable.
        """
        if self._state in (IteratorState.EXHAUSTED, IteratorState.ERRORED):
            raise IteratorStateError(
                f"SubpathIterator is {self._state.value}; stop calling next()"
            )
        if self._pending:
            raise IteratorStateError("SubpathIterator.next() is not reentrant")

        self._pending = True
        self._state = IteratorState.TRAVERSING
        try:
            node = await self._advance()
        except TraversalError:
            self._state = IteratorState.ERRORED
            raise
        finally:
            self._pending = False

        if node is None:
            self._state = IteratorState.EXHAUSTED
        return node

    async def _advance(self) -> TraversalNode | None:
        while self._stack:
            frame = self._stack[-1]
            path = frame.pop()
            if path is None:
                self._stack.pop()
                continue

            node = await self._stat(path)
            if node.is_dir:
                entries = await self._listdir(path)
                self._stack.append(
                    _Frame([path / name for name in entries])
                )
                continue
            return node
        return None

    # ------------------------------------------------------------------
    # async iteration
    # ------------------------------------------------------------------

    def __aiter__(self) -> SubpathIterator:
        return self

    async def __anext__(self) -> TraversalNode:
        node = await self.next()
        if node is None:
            raise StopAsyncIteration
        return node

    # ------------------------------------------------------------------
    # Filesystem access
    # ------------------------------------------------------------------

    async def _stat(self, path: Path) -> TraversalNode:
        try:
            st = await asyncio.to_thread(self._stat_fn, path)
        except OSError as exc:
            raise TraversalError(
                f"Cannot stat {path}: {exc.strerror or exc}", path=path
            ) from exc
        return TraversalNode.from_stat(path, st)

    async def _listdir(self, path: Path) -> list[str]:
        try:
            entries = await asyncio.to_thread(self._listdir_fn, path)
        except OSError as exc:
            raise TraversalError(
                f"Cannot list directory {path}: {exc.strerror or exc}", path=path
            ) from exc
        logger.debug("Listed %s (%d entries)", path, len(entries))
        return entries


async def collect_leaves(roots: Iterable[Path | str]) -> list[TraversalNode]:
    """Drain a fresh iterator over *roots* into a list."""
    return [node async for node in SubpathIterator(roots)]
