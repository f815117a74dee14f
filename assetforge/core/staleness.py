"""Staleness check — is any qualifying source newer than the artifact?

The scan stops at the first qualifying source whose mtime is strictly
greater than the destination's, so a fresh artifact costs a full walk but a
stale one usually does not.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Awaitable, Callable, Iterable
from pathlib import Path

from assetforge.core.errors import StalenessError
from assetforge.core.subpath_iterator import SubpathIterator
from assetforge.models.source import SourceFile

logger = logging.getLogger(__name__)

Qualifier = Callable[[SourceFile], Awaitable[bool]]


async def is_stale(
    destination: Path | str,
    sources: Iterable[Path | str],
    qualifies: Qualifier,
) -> bool:
    """Return True if a qualifying source is newer than *destination*.

    The destination must exist; a missing destination raises
    ``StalenessError`` and callers are expected to check for it first.
    Traversal errors propagate unchanged.
    """
    destination = Path(destination)
    try:
        dest_stat = await asyncio.to_thread(os.stat, destination)
    except OSError as exc:
        raise StalenessError(
            f"Cannot stat destination {destination}: {exc.strerror or exc}",
            path=destination,
        ) from exc

    iterator = SubpathIterator(sources)
    while True:
        node = await iterator.next()
        if node is None:
            break
        if node.mtime <= dest_stat.st_mtime:
            continue
        try:
            include = await qualifies(SourceFile(path=node.path, node=node))
        except Exception as exc:
            raise StalenessError(
                f"Qualifying predicate failed for {node.path}: {exc}",
                path=node.path,
            ) from exc
        if include:
            logger.debug("%s is newer than %s", node.path, destination)
            return True

    return False
