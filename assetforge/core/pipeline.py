"""Transform pipeline — turns a set of source files into one artifact.

For every leaf file yielded by the SubpathIterator:

    prefilter -> map -> filter -> reduce

with the accumulator created by ``reduce_seed`` threaded through every
``reduce`` call, and finalized by ``post_reduce`` once the sources are
exhausted. The first failure aborts the run: the accumulator is handed to
``terminate`` instead of ``post_reduce`` and the error propagates.

The default stages stream every source, byte for byte, into the
destination file.
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import logging
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

from assetforge.core.errors import AssetError, StageError
from assetforge.core.subpath_iterator import SubpathIterator
from assetforge.models.source import SourceFile
from assetforge.models.stages import PipelineStages

logger = logging.getLogger(__name__)

COPY_BUFSIZE = 64 * 1024


# ----------------------------------------------------------------------
# Default accumulator
# ----------------------------------------------------------------------


class DestinationSink:
    """Writable sink bound to a destination path.

    The file is opened (and truncated) on the first write, so a run in
    which no source is included leaves the filesystem untouched. Parent
    directories are created on open.

    Parameters
    ----------
    path:
        Destination artifact path.
    encoding:
        Text encoding. ``None`` writes bytes; ``str`` input is then encoded
        as UTF-8.
    """

    def __init__(self, path: Path | str, encoding: str | None = None) -> None:
        self.path = Path(path)
        self.encoding = encoding
        self._fh: Any = None
        self._closed = False

    @property
    def opened(self) -> bool:
        return self._fh is not None

    @property
    def closed(self) -> bool:
        return self._closed

    async def consume(self, mapped: Any) -> None:
        """Append *mapped* (str, bytes or a readable file object)."""
        if self._closed:
            raise ValueError(f"Sink for {self.path} is closed")
        if self._fh is None:
            self._fh = await asyncio.to_thread(self._open)
        await asyncio.to_thread(self._copy, mapped)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._fh is not None:
            await asyncio.to_thread(self._fh.close)

    def _open(self) -> Any:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if self.encoding:
            return open(self.path, "w", encoding=self.encoding, newline="")
        return open(self.path, "wb")

    def _copy(self, mapped: Any) -> None:
        if isinstance(mapped, (str, bytes, bytearray)):
            self._fh.write(self._coerce(mapped))
            return
        while True:
            chunk = mapped.read(COPY_BUFSIZE)
            if not chunk:
                break
            self._fh.write(self._coerce(chunk))

    def _coerce(self, data: str | bytes | bytearray) -> str | bytes:
        if self.encoding:
            if isinstance(data, (bytes, bytearray)):
                return bytes(data).decode(self.encoding)
            return data
        if isinstance(data, str):
            return data.encode("utf-8")
        return bytes(data)

    def __repr__(self) -> str:
        state = "closed" if self._closed else ("open" if self.opened else "pending")
        return f"<DestinationSink path={str(self.path)!r} {state}>"


# ----------------------------------------------------------------------
# Default stages
# ----------------------------------------------------------------------


async def open_destination(destination: Path, *, encoding: str | None = None) -> DestinationSink:
    return DestinationSink(destination, encoding)


async def accept_all(source: SourceFile) -> bool:
    return True


async def open_source(source: SourceFile, *, encoding: str | None = None) -> Any:
    """Open the source file for reading (binary unless *encoding* is set).

    Text mode keeps line endings as they are on disk.
    """
    if encoding:
        return await asyncio.to_thread(open, source.path, "r", encoding=encoding, newline="")
    return await asyncio.to_thread(open, source.path, "rb")


async def stream_into(accumulator: Any, source: SourceFile) -> Any:
    """Append the mapped content of *source* to *accumulator*.

    Accepts a DestinationSink or any writable file object as accumulator,
    and a readable file object, ``str`` or ``bytes`` as mapped value. A
    mapped file object is closed once copied.
    """
    mapped = source.mapped
    try:
        if isinstance(accumulator, DestinationSink):
            await accumulator.consume(mapped)
        else:
            await asyncio.to_thread(_copy_to_writer, accumulator, mapped)
    finally:
        await release(mapped)
    return accumulator


def _copy_to_writer(writer: Any, mapped: Any) -> None:
    if isinstance(mapped, (str, bytes, bytearray)):
        writer.write(mapped)
        return
    while True:
        chunk = mapped.read(COPY_BUFSIZE)
        if not chunk:
            break
        writer.write(chunk)


async def close_accumulator(accumulator: Any) -> None:
    """Flush and close the accumulator, if it can be closed."""
    await release(accumulator)


async def release(obj: Any) -> None:
    """Close *obj* if it has a ``close`` method; await it if async."""
    close = getattr(obj, "close", None)
    if close is None or isinstance(obj, (str, bytes, bytearray)):
        return
    if inspect.iscoroutinefunction(close):
        await close()
    else:
        await asyncio.to_thread(close)


# ----------------------------------------------------------------------
# Stage set construction
# ----------------------------------------------------------------------


def as_async(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Return *fn* as an async callable.

    Coroutine functions pass through; plain callables are wrapped. Decided
    once, when the stage set is built.
    """
    if inspect.iscoroutinefunction(fn) or inspect.iscoroutinefunction(
        getattr(fn, "__call__", None)
    ):
        return fn

    @functools.wraps(fn)
    async def _wrapper(*args: Any) -> Any:
        return fn(*args)

    return _wrapper


def build_stages(
    *,
    reduce_seed: Callable[..., Any] | None = None,
    prefilter: Callable[..., Any] | None = None,
    map: Callable[..., Any] | None = None,
    filter: Callable[..., Any] | None = None,
    reduce: Callable[..., Any] | None = None,
    post_reduce: Callable[..., Any] | None = None,
    terminate: Callable[..., Any] | None = None,
    encoding: str | None = None,
) -> PipelineStages:
    """Build an immutable stage set, filling gaps with the defaults.

    Any stage may be a plain function or a coroutine function.
    """
    return PipelineStages(
        reduce_seed=as_async(reduce_seed or functools.partial(open_destination, encoding=encoding)),
        prefilter=as_async(prefilter or accept_all),
        map=as_async(map or functools.partial(open_source, encoding=encoding)),
        filter=as_async(filter or accept_all),
        reduce=as_async(reduce or stream_into),
        post_reduce=as_async(post_reduce or close_accumulator),
        terminate=as_async(terminate or close_accumulator),
        encoding=encoding,
    )


DEFAULT_STAGES = build_stages()


# ----------------------------------------------------------------------
# Generation
# ----------------------------------------------------------------------


async def _run_stage(
    stages: PipelineStages, name: str, *args: Any, path: Path | None = None
) -> Any:
    fn = getattr(stages, name)
    try:
        return await fn(*args)
    except AssetError:
        raise
    except Exception as exc:
        where = f" for {path}" if path is not None else ""
        raise StageError(
            f"{name} failed{where}: {exc}", stage=name, path=path
        ) from exc


async def _terminate(stages: PipelineStages, accumulator: Any) -> None:
    try:
        await stages.terminate(accumulator)
    except Exception as exc:
        logger.warning("Could not terminate accumulator %r: %s", accumulator, exc)


async def generate(
    sources: Iterable[Path | str],
    destination: Path | str,
    stages: PipelineStages | None = None,
) -> Path | None:
    """Run every source under *sources* through *stages* into *destination*.

    Returns *destination* if at least one source was reduced, otherwise
    ``None``. Stage failures raise ``StageError``; traversal failures
    raise ``TraversalError``. On failure ``post_reduce`` is not called.
    """
    stages = stages or DEFAULT_STAGES
    destination = Path(destination)
    sources = [Path(s) for s in sources]
    logger.debug("Generating %s from %s", destination, ", ".join(map(str, sources)))

    accumulator = await _run_stage(stages, "reduce_seed", destination, path=destination)
    iterator = SubpathIterator(sources)
    included: list[Path] = []
    mapped: Any = None

    try:
        while True:
            node = await iterator.next()
            if node is None:
                break
            source = SourceFile(path=node.path, node=node)
            mapped = None

            if not await _run_stage(stages, "prefilter", source, path=node.path):
                logger.debug("Prefiltered: %s", node.path)
                continue

            logger.debug("Mapping: %s", node.path)
            mapped = await _run_stage(stages, "map", source, path=node.path)
            source = source.with_mapped(mapped)

            if not await _run_stage(stages, "filter", source, path=node.path):
                logger.debug("Filtered: %s", node.path)
                rejected, mapped = mapped, None
                try:
                    await release(rejected)
                except Exception as exc:
                    raise StageError(
                        f"filter failed for {node.path}: cannot release mapped value: {exc}",
                        stage="filter",
                        path=node.path,
                    ) from exc
                continue

            result = await _run_stage(stages, "reduce", accumulator, source, path=node.path)
            mapped = None
            if result is not None:
                accumulator = result
            included.append(node.path)
            logger.debug("Included: %s", node.path)
    except AssetError:
        if mapped is not None:
            try:
                await release(mapped)
            except OSError as exc:
                logger.warning("Could not close mapped source: %s", exc)
        await _terminate(stages, accumulator)
        raise

    await _run_stage(stages, "post_reduce", accumulator, path=destination)

    if not included:
        logger.info("No sources qualified for %s", destination)
        return None
    logger.info("Generated %s from %d source(s)", destination, len(included))
    return destination
