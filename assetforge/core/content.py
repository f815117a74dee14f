"""String-in/string-out transforms layered over the stream pipeline.

``content_stages`` reads each qualifying source fully into memory, runs it
through ``map_content(content, source)``, keeps the results in order, and
on completion writes ``post_reduce_content(joined)`` to the destination.
It only supplies a particular set of stages; generation itself is still
``assetforge.core.pipeline.generate``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path
from typing import Any

from assetforge.core.pipeline import as_async, build_stages
from assetforge.models.source import SourceFile
from assetforge.models.stages import PipelineStages


class ContentAccumulator:
    """In-memory accumulator for the content adapter."""

    def __init__(self, path: Path, encoding: str = "utf-8") -> None:
        self.path = Path(path)
        self.encoding = encoding
        self.parts: list[str] = []

    def append(self, content: str) -> None:
        self.parts.append(content)

    @property
    def content(self) -> str:
        return "".join(self.parts)

    def __repr__(self) -> str:
        return f"<ContentAccumulator path={str(self.path)!r} parts={len(self.parts)}>"


def _read_text(path: Path, encoding: str) -> str:
    with open(path, encoding=encoding, newline="") as fh:
        return fh.read()


def _write_text(path: Path, content: str, encoding: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding=encoding, newline="") as fh:
        fh.write(content)


def content_stages(
    map_content: Callable[[str, SourceFile], Any] | None = None,
    post_reduce_content: Callable[[str], Any] | None = None,
    *,
    prefilter: Callable[..., Any] | None = None,
    filter: Callable[..., Any] | None = None,
    encoding: str = "utf-8",
) -> PipelineStages:
    """Build a stage set from string transforms.

    Both hooks are optional; either may be sync or async. When no source is
    included nothing is written. Line endings pass through untranslated.
    """
    transform = as_async(map_content) if map_content is not None else None
    finish = as_async(post_reduce_content) if post_reduce_content is not None else None

    async def seed(destination: Path) -> ContentAccumulator:
        return ContentAccumulator(destination, encoding)

    async def read_content(source: SourceFile) -> str:
        content = await asyncio.to_thread(_read_text, source.path, encoding)
        if transform is not None:
            content = await transform(content, source)
        return content

    async def append(accumulator: ContentAccumulator, source: SourceFile) -> ContentAccumulator:
        accumulator.append(source.mapped)
        return accumulator

    async def write(accumulator: ContentAccumulator) -> None:
        if not accumulator.parts:
            return
        content = accumulator.content
        if finish is not None:
            content = await finish(content)
        await asyncio.to_thread(_write_text, accumulator.path, content, encoding)

    async def discard(accumulator: ContentAccumulator) -> None:
        accumulator.parts.clear()

    return build_stages(
        reduce_seed=seed,
        prefilter=prefilter,
        map=read_content,
        filter=filter,
        reduce=append,
        post_reduce=write,
        terminate=discard,
        encoding=encoding,
    )
