"""Pipeline stage set — the replaceable stages plus the accumulator seed."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict

from assetforge.models.source import SourceFile

# Every field is an async callable once the set has been built; see
# assetforge.core.pipeline.build_stages for the sync-to-async normalization.
SeedFn = Callable[[Path], Awaitable[Any]]
PredicateFn = Callable[[SourceFile], Awaitable[bool]]
MapFn = Callable[[SourceFile], Awaitable[Any]]
ReduceFn = Callable[[Any, SourceFile], Awaitable[Any]]
FinalizeFn = Callable[[Any], Awaitable[None]]


class PipelineStages(BaseModel):
    """Immutable stage set for one mount point.

    ``terminate`` is only used on the error path, in place of
    ``post_reduce``.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    reduce_seed: SeedFn
    prefilter: PredicateFn
    map: MapFn
    filter: PredicateFn
    reduce: ReduceFn
    post_reduce: FinalizeFn
    terminate: FinalizeFn
    encoding: str | None = None
