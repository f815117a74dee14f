"""Per-mount configuration — options normalized once at construction."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict

from assetforge.models.freshness import FreshnessPolicy
from assetforge.models.stages import PipelineStages

SourceResolver = Callable[[Any], Awaitable[list[Path]]]
DestinationResolver = Callable[[str], Path]


class MountConfig(BaseModel):
    """Everything the orchestrator needs to serve one mount point.

    Build instances with ``assetforge.core.resolvers.build_mount`` so that
    string/list/callable options are normalized before they get here.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    sources: SourceResolver
    destination: DestinationResolver
    stages: PipelineStages
    prefix: str = "/"
    force: FreshnessPolicy = FreshnessPolicy.IF_NEWER
