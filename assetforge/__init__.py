"""assetforge: on-demand asset build cache.

Given a request for a logical resource, assetforge locates the source files
that produce it, decides whether the previously generated artifact is still
fresh, regenerates it through a configurable transform pipeline when it is
stale or missing, and serves the result.

  - Lazy depth-first source traversal (SubpathIterator)
  - Short-circuiting staleness check (is_stale)
  - prefilter -> map -> filter -> reduce -> post_reduce pipeline (generate)
  - Per-request freshness policy with single-flight rebuilds (BuildOrchestrator)
  - Starlette middleware and a Typer CLI on top
"""

__version__ = "0.1.0"
__description__ = "On-demand asset build cache with a pluggable transform pipeline"

from assetforge.core.content import content_stages
from assetforge.core.errors import (
    AssetError,
    ErrorKind,
    ResolutionError,
    StageError,
    StalenessError,
    TraversalError,
)
from assetforge.core.orchestrator import BuildOrchestrator
from assetforge.core.pipeline import build_stages, generate
from assetforge.core.resolvers import build_mount
from assetforge.core.staleness import is_stale
from assetforge.core.subpath_iterator import SubpathIterator
from assetforge.models.freshness import FreshnessPolicy

__all__ = [
    "AssetError",
    "BuildOrchestrator",
    "ErrorKind",
    "FreshnessPolicy",
    "ResolutionError",
    "StageError",
    "StalenessError",
    "SubpathIterator",
    "TraversalError",
    "__version__",
    "build_mount",
    "build_stages",
    "content_stages",
    "generate",
    "is_stale",
]
