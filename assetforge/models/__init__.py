"""assetforge data models — Pydantic v2, frozen (immutable)."""

from assetforge.models.freshness import FreshnessPolicy
from assetforge.models.mount import MountConfig
from assetforge.models.source import SourceFile
from assetforge.models.stages import PipelineStages
from assetforge.models.traversal import IteratorState, TraversalNode

__all__ = [
    # traversal
    "IteratorState",
    "TraversalNode",
    # pipeline
    "SourceFile",
    "PipelineStages",
    # mount
    "FreshnessPolicy",
    "MountConfig",
]
