"""The per-file value threaded through the pipeline stages."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict

from assetforge.models.traversal import TraversalNode


class SourceFile(BaseModel):
    """A leaf source file as seen by prefilter, map, filter and reduce.

    ``mapped`` is ``None`` until the map stage has run; the pipeline hands
    filter and reduce a copy with ``mapped`` populated.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    path: Path
    node: TraversalNode
    mapped: Any = None

    @property
    def extname(self) -> str:
        """File extension including the leading dot (``".js"``)."""
        return self.path.suffix

    @property
    def basename(self) -> str:
        return self.path.name

    def with_mapped(self, mapped: Any) -> SourceFile:
        return self.model_copy(update={"mapped": mapped})
