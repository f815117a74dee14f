"""Build orchestrator — the per-request coordinator.

For each requested resource the orchestrator resolves the destination
artifact and the source roots, applies the mount's freshness policy, runs
the transform pipeline when the artifact has to be (re)built, and returns
the path to serve.

Regenerations are single-flight per destination: while one build of a
destination is running, other requests for the same destination await
that build's outcome instead of starting their own or reading a
half-written file.
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Any

from assetforge.core.pipeline import generate
from assetforge.core.staleness import is_stale
from assetforge.models.freshness import FreshnessPolicy
from assetforge.models.mount import MountConfig

logger = logging.getLogger(__name__)


class BuildOrchestrator:
    """Decides, per request, whether to serve, build, or rebuild.

    Parameters
    ----------
    mount:
        The normalized mount configuration (see ``build_mount``).
    """

    def __init__(self, mount: MountConfig) -> None:
        self.mount = mount
        # destination -> running regeneration
        self._inflight: dict[Path, asyncio.Task[Path | None]] = {}
        self.generation_count = 0

    @property
    def policy(self) -> FreshnessPolicy:
        return self.mount.force

    # ------------------------------------------------------------------
    # Request handling
    # ------------------------------------------------------------------

    async def handle(self, resource: str, request: Any = None) -> Path | None:
        """Return the artifact path to serve for *resource*, or ``None``.

        ``None`` means nothing qualified and there is nothing to serve.
        Resolution and generation errors propagate unchanged.
        """
        destination = self.mount.destination(resource)
        logger.debug("Resource %r serves from %s", resource, destination)

        running = self._inflight.get(destination)
        if running is not None:
            logger.debug("Joining in-flight build of %s", destination)
            return await asyncio.shield(running)

        policy = self.mount.force
        if policy is FreshnessPolicy.ALWAYS:
            logger.debug("Forced regeneration of %s", destination)
            return await self._regenerate(destination, request)

        if not await asyncio.to_thread(os.path.exists, destination):
            logger.debug("%s does not exist", destination)
            return await self._regenerate(destination, request)

        if policy is FreshnessPolicy.NEVER:
            return await self._settled(destination)

        sources = await self.mount.sources(request)
        logger.debug("Checking %s against %d source root(s)", destination, len(sources))
        if await is_stale(destination, sources, self.mount.stages.prefilter):
            logger.debug("%s is stale, regenerating", destination)
            return await self._regenerate(destination, request, sources)

        return await self._settled(destination)

    async def _settled(self, destination: Path) -> Path | None:
        # a build may have started while the freshness decision was awaited
        running = self._inflight.get(destination)
        if running is not None:
            logger.debug("Waiting for in-flight build of %s", destination)
            return await asyncio.shield(running)
        logger.debug("Serving existing %s", destination)
        return destination

    # ------------------------------------------------------------------
    # Regeneration
    # ------------------------------------------------------------------

    async def _regenerate(
        self,
        destination: Path,
        request: Any,
        sources: list[Path] | None = None,
    ) -> Path | None:
        # another request may have started the same build while we awaited
        running = self._inflight.get(destination)
        if running is None:
            running = asyncio.ensure_future(self._build(destination, request, sources))
            self._inflight[destination] = running
            running.add_done_callback(lambda task: self._forget(destination, task))
        return await asyncio.shield(running)

    def _forget(self, destination: Path, task: asyncio.Task[Path | None]) -> None:
        if self._inflight.get(destination) is task:
            del self._inflight[destination]
        # mark the error retrieved; every waiter may have been cancelled
        if not task.cancelled():
            task.exception()

    async def _build(
        self,
        destination: Path,
        request: Any,
        sources: list[Path] | None,
    ) -> Path | None:
        if sources is None:
            sources = await self.mount.sources(request)
        self.generation_count += 1
        return await generate(sources, destination, self.mount.stages)

    async def generate(self, resource: str, request: Any = None) -> Path | None:
        """Regenerate *resource* now, regardless of the freshness policy."""
        destination = self.mount.destination(resource)
        return await self._regenerate(destination, request)

    async def check(self, resource: str, request: Any = None) -> bool:
        """Return True if *resource* would be rebuilt under ``if-newer``."""
        destination = self.mount.destination(resource)
        if not await asyncio.to_thread(os.path.exists, destination):
            return True
        sources = await self.mount.sources(request)
        return await is_stale(destination, sources, self.mount.stages.prefilter)
