"""Tests for BuildOrchestrator — freshness policies, single-flight, errors."""

from __future__ import annotations

import asyncio
import gc
import time
from pathlib import Path

import pytest

from assetforge.core.errors import ResolutionError, StageError, TraversalError
from assetforge.core.pipeline import stream_into
from assetforge.models.freshness import FreshnessPolicy
from assetforge.models.source import SourceFile

from conftest import AssetTree, set_mtime


def _touch_newer(path: Path, content: str) -> None:
    path.write_text(content, encoding="utf-8")
    set_mtime(path, time.time() + 100)


class TestIfNewer:
    @pytest.mark.asyncio
    async def test_builds_missing_artifact(self, asset_tree: AssetTree, make_orchestrator):
        orchestrator = make_orchestrator()
        assert orchestrator.policy is FreshnessPolicy.IF_NEWER

        result = await orchestrator.handle("/")
        assert result == asset_tree.out_file
        assert asset_tree.out_file.read_text(encoding="utf-8") == "ABC"
        assert orchestrator.generation_count == 1

    @pytest.mark.asyncio
    async def test_serves_fresh_artifact_without_rebuilding(
        self, asset_tree: AssetTree, make_orchestrator, age_sources
    ):
        orchestrator = make_orchestrator()
        await orchestrator.handle("/")
        age_sources(100)

        result = await orchestrator.handle("/")
        assert result == asset_tree.out_file
        assert orchestrator.generation_count == 1

    @pytest.mark.asyncio
    async def test_rebuilds_when_a_source_is_newer(
        self, asset_tree: AssetTree, make_orchestrator, age_sources
    ):
        orchestrator = make_orchestrator()
        await orchestrator.handle("/")
        age_sources(100)
        _touch_newer(asset_tree.in_dir / "a.js", "Z")

        await orchestrator.handle("/")
        assert asset_tree.out_file.read_text(encoding="utf-8") == "ZBC"
        assert orchestrator.generation_count == 2

    @pytest.mark.asyncio
    async def test_newer_file_outside_prefilter_is_ignored(
        self, asset_tree: AssetTree, make_orchestrator, age_sources
    ):
        orchestrator = make_orchestrator(pipeline={"prefilter": "js"})
        await orchestrator.handle("/")
        assert asset_tree.out_file.read_text(encoding="utf-8") == "A"
        age_sources(100)
        _touch_newer(asset_tree.in_dir / "b.css", "Z")

        await orchestrator.handle("/")
        assert orchestrator.generation_count == 1


class TestNeverAndAlways:
    @pytest.mark.asyncio
    async def test_never_serves_existing_artifact(self, asset_tree: AssetTree, make_orchestrator):
        asset_tree.out_file.write_text("old", encoding="utf-8")
        set_mtime(asset_tree.out_file, time.time() - 1000)
        orchestrator = make_orchestrator(force="never")

        result = await orchestrator.handle("/")
        assert result == asset_tree.out_file
        assert asset_tree.out_file.read_text(encoding="utf-8") == "old"
        assert orchestrator.generation_count == 0

    @pytest.mark.asyncio
    async def test_never_still_builds_missing_artifact(self, asset_tree: AssetTree, make_orchestrator):
        orchestrator = make_orchestrator(force=False)
        await orchestrator.handle("/")
        assert asset_tree.out_file.read_text(encoding="utf-8") == "ABC"
        assert orchestrator.generation_count == 1

    @pytest.mark.asyncio
    async def test_always_rebuilds_every_request(
        self, asset_tree: AssetTree, make_orchestrator, age_sources
    ):
        orchestrator = make_orchestrator(force="always")
        await orchestrator.handle("/")
        age_sources(100)
        await orchestrator.handle("/")
        await orchestrator.handle("/")
        assert orchestrator.generation_count == 3
        assert asset_tree.out_file.read_text(encoding="utf-8") == "ABC"


class TestOutcomes:
    @pytest.mark.asyncio
    async def test_nothing_to_serve(self, asset_tree: AssetTree, make_orchestrator):
        orchestrator = make_orchestrator(src=asset_tree.sub_dir)
        assert await orchestrator.handle("/") is None
        assert not asset_tree.out_file.exists()

    @pytest.mark.asyncio
    async def test_stage_error_propagates(self, asset_tree: AssetTree, make_orchestrator):
        def broken(source: SourceFile) -> str:
            raise ValueError("does not compile")

        orchestrator = make_orchestrator(pipeline={"map": broken})
        with pytest.raises(StageError, match="does not compile"):
            await orchestrator.handle("/")
        assert orchestrator._inflight == {}

    @pytest.mark.asyncio
    async def test_traversal_error_propagates(self, asset_tree: AssetTree, make_orchestrator):
        orchestrator = make_orchestrator(src=asset_tree.root / "missing")
        with pytest.raises(TraversalError):
            await orchestrator.handle("/")

    @pytest.mark.asyncio
    async def test_destination_resolver_failure(self, make_orchestrator):
        def resolve(resource: str) -> Path:
            raise KeyError(resource)

        orchestrator = make_orchestrator(dest=resolve)
        with pytest.raises(ResolutionError):
            await orchestrator.handle("/app.js")
        assert orchestrator.generation_count == 0

    @pytest.mark.asyncio
    async def test_sources_resolved_per_request(self, asset_tree: AssetTree, make_orchestrator):
        orchestrator = make_orchestrator(
            src=lambda request: asset_tree.in_dir / request,
            dest=lambda resource: asset_tree.out_dir / resource.lstrip("/"),
        )
        result = await orchestrator.handle("/b.out", request="b.css")
        assert result == asset_tree.out_dir / "b.out"
        assert result.read_text(encoding="utf-8") == "B"

    @pytest.mark.asyncio
    async def test_failed_build_can_be_retried(self, asset_tree: AssetTree, make_orchestrator):
        attempts: list[int] = []

        def flaky(source: SourceFile) -> str:
            if not attempts:
                attempts.append(1)
                raise OSError("temporarily unavailable")
            return source.path.read_text(encoding="utf-8")

        orchestrator = make_orchestrator(pipeline={"map": flaky})
        with pytest.raises(StageError):
            await orchestrator.handle("/")
        assert await orchestrator.handle("/") == asset_tree.out_file
        assert asset_tree.out_file.read_text(encoding="utf-8") == "ABC"


class TestSingleFlight:
    @pytest.mark.asyncio
    async def test_concurrent_requests_share_one_build(
        self, asset_tree: AssetTree, make_orchestrator
    ):
        async def slow_reduce(accumulator, source: SourceFile):
            await asyncio.sleep(0.01)
            return await stream_into(accumulator, source)

        orchestrator = make_orchestrator(force="always", pipeline={"reduce": slow_reduce})
        results = await asyncio.gather(*(orchestrator.handle("/") for _ in range(5)))

        assert results == [asset_tree.out_file] * 5
        assert orchestrator.generation_count == 1
        assert asset_tree.out_file.read_text(encoding="utf-8") == "ABC"
        assert orchestrator._inflight == {}

    @pytest.mark.asyncio
    async def test_concurrent_bootstrap_of_missing_artifact(
        self, asset_tree: AssetTree, make_orchestrator
    ):
        async def slow_reduce(accumulator, source: SourceFile):
            await asyncio.sleep(0.01)
            return await stream_into(accumulator, source)

        orchestrator = make_orchestrator(pipeline={"reduce": slow_reduce})
        results = await asyncio.gather(*(orchestrator.handle("/") for _ in range(3)))

        assert results == [asset_tree.out_file] * 3
        assert orchestrator.generation_count == 1

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_build(
        self, asset_tree: AssetTree, make_orchestrator
    ):
        gate = asyncio.Event()

        async def gated_reduce(accumulator, source: SourceFile):
            await gate.wait()
            return await stream_into(accumulator, source)

        orchestrator = make_orchestrator(force="always", pipeline={"reduce": gated_reduce})
        first = asyncio.ensure_future(orchestrator.handle("/"))
        while not orchestrator._inflight:
            await asyncio.sleep(0)
        first.cancel()
        with pytest.raises(asyncio.CancelledError):
            await first

        second = asyncio.ensure_future(orchestrator.handle("/"))
        await asyncio.sleep(0)
        gate.set()
        assert await second == asset_tree.out_file
        assert orchestrator.generation_count == 1
        assert asset_tree.out_file.read_text(encoding="utf-8") == "ABC"


class TestExplicitOperations:
    @pytest.mark.asyncio
    async def test_generate_ignores_policy(self, asset_tree: AssetTree, make_orchestrator):
        orchestrator = make_orchestrator(force="never")
        asset_tree.out_file.write_text("old", encoding="utf-8")
        await orchestrator.generate("/")
        assert asset_tree.out_file.read_text(encoding="utf-8") == "ABC"

    @pytest.mark.asyncio
    async def test_check(self, asset_tree: AssetTree, make_orchestrator, age_sources):
        orchestrator = make_orchestrator()
        assert await orchestrator.check("/") is True

        await orchestrator.handle("/")
        age_sources(100)
        assert await orchestrator.check("/") is False

        _touch_newer(asset_tree.in_dir / "c.html", "Z")
        assert await orchestrator.check("/") is True
        assert orchestrator.generation_count == 1


class TestInFlightVisibility:
    @pytest.mark.asyncio
    async def test_fresh_decision_during_build_waits_for_it(
        self, asset_tree: AssetTree, make_orchestrator
    ):
        """A request whose freshness check overlaps a build never sees a partial file."""
        asset_tree.out_file.write_text("old", encoding="utf-8")
        set_mtime(asset_tree.out_file, time.time() - 1000)
        first_chunk = asyncio.Event()

        async def slow_reduce(accumulator, source: SourceFile):
            result = await stream_into(accumulator, source)
            first_chunk.set()
            await asyncio.sleep(0.05)
            return result

        async def sources(request: str) -> list[Path]:
            if request == "late":
                await first_chunk.wait()
            return [asset_tree.in_dir]

        orchestrator = make_orchestrator(src=sources, pipeline={"reduce": slow_reduce})
        early = asyncio.ensure_future(orchestrator.handle("/", "early"))
        late = await orchestrator.handle("/", "late")

        assert late == asset_tree.out_file
        assert late.read_text(encoding="utf-8") == "ABC"
        assert await early == asset_tree.out_file
        assert orchestrator.generation_count == 1

    @pytest.mark.asyncio
    async def test_never_policy_waits_for_running_build(
        self, asset_tree: AssetTree, make_orchestrator
    ):
        asset_tree.out_file.write_text("old", encoding="utf-8")
        gate = asyncio.Event()

        async def gated_reduce(accumulator, source: SourceFile):
            result = await stream_into(accumulator, source)
            await gate.wait()
            return result

        orchestrator = make_orchestrator(force="never", pipeline={"reduce": gated_reduce})
        # the request passes the in-flight check before the rebuild is registered
        follower = asyncio.ensure_future(orchestrator.handle("/"))
        rebuild = asyncio.ensure_future(orchestrator.generate("/"))
        await asyncio.sleep(0.05)
        assert not follower.done()

        gate.set()
        assert (await follower).read_text(encoding="utf-8") == "ABC"
        assert await rebuild == asset_tree.out_file
        assert orchestrator.generation_count == 1


class TestAbandonedBuilds:
    @pytest.mark.asyncio
    async def test_failure_with_no_waiters_is_not_reported_as_unretrieved(
        self, asset_tree: AssetTree, make_orchestrator
    ):
        loop = asyncio.get_running_loop()
        reported: list[dict] = []
        loop.set_exception_handler(lambda _loop, context: reported.append(context))
        gate = asyncio.Event()

        async def failing_reduce(accumulator, source: SourceFile):
            await gate.wait()
            raise ValueError("reduce broke")

        try:
            orchestrator = make_orchestrator(force="always", pipeline={"reduce": failing_reduce})
            waiter = asyncio.ensure_future(orchestrator.handle("/"))
            while not orchestrator._inflight:
                await asyncio.sleep(0)
            waiter.cancel()
            with pytest.raises(asyncio.CancelledError):
                await waiter

            gate.set()
            while orchestrator._inflight:
                await asyncio.sleep(0.01)
            del waiter
            gc.collect()
        finally:
            loop.set_exception_handler(None)

        assert not [c for c in reported if "never retrieved" in c.get("message", "")]
