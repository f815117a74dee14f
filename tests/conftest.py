"""Shared test fixtures for assetforge."""

from __future__ import annotations

import os
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import pytest

from assetforge.core.orchestrator import BuildOrchestrator
from assetforge.core.resolvers import build_mount


@dataclass
class AssetTree:
    """The source tree every pipeline test builds on.

    in/a.js = "A", in/b.css = "B", in/c.html = "C", in/sub/ (empty),
    out/ (empty).
    """

    root: Path
    in_dir: Path
    sub_dir: Path
    out_dir: Path
    out_file: Path

    @property
    def sources(self) -> list[Path]:
        return [self.in_dir / "a.js", self.in_dir / "b.css", self.in_dir / "c.html"]


def set_mtime(path: Path, seconds: float) -> None:
    """Set both atime and mtime of *path*."""
    os.utime(path, (seconds, seconds))


@pytest.fixture(autouse=True)
def sorted_listing(monkeypatch: pytest.MonkeyPatch) -> None:
    """Make directory listings deterministic; os.listdir order is unspecified."""
    real_listdir = os.listdir
    monkeypatch.setattr(os, "listdir", lambda path=".": sorted(real_listdir(path)))


@pytest.fixture
def asset_tree(tmp_path: Path) -> AssetTree:
    """Provide the a.js/b.css/c.html source tree with an empty out dir."""
    in_dir = tmp_path / "in"
    sub_dir = in_dir / "sub"
    out_dir = tmp_path / "out"
    sub_dir.mkdir(parents=True)
    out_dir.mkdir()
    (in_dir / "a.js").write_text("A", encoding="utf-8")
    (in_dir / "b.css").write_text("B", encoding="utf-8")
    (in_dir / "c.html").write_text("C", encoding="utf-8")
    return AssetTree(
        root=tmp_path,
        in_dir=in_dir,
        sub_dir=sub_dir,
        out_dir=out_dir,
        out_file=out_dir / "out",
    )


@pytest.fixture
def age_sources(asset_tree: AssetTree) -> Callable[[float], None]:
    """Factory fixture: move every source mtime *seconds* into the past."""

    def _age(seconds: float) -> None:
        then = time.time() - seconds
        for source in asset_tree.sources:
            set_mtime(source, then)

    return _age


@pytest.fixture
def make_orchestrator(asset_tree: AssetTree) -> Callable[..., BuildOrchestrator]:
    """Factory fixture: an orchestrator over the asset tree, options overridable."""

    def _factory(**overrides) -> BuildOrchestrator:
        options = {"src": asset_tree.in_dir, "dest": asset_tree.out_file}
        options.update(overrides)
        return BuildOrchestrator(build_mount(**options))

    return _factory
