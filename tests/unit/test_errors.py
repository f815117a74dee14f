"""Tests for the typed error hierarchy."""

from __future__ import annotations

from pathlib import Path

import pytest

from assetforge.core.errors import (
    AssetError,
    ErrorKind,
    IteratorStateError,
    ResolutionError,
    StageError,
    StalenessError,
    TraversalError,
)


class TestErrorKinds:
    @pytest.mark.parametrize(
        ("cls", "kind"),
        [
            (TraversalError, ErrorKind.TRAVERSAL),
            (StalenessError, ErrorKind.STALENESS),
            (ResolutionError, ErrorKind.RESOLUTION),
        ],
    )
    def test_kind_per_layer(self, cls, kind):
        err = cls("boom")
        assert err.kind is kind
        assert isinstance(err, AssetError)
        assert isinstance(err, RuntimeError)

    def test_stage_error_carries_stage(self):
        err = StageError("map failed", stage="map", path="in/a.js")
        assert err.kind is ErrorKind.STAGE
        assert err.stage == "map"
        assert err.path == Path("in/a.js")

    def test_resolution_target(self):
        assert ResolutionError("escape").target == "destination"
        assert ResolutionError("resolver down", target="sources").target == "sources"

    def test_iterator_misuse_is_not_an_asset_error(self):
        assert not issubclass(IteratorStateError, AssetError)


class TestToDict:
    def test_without_path(self):
        assert ResolutionError("no such resource").to_dict() == {
            "kind": "resolution",
            "message": "no such resource",
            "path": None,
            "target": "destination",
        }

    def test_traversal_error(self):
        assert TraversalError("gone", path="in").to_dict() == {
            "kind": "traversal",
            "message": "gone",
            "path": str(Path("in")),
        }

    def test_stage_error(self):
        d = StageError("reduce failed", stage="reduce", path=Path("in/b.css")).to_dict()
        assert d["kind"] == "stage"
        assert d["stage"] == "reduce"
        assert d["path"] == str(Path("in/b.css"))
