"""Option normalization — resolvers, prefilters, and mount construction.

Options may be given in several shapes (a path or a list of paths, an
extension string or a predicate, a constant destination or a function).
They are turned into one callable shape here, once, when the mount is
built; nothing downstream inspects option types again.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path, PurePosixPath
from typing import Any

from assetforge.core.content import content_stages
from assetforge.core.errors import AssetError, ResolutionError
from assetforge.core.pipeline import as_async, build_stages
from assetforge.models.freshness import FreshnessPolicy
from assetforge.models.mount import DestinationResolver, MountConfig, SourceResolver
from assetforge.models.source import SourceFile
from assetforge.models.stages import PipelineStages

logger = logging.getLogger(__name__)

DEFAULT_SOURCE = Path("./assets")

PathLike = Path | str


# ----------------------------------------------------------------------
# Prefilters
# ----------------------------------------------------------------------


def _dotted(ext: str) -> str:
    ext = ext.strip()
    return ext if ext.startswith(".") else f".{ext}"


def extension_predicate(extensions: str | Sequence[str]) -> Callable[[SourceFile], bool]:
    """Predicate accepting files whose suffix is one of *extensions*.

    ``"js"`` and ``".js"`` are equivalent.
    """
    if isinstance(extensions, str):
        extensions = [extensions]
    allowed = frozenset(_dotted(e) for e in extensions)

    def _has_extension(source: SourceFile) -> bool:
        return source.extname in allowed

    _has_extension.__name__ = f"extension_in_{'_'.join(sorted(a[1:] for a in allowed))}"
    return _has_extension


def normalize_filter(value: str | Sequence[str] | Callable[..., Any] | None) -> Callable[..., Any] | None:
    """An extension string or list becomes a predicate; callables pass through."""
    if value is None or callable(value):
        return value
    return extension_predicate(value)


# ----------------------------------------------------------------------
# Sources
# ----------------------------------------------------------------------


def normalize_sources(src: PathLike | Sequence[PathLike] | Callable[..., Any] | None) -> SourceResolver:
    """Turn *src* into ``async (request) -> list[Path]``.

    A callable receives the request object and may be sync or async; it
    may return a single path or a list. Failures raise ``ResolutionError``.
    """
    if src is None:
        src = DEFAULT_SOURCE

    if callable(src):
        resolve = as_async(src)

        async def _dynamic(request: Any) -> list[Path]:
            try:
                roots = await resolve(request)
            except AssetError:
                raise
            except Exception as exc:
                raise ResolutionError(
                    f"Source resolver failed: {exc}", target="sources"
                ) from exc
            return _as_path_list(roots)

        return _dynamic

    roots = _as_path_list(src)

    async def _static(request: Any) -> list[Path]:
        return list(roots)

    return _static


def _as_path_list(value: PathLike | Sequence[PathLike]) -> list[Path]:
    if isinstance(value, (str, Path)):
        return [Path(value)]
    return [Path(v) for v in value]


# ----------------------------------------------------------------------
# Destinations
# ----------------------------------------------------------------------


def strip_prefix(pathname: str, prefix: str | None) -> str:
    """Remove a leading *prefix* from *pathname*, if present."""
    if prefix and pathname.startswith(prefix):
        return pathname[len(prefix):]
    return pathname


def safe_join(base: PathLike, resource: str) -> Path:
    """Join *resource* under *base*, refusing anything that escapes it."""
    relative = PurePosixPath(resource.lstrip("/"))
    if not relative.parts:
        raise ResolutionError(f"Empty resource path {resource!r}")
    if relative.is_absolute() or ".." in relative.parts:
        raise ResolutionError(
            f"Resource path {resource!r} escapes {base}", path=resource
        )
    return Path(base).joinpath(*relative.parts)


def under_directory(base: PathLike) -> DestinationResolver:
    """Destination resolver mapping a resource path to a file under *base*."""
    base = Path(base)

    def _resolve(resource: str) -> Path:
        return safe_join(base, resource)

    return _resolve


def normalize_destination(dest: PathLike | Callable[[str], PathLike] | None) -> DestinationResolver:
    """Turn *dest* into ``(resource) -> Path``.

    ``None`` maps the resource path under the current directory. A string
    or Path is a constant destination. A callable is wrapped so that its
    failures raise ``ResolutionError``.
    """
    if dest is None:
        return under_directory(Path("."))

    if callable(dest):
        if inspect.iscoroutinefunction(dest):
            raise TypeError("Destination resolvers must be synchronous")

        def _resolve(resource: str) -> Path:
            try:
                return Path(dest(resource))
            except AssetError:
                raise
            except Exception as exc:
                raise ResolutionError(
                    f"Destination resolver failed for {resource!r}: {exc}"
                ) from exc

        return _resolve

    constant = Path(dest)

    def _constant(resource: str) -> Path:
        return constant

    return _constant


# ----------------------------------------------------------------------
# Stages and mounts
# ----------------------------------------------------------------------


def normalize_pipeline(
    pipeline: PipelineStages | Mapping[str, Any] | None,
    *,
    encoding: str | None = None,
) -> PipelineStages:
    """Build a stage set from a mapping of stage overrides.

    ``map_content``/``post_reduce_content`` select the string adapter;
    ``prefilter`` may be an extension string or a list of extensions.
    """
    if isinstance(pipeline, PipelineStages):
        return pipeline
    options = dict(pipeline or {})
    if "prefilter" in options:
        options["prefilter"] = normalize_filter(options["prefilter"])

    if "map_content" in options or "post_reduce_content" in options:
        unsupported = set(options) - {"map_content", "post_reduce_content", "prefilter", "filter"}
        if unsupported:
            raise ValueError(
                "map_content/post_reduce_content cannot be combined with "
                f"{', '.join(sorted(unsupported))}"
            )
        return content_stages(encoding=encoding or "utf-8", **options)

    return build_stages(encoding=encoding, **options)


def build_mount(
    *,
    src: PathLike | Sequence[PathLike] | Callable[..., Any] | None = None,
    dest: PathLike | Callable[[str], PathLike] | None = None,
    prefix: str = "/",
    force: FreshnessPolicy | str | bool | None = None,
    encoding: str | None = None,
    pipeline: PipelineStages | Mapping[str, Any] | None = None,
) -> MountConfig:
    """Normalize every option and return the frozen MountConfig."""
    mount = MountConfig(
        sources=normalize_sources(src),
        destination=normalize_destination(dest),
        stages=normalize_pipeline(pipeline, encoding=encoding),
        prefix=prefix or "",
        force=FreshnessPolicy.coerce(force),
    )
    logger.debug("Built mount prefix=%r force=%s", mount.prefix, mount.force.value)
    return mount
