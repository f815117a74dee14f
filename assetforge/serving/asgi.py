"""ASGI binding — serve generated artifacts from Starlette.

``AssetMiddleware`` intercepts GET requests under its mount prefix, asks the
BuildOrchestrator for the artifact, and streams it back. When there is
nothing to serve the request continues down the stack, so a later route
(or the 404 fallback) answers it.

Error mapping:
  - ResolutionError for the destination -> 404 problem response
  - any other AssetError, source resolver failures included -> 500
    problem response
"""

from __future__ import annotations

import logging
from typing import Any

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import FileResponse, JSONResponse, Response
from starlette.routing import Route

from assetforge.config import ServerConfig
from assetforge.core.errors import AssetError, ResolutionError
from assetforge.core.orchestrator import BuildOrchestrator
from assetforge.core.resolvers import strip_prefix
from assetforge.models.mount import MountConfig

logger = logging.getLogger(__name__)


def problem_response(*, status: int, title: str, detail: str = "", instance: str = "", **extra: Any) -> JSONResponse:
    """Build an RFC 7807 JSON error response."""
    body = {"title": title, "status": status, "detail": detail, "instance": instance, **extra}
    return JSONResponse(
        status_code=status,
        content=body,
        media_type="application/problem+json",
    )


class AssetMiddleware(BaseHTTPMiddleware):
    """Serve build artifacts for GET requests under the mount prefix.

    Parameters
    ----------
    app:
        The ASGI application to wrap.
    mount:
        Normalized mount configuration.
    expose_errors:
        Include error messages in 500 responses.
    """

    def __init__(self, app: object, mount: MountConfig, *, expose_errors: bool = False) -> None:
        super().__init__(app)  # type: ignore[arg-type]
        self.orchestrator = BuildOrchestrator(mount)
        self._prefix = mount.prefix
        self._expose_errors = expose_errors

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.method != "GET":
            return await call_next(request)

        pathname = request.url.path
        if self._prefix and not pathname.startswith(self._prefix):
            return await call_next(request)

        resource = strip_prefix(pathname, self._prefix)
        logger.debug("Pathname %s -> resource %r", pathname, resource)

        try:
            artifact = await self.orchestrator.handle(resource, request)
        except ResolutionError as exc:
            if exc.target != "destination":
                return self._build_failed(pathname, exc)
            logger.debug("Cannot resolve %s: %s", pathname, exc)
            return problem_response(
                status=404,
                title="Not Found",
                detail=str(exc),
                instance=pathname,
                kind=exc.kind.value,
            )
        except AssetError as exc:
            return self._build_failed(pathname, exc)

        if artifact is None:
            logger.debug("Nothing to serve for %s", pathname)
            return await call_next(request)

        logger.debug("Serving %s", artifact)
        return FileResponse(artifact)

    def _build_failed(self, pathname: str, exc: AssetError) -> Response:
        logger.error("Build failed for %s: %s", pathname, exc)
        return problem_response(
            status=500,
            title="Asset Build Failed",
            detail=str(exc) if self._expose_errors else "The asset could not be generated.",
            instance=pathname,
            kind=exc.kind.value,
        )


async def _not_found(request: Request) -> Response:
    return problem_response(status=404, title="Not Found", instance=request.url.path)


def create_app(config: ServerConfig | None = None, *, mount: MountConfig | None = None) -> Starlette:
    """Build a Starlette app that serves a single asset mount.

    Unmatched requests fall through to a 404 problem response.
    """
    config = config or ServerConfig()
    mount = mount or config.to_mount()
    return Starlette(
        debug=not config.is_production and config.log_level.upper() == "DEBUG",
        routes=[Route("/{path:path}", _not_found, methods=["GET", "HEAD", "POST", "PUT", "DELETE"])],
        middleware=[
            Middleware(AssetMiddleware, mount=mount, expose_errors=not config.is_production),
        ],
    )
