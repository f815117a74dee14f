"""Serving collaborators — bind the build orchestrator to a transport."""

from assetforge.serving.asgi import AssetMiddleware, create_app

__all__ = ["AssetMiddleware", "create_app"]
