"""FastAPI app factory for the bridge.

Routes:
- GET /health                 -> 200 "OK" (public)
- POST /webhook               -> single-tenant target
- POST /webhook/{segment}     -> multi-tenant target by path

The router and per-tenant Doppler clients are built once here and are
read-only for the life of the process. In-flight background syncs are not
drained on shutdown.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from doppler_bridge.clients.dokploy import DokployClient
from doppler_bridge.clients.doppler import DopplerClient
from doppler_bridge.config import Settings
from doppler_bridge.security.middleware import WebhookAuthMiddleware
from doppler_bridge.webhooks.dispatcher import SecretSyncDispatcher
from doppler_bridge.webhooks.handlers import register_webhook_routes

logger = logging.getLogger(__name__)


def create_app(settings: Settings, transport: httpx.BaseTransport | None = None) -> FastAPI:
    """Build the bridge app. Raises ConfigError when no target is configured.

    ``transport`` is handed to every outbound httpx client (tests use
    httpx.MockTransport to stand in for Doppler and Dokploy).
    """
    router = settings.build_router()

    dokploy = DokployClient(
        settings.dokploy_host,
        settings.dokploy_api_token,
        cf_access_client_id=settings.cf_access_client_id,
        cf_access_client_secret=settings.cf_access_client_secret,
        transport=transport,
    )
    doppler_clients = {
        path: DopplerClient(target.doppler_token, base_url=settings.doppler_api_url, transport=transport)
        for path, target in router.targets.items()
    }
    dispatcher = SecretSyncDispatcher(dokploy, doppler_clients)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        dispatcher.close()

    app = FastAPI(title="Doppler Bridge", lifespan=lifespan)
    app.state.settings = settings
    app.state.router = router
    app.state.dispatcher = dispatcher

    app.add_middleware(WebhookAuthMiddleware, secret=settings.webhook_secret)

    @app.get("/health", response_class=PlainTextResponse)
    async def health():
        return "OK"

    register_webhook_routes(app)
    return app
