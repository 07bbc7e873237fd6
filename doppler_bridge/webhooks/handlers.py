"""Webhook HTTP handlers — FastAPI routes for inbound Doppler webhooks.

Each request (already past the auth middleware):
1. Rejects non-POST methods
2. Resolves the tenant from the URL path (skipped in single-tenant mode)
3. Reads the raw body (needed for HMAC verification)
4. Verifies X-Doppler-Signature when a signing secret is configured
5. Decodes the JSON payload
6. Returns 200 "OK" immediately; the sync runs as a background task

Security contract:
- Error responses are short fixed strings, never exception details
- Background failures are never reported to the sender
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from starlette.background import BackgroundTask
from starlette.requests import ClientDisconnect

from doppler_bridge.errors import AuthError, MethodNotAllowedError, PayloadError, WebhookRejected
from doppler_bridge.webhooks.dispatcher import SecretSyncDispatcher
from doppler_bridge.webhooks.models import WebhookPayload, decode_payload
from doppler_bridge.webhooks.routing import TenantRouter, TenantTarget, normalize_webhook_path
from doppler_bridge.webhooks.verification import SIGNATURE_HEADER, verify_signature

logger = logging.getLogger(__name__)

_ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


async def _admit(request: Request) -> tuple[TenantTarget, WebhookPayload]:
    """Walk the rejection checks in order. Raises WebhookRejected."""
    if request.method != "POST":
        raise MethodNotAllowedError(f"method {request.method} not allowed")

    router: TenantRouter = request.app.state.router
    path = normalize_webhook_path(request.url.path)
    target = router.resolve(path)
    logger.info(
        "Routing webhook to service: path=%s, id=%s, kind=%s",
        target.path, target.deployment_id, target.kind.value,
    )

    try:
        body = await request.body()
    except ClientDisconnect as e:
        raise PayloadError(f"failed to read body: {e}") from e

    signing_secret: str = request.app.state.settings.doppler_secret
    if signing_secret:
        signature = request.headers.get(SIGNATURE_HEADER)
        if not signature:
            raise AuthError("missing Doppler signature header")
        if not verify_signature(signing_secret, body, signature):
            raise AuthError("invalid Doppler signature")
        logger.debug("Doppler signature verified")

    return target, decode_payload(body)


async def handle_webhook(request: Request) -> PlainTextResponse:
    """Admit a Doppler webhook and schedule its secret sync."""
    try:
        target, payload = await _admit(request)
    except WebhookRejected as e:
        logger.warning(
            "Webhook rejected (%d) path=%s: %s", e.status_code, request.url.path, e.reason
        )
        return PlainTextResponse(e.public_message, status_code=e.status_code)

    logger.info("Received webhook: %s, path=%s", payload.summary(), target.path)

    dispatcher: SecretSyncDispatcher = request.app.state.dispatcher
    # Runs after the response is sent; the sender never sees its outcome
    return PlainTextResponse("OK", background=BackgroundTask(dispatcher.sync, payload, target))


def register_webhook_routes(app: FastAPI) -> None:
    """Register /webhook and /webhook/{segment} on the app.

    All methods are routed to the handler so non-POST requests get the
    handler's 405 rather than a framework default.
    """
    app.add_api_route("/webhook", handle_webhook, methods=_ALL_METHODS, include_in_schema=False)
    app.add_api_route(
        "/webhook/{segment:path}", handle_webhook, methods=_ALL_METHODS, include_in_schema=False
    )
