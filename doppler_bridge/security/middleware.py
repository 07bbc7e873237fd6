"""Webhook authentication middleware.

Runs BEFORE routing, so a bad secret is always 401 no matter whether the
webhook path exists. /health and everything outside /webhook stay public.
"""

from __future__ import annotations

import hmac
import logging

from fastapi import Request
from fastapi.responses import PlainTextResponse
from starlette.middleware.base import BaseHTTPMiddleware

from doppler_bridge.errors import AuthError
from doppler_bridge.webhooks.routing import WEBHOOK_PREFIX

logger = logging.getLogger(__name__)


def is_webhook_path(path: str) -> bool:
    """True for /webhook and anything below /webhook/."""
    return path == WEBHOOK_PREFIX or path.startswith(WEBHOOK_PREFIX + "/")


def extract_token(auth_header: str | None) -> str:
    """Accept both ``Bearer <token>`` and a bare ``<token>``."""
    if not auth_header:
        return ""
    if auth_header.startswith("Bearer "):
        auth_header = auth_header[len("Bearer "):]
    return auth_header.strip()


def check_webhook_secret(auth_header: str | None, secret: str) -> bool:
    """Constant-time comparison of the Authorization token with ``secret``."""
    token = extract_token(auth_header)
    if not token or not secret:
        return False
    return hmac.compare_digest(token.encode("utf-8"), secret.encode("utf-8"))


class WebhookAuthMiddleware(BaseHTTPMiddleware):
    """Require the shared webhook secret on every /webhook request."""

    def __init__(self, app, secret: str):
        super().__init__(app)
        self._secret = secret

    async def dispatch(self, request: Request, call_next):
        if not is_webhook_path(request.url.path):
            return await call_next(request)

        if not check_webhook_secret(request.headers.get("authorization"), self._secret):
            error = AuthError("invalid webhook secret")
            logger.warning("Unauthorized: %s (path=%s)", error.reason, request.url.path)
            return PlainTextResponse(error.public_message, status_code=error.status_code)

        return await call_next(request)
