"""Error taxonomy for the bridge.

Two families:
- WebhookRejected: raised while admitting an inbound webhook. Each carries the
  HTTP status and the short public message returned to the sender.
- ClientError: raised by the Doppler and Dokploy clients. These only ever
  happen in the background sequence, after the sender already got its 200.
"""

from __future__ import annotations


class BridgeError(Exception):
    """Base class for all bridge errors."""


class ConfigError(BridgeError):
    """Missing or invalid startup configuration. Fatal before serving."""


# ── Inbound rejections ────────────────────────────────────────────────────


class WebhookRejected(BridgeError):
    """An inbound webhook was refused before being accepted."""

    status_code = 400
    public_message = "Bad request"

    def __init__(self, reason: str = ""):
        self.reason = reason or self.public_message
        super().__init__(self.reason)


class MethodNotAllowedError(WebhookRejected):
    status_code = 405
    public_message = "Method not allowed"


class AuthError(WebhookRejected):
    """Bad webhook secret or bad Doppler signature."""

    status_code = 401
    public_message = "Unauthorized"


class RoutingError(WebhookRejected):
    """The webhook path does not map to a configured target."""


class MissingPathError(RoutingError):
    status_code = 400
    public_message = "Bad request: missing service path"


class UnknownPathError(RoutingError):
    status_code = 404
    public_message = "Not found: unknown service path"


class PayloadError(WebhookRejected):
    """Unreadable body or undecodable webhook JSON."""

    status_code = 400
    public_message = "Bad request"


# ── Outbound client failures ──────────────────────────────────────────────


class ClientError(BridgeError):
    """A call to Doppler or Dokploy failed."""


class UpstreamError(ClientError):
    """The remote API answered with a non-200 status."""

    def __init__(self, service: str, status_code: int, body: str):
        self.service = service
        self.status_code = status_code
        self.body = body
        super().__init__(f"{service} API returned {status_code}: {body}")


class TransportError(ClientError):
    """The request could not be sent or the connection failed."""


class DecodeError(ClientError):
    """The response body was not in the expected shape."""
