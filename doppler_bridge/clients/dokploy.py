"""Dokploy API client — environment updates and redeploys.

Auth is the x-api-key header. When the Dokploy instance sits behind
Cloudflare Zero Trust, both CF-Access-Client-Id and CF-Access-Client-Secret
are attached to every request; with only one of them configured, neither is.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from doppler_bridge.clients.doppler import DEFAULT_TIMEOUT
from doppler_bridge.errors import TransportError, UpstreamError
from doppler_bridge.webhooks.routing import DeploymentKind

logger = logging.getLogger(__name__)


class DokployClient:
    """Pushes env blobs to applications/composes and triggers redeploys."""

    def __init__(
        self,
        host: str,
        api_token: str,
        cf_access_client_id: str = "",
        cf_access_client_secret: str = "",
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ):
        headers = {
            "Content-Type": "application/json",
            "x-api-key": api_token,
        }
        if cf_access_client_id and cf_access_client_secret:
            headers["CF-Access-Client-Id"] = cf_access_client_id
            headers["CF-Access-Client-Secret"] = cf_access_client_secret

        self._client = httpx.Client(
            base_url=host.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @property
    def zero_trust_enabled(self) -> bool:
        return "CF-Access-Client-Id" in self._client.headers

    def update_environment(self, target_id: str, env: str, kind: DeploymentKind) -> None:
        """Replace the environment of an application or compose."""
        self._post(kind.save_endpoint, {kind.id_field: target_id, "env": env})

    def redeploy(self, target_id: str, kind: DeploymentKind) -> None:
        """Trigger a redeployment of an application or compose."""
        self._post(kind.redeploy_endpoint, {kind.id_field: target_id})

    def _post(self, endpoint: str, payload: dict[str, Any]) -> None:
        try:
            response = self._client.post(endpoint, json=payload)
        except httpx.RequestError as e:
            raise TransportError(f"POST {endpoint} failed: {e}") from e
        except RuntimeError as e:
            if not self._client.is_closed:
                raise
            raise TransportError(f"POST {endpoint} failed: {e}") from e

        if response.status_code != 200:
            raise UpstreamError("dokploy", response.status_code, response.text)

        logger.debug("POST %s -> %d", endpoint, response.status_code)

    def close(self) -> None:
        self._client.close()
