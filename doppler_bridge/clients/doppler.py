"""Doppler secrets API client.

One client per tenant: every tenant brings its own service token.
Single attempt per call, no retry. The 30s timeout bounds how long a
background sync can block on Doppler.
"""

from __future__ import annotations

import logging

import httpx

from doppler_bridge.errors import DecodeError, TransportError, UpstreamError

logger = logging.getLogger(__name__)

DOPPLER_API_URL = "https://api.doppler.com"
DOWNLOAD_PATH = "/v3/configs/config/secrets/download"
DEFAULT_TIMEOUT = 30.0


class DopplerClient:
    """Fetches a config's secrets as a flat name -> value mapping."""

    def __init__(
        self,
        token: str,
        base_url: str = DOPPLER_API_URL,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ):
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout,
            transport=transport,
        )

    def fetch_secrets(self, project: str, config: str) -> dict[str, str]:
        """Download all secrets of ``project``/``config`` in JSON format.

        Raises:
            TransportError: the request could not be sent, or the client is closed
            UpstreamError: Doppler answered with a non-200 status
            DecodeError: the body is not a flat JSON object of strings
        """
        try:
            response = self._client.get(
                DOWNLOAD_PATH,
                params={"project": project, "config": config, "format": "json"},
            )
        except httpx.RequestError as e:
            raise TransportError(f"failed to fetch secrets: {e}") from e
        except RuntimeError as e:
            # httpx refuses to send once close() ran at shutdown
            if not self._client.is_closed:
                raise
            raise TransportError(f"failed to fetch secrets: {e}") from e

        if response.status_code != 200:
            raise UpstreamError("doppler", response.status_code, response.text)

        try:
            secrets = response.json()
        except ValueError as e:
            raise DecodeError(f"failed to decode secrets: {e}") from e

        if not isinstance(secrets, dict) or not all(
            isinstance(value, str) for value in secrets.values()
        ):
            raise DecodeError("failed to decode secrets: expected a flat object of strings")

        logger.debug("Fetched %d secrets for %s/%s", len(secrets), project, config)
        return secrets

    def close(self) -> None:
        self._client.close()
