"""Background secret sync — fetch, serialize, update, redeploy.

Runs after the webhook sender already got its 200, so every failure here is
terminal and only visible in the logs:
- fetch fails -> nothing is written to Dokploy
- update fails -> no redeploy
- redeploy fails -> Dokploy keeps the new env with the old running deployment

Nothing is retried and nothing is compensated. In-flight syncs are not
drained on shutdown: once the clients are closed, a sync still running fails
its next stage with TransportError and logs it like any other failure.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from types import MappingProxyType

from doppler_bridge.clients.dokploy import DokployClient
from doppler_bridge.clients.doppler import DopplerClient
from doppler_bridge.envfile import secrets_to_env
from doppler_bridge.errors import ClientError
from doppler_bridge.webhooks.models import WebhookPayload
from doppler_bridge.webhooks.routing import TenantTarget

logger = logging.getLogger(__name__)


class SecretSyncDispatcher:
    """Runs the sync sequence for one accepted webhook at a time.

    Holds only read-only state (one Doppler client per tenant path and the
    shared Dokploy client), so concurrent sequences never contend on it.

    Two webhooks for the same tenant may run side by side and finish in any
    order; the later Dokploy write wins even if it carries older secrets.
    """

    def __init__(self, dokploy: DokployClient, doppler_clients: Mapping[str, DopplerClient]):
        self._dokploy = dokploy
        self._doppler_clients = MappingProxyType(dict(doppler_clients))

    @property
    def doppler_clients(self) -> Mapping[str, DopplerClient]:
        return self._doppler_clients

    def sync(self, payload: WebhookPayload, target: TenantTarget) -> bool:
        """Run fetch -> serialize -> update -> redeploy. Returns True on completion."""
        client = self._doppler_clients.get(target.path)
        if client is None:
            logger.error("No Doppler client found for path: %s", target.path)
            return False

        stage = "fetch"
        try:
            secrets = client.fetch_secrets(payload.config.project, payload.config.name)
            logger.info("Fetched %d secrets from Doppler for %s", len(secrets), target.path)

            env = secrets_to_env(secrets)

            stage = "update"
            self._dokploy.update_environment(target.deployment_id, env, target.kind)
            logger.info(
                "Updated environment for %s (id=%s, kind=%s)",
                target.path, target.deployment_id, target.kind.value,
            )

            stage = "redeploy"
            self._dokploy.redeploy(target.deployment_id, target.kind)
        except ClientError as e:
            logger.error(
                "Secret sync failed for %s at stage=%s (%s): %s",
                target.path, stage, type(e).__name__, e,
            )
            return False

        logger.info(
            "Triggered redeploy for %s (id=%s, kind=%s)",
            target.path, target.deployment_id, target.kind.value,
        )
        return True

    def close(self) -> None:
        for client in self._doppler_clients.values():
            client.close()
        self._dokploy.close()
