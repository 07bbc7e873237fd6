"""Bridge configuration — environment-driven settings.

Two modes:
- Multi-tenant: SERVICES="path:serviceId:serviceType:dopplerToken,..."
  routes /webhook/<path> to each service with its own Doppler token.
- Single-tenant: no SERVICES; DOKPLOY_SERVICE_ID + DOPPLER_TOKEN define one
  implicit target that every /webhook request goes to.
"""

from __future__ import annotations

import logging

from pydantic_settings import BaseSettings

from doppler_bridge.clients.doppler import DOPPLER_API_URL
from doppler_bridge.errors import ConfigError
from doppler_bridge.webhooks.routing import DeploymentKind, TenantRouter, TenantTarget

logger = logging.getLogger(__name__)

SERVICES_FORMAT = "path:serviceId:serviceType:dopplerToken"


def parse_services(raw: str) -> list[TenantTarget]:
    """Parse the SERVICES list. Malformed entries are skipped with a warning."""
    targets: list[TenantTarget] = []
    seen: set[str] = set()

    for position, entry in enumerate(raw.split(","), start=1):
        entry = entry.strip()
        if not entry:
            continue

        parts = [part.strip() for part in entry.split(":")]
        if len(parts) != 4:
            logger.warning(
                "Invalid service config at entry %d: %d fields (expected format: %s)",
                position, len(parts), SERVICES_FORMAT,
            )
            continue

        path, service_id, service_type, token = parts
        if not path or not service_id or not token:
            logger.warning("Empty path/serviceId/token in service config for path '%s'", path)
            continue

        try:
            kind = DeploymentKind(service_type)
        except ValueError:
            logger.warning(
                "Invalid service type for path '%s' (expected one of: %s)",
                path, ", ".join(variant.value for variant in DeploymentKind),
            )
            continue

        if path in seen:
            logger.warning("Duplicate service path '%s' ignored", path)
            continue
        seen.add(path)

        targets.append(TenantTarget(path=path, deployment_id=service_id, kind=kind, doppler_token=token))

    return targets


class Settings(BaseSettings):
    """Environment-driven settings for the bridge."""

    port: int = 3000
    bridge_host: str = "0.0.0.0"  # bind address; a plain HOST variable is ignored
    log_level: str = "INFO"

    # Dokploy
    dokploy_host: str = ""
    dokploy_api_token: str = ""
    cf_access_client_id: str = ""
    cf_access_client_secret: str = ""

    # Doppler
    doppler_api_url: str = DOPPLER_API_URL
    doppler_token: str = ""  # single-tenant token
    doppler_secret: str = ""  # webhook signing secret; empty disables signature checks

    # Inbound auth
    webhook_secret: str = ""

    # Targets
    services: str = ""
    dokploy_service_id: str = ""
    dokploy_service_type: str = DeploymentKind.APPLICATION.value

    model_config = {"env_file": ".env", "extra": "ignore"}

    def tenant_targets(self) -> list[TenantTarget]:
        return parse_services(self.services) if self.services else []

    @property
    def signature_verification_enabled(self) -> bool:
        return bool(self.doppler_secret)

    @property
    def zero_trust_enabled(self) -> bool:
        return bool(self.cf_access_client_id and self.cf_access_client_secret)

    def single_target(self) -> TenantTarget:
        """The implicit target used when SERVICES is not set."""
        if not self.dokploy_service_id or not self.doppler_token:
            raise ConfigError(
                f"SERVICES is required (format: {SERVICES_FORMAT},...), "
                "or set DOKPLOY_SERVICE_ID and DOPPLER_TOKEN for a single target"
            )
        try:
            kind = DeploymentKind(self.dokploy_service_type)
        except ValueError as e:
            raise ConfigError(f"Invalid DOKPLOY_SERVICE_TYPE: {self.dokploy_service_type}") from e
        return TenantTarget(
            path="",
            deployment_id=self.dokploy_service_id,
            kind=kind,
            doppler_token=self.doppler_token,
        )

    def build_router(self) -> TenantRouter:
        """Multi-tenant router from SERVICES, else the single-tenant router.

        A SERVICES value whose entries are all malformed falls through to the
        single-tenant target, which raises ConfigError when absent.
        """
        targets = self.tenant_targets()
        if targets:
            return TenantRouter(targets)
        return TenantRouter.single(self.single_target())

    def validate_required(self) -> None:
        """Raise ConfigError if a mandatory setting is missing."""
        if not self.dokploy_host:
            raise ConfigError("DOKPLOY_HOST is required")
        if not self.dokploy_api_token:
            raise ConfigError("DOKPLOY_API_TOKEN is required")
        if not self.webhook_secret:
            raise ConfigError("WEBHOOK_SECRET is required")


def mask_token(token: str, visible: int = 6) -> str:
    """Short prefix of a token for logs."""
    if len(token) <= visible:
        return "***"
    return token[:visible] + "..."
