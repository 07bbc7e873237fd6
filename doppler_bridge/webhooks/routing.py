"""Tenant routing — maps /webhook/<segment> to a Dokploy target.

Each tenant is configured once at startup and never changes afterwards.
Lookup is exact and case-sensitive: no prefixes, no wildcards.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType

from doppler_bridge.errors import MissingPathError, UnknownPathError

WEBHOOK_PREFIX = "/webhook"


class DeploymentKind(str, Enum):
    """Dokploy deployment flavour. Decides endpoints and identifier field."""
    APPLICATION = "application"  # single service
    COMPOSE = "compose"  # multi-service bundle

    @property
    def id_field(self) -> str:
        return _KIND_ROUTES[self][0]

    @property
    def save_endpoint(self) -> str:
        return _KIND_ROUTES[self][1]

    @property
    def redeploy_endpoint(self) -> str:
        return _KIND_ROUTES[self][2]


# kind -> (identifier field, save-environment endpoint, redeploy endpoint)
_KIND_ROUTES: dict[DeploymentKind, tuple[str, str, str]] = {
    DeploymentKind.APPLICATION: (
        "applicationId",
        "/api/application.saveEnvironment",
        "/api/application.redeploy",
    ),
    DeploymentKind.COMPOSE: (
        "composeId",
        "/api/compose.update",
        "/api/compose.redeploy",
    ),
}


@dataclass(frozen=True)
class TenantTarget:
    """One configured webhook path and the deployment it feeds."""
    path: str
    deployment_id: str
    kind: DeploymentKind
    doppler_token: str


def normalize_webhook_path(url_path: str) -> str:
    """Strip the /webhook prefix and surrounding slashes.

    ``/webhook/meilisearch/`` -> ``meilisearch``; ``/webhook`` -> ``""``.
    """
    if url_path.startswith(WEBHOOK_PREFIX):
        url_path = url_path[len(WEBHOOK_PREFIX):]
    return url_path.strip("/")


def webhook_url_path(target: TenantTarget) -> str:
    """URL path Doppler should post to for ``target``."""
    return f"{WEBHOOK_PREFIX}/{target.path}" if target.path else WEBHOOK_PREFIX


class TenantRouter:
    """Read-only segment -> TenantTarget table."""

    def __init__(self, targets: Iterable[TenantTarget], default: TenantTarget | None = None):
        table: dict[str, TenantTarget] = {}
        for target in targets:
            if target.path in table:
                raise ValueError(f"Duplicate webhook path: {target.path}")
            table[target.path] = target
        self._targets: Mapping[str, TenantTarget] = MappingProxyType(table)
        self._default = default

    @classmethod
    def single(cls, target: TenantTarget) -> TenantRouter:
        """Single-tenant router: every webhook goes to ``target``."""
        return cls([target], default=target)

    @property
    def is_single_tenant(self) -> bool:
        return self._default is not None

    @property
    def targets(self) -> Mapping[str, TenantTarget]:
        return self._targets

    def lookup(self, segment: str) -> TenantTarget | None:
        """Exact-match lookup. Empty segment is never found."""
        if not segment:
            return None
        return self._targets.get(segment)

    def resolve(self, segment: str) -> TenantTarget:
        """Lookup that raises the routing error the handler should surface."""
        if self._default is not None:
            return self._default
        if not segment:
            raise MissingPathError("missing service path in webhook URL")
        target = self.lookup(segment)
        if target is None:
            raise UnknownPathError(f"service not found for path: {segment}")
        return target
