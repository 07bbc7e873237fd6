"""Shared fixtures for the bridge test suite.

- make_settings: Settings built from explicit values only (no env, no .env)
- upstreams: fake Doppler + Dokploy behind one httpx.MockTransport
- make_client: TestClient over create_app() wired to the fake upstreams
"""

from __future__ import annotations

import json
from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient

from doppler_bridge.config import Settings
from doppler_bridge.serve import create_app

WEBHOOK_SECRET = "hook-secret-123"
DOKPLOY_HOST = "https://dokploy.example.test"
DOPPLER_HOST = "api.doppler.com"

MULTI_TENANT_SERVICES = "svc1:app-1:application:dp.st.tenant-one,stack:cmp-9:compose:dp.st.tenant-two"


class FakeUpstreams:
    """Records every outbound request and answers like Doppler/Dokploy would."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.secrets: dict[str, Any] = {"API_KEY": "abc123", "GREETING": "hello world"}
        self.doppler_status = 200
        # Dokploy endpoint path -> status override
        self.dokploy_status: dict[str, int] = {}

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == DOPPLER_HOST:
            if self.doppler_status != 200:
                return httpx.Response(self.doppler_status, text="doppler exploded")
            return httpx.Response(200, json=self.secrets)
        status = self.dokploy_status.get(request.url.path, 200)
        return httpx.Response(status, json={} if status == 200 else {"message": "nope"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def calls(self) -> list[str]:
        """``METHOD /path`` for every recorded request, in order."""
        return [f"{r.method} {r.url.path}" for r in self.requests]

    def json_body(self, index: int) -> dict[str, Any]:
        return json.loads(self.requests[index].content)


def _payload(project: str = "proj", config: str = "dev", **extra: Any) -> dict[str, Any]:
    payload = {
        "type": "config.secrets.update",
        "config": {"name": config, "environment": "development", "project": project},
        "project": {"id": "proj-id", "name": project, "description": None},
        "workplace": {"id": "wp-1", "name": "Acme"},
        "diff": {"added": ["NEW_KEY"], "removed": [], "updated": ["API_KEY"]},
    }
    payload.update(extra)
    return payload


@pytest.fixture
def make_payload():
    """Factory for a Doppler webhook body as Doppler sends it."""
    return _payload


@pytest.fixture
def webhook_secret() -> str:
    return WEBHOOK_SECRET


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {WEBHOOK_SECRET}", "Content-Type": "application/json"}


@pytest.fixture
def make_settings():
    """Factory for Settings isolated from the process environment."""

    def _make(**overrides: Any) -> Settings:
        values: dict[str, Any] = {
            "dokploy_host": DOKPLOY_HOST,
            "dokploy_api_token": "dokploy-token",
            "webhook_secret": WEBHOOK_SECRET,
            "services": MULTI_TENANT_SERVICES,
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


@pytest.fixture
def upstreams() -> FakeUpstreams:
    return FakeUpstreams()


@pytest.fixture
def make_client(make_settings, upstreams):
    """Factory for a TestClient over a freshly built app."""

    def _make(**overrides: Any) -> TestClient:
        app = create_app(make_settings(**overrides), transport=upstreams.transport)
        return TestClient(app, raise_server_exceptions=False)

    return _make


@pytest.fixture
def client(make_client) -> TestClient:
    """Multi-tenant client, no signing secret."""
    return make_client()
