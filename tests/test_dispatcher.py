"""Tests for the background secret sync sequence.

Tests:
- Happy path runs fetch -> update -> redeploy in order with the right args
- Each stage failure stops the remaining stages and is logged
- Targets without a Doppler client are refused
"""

from __future__ import annotations

import logging
from unittest.mock import MagicMock, call

import httpx
import pytest

from doppler_bridge.clients.dokploy import DokployClient
from doppler_bridge.clients.doppler import DopplerClient
from doppler_bridge.envfile import secrets_to_env
from doppler_bridge.errors import DecodeError, TransportError, UpstreamError
from doppler_bridge.webhooks.dispatcher import SecretSyncDispatcher
from doppler_bridge.webhooks.models import WebhookPayload
from doppler_bridge.webhooks.routing import DeploymentKind, TenantTarget

TARGET = TenantTarget(path="svc1", deployment_id="app-1", kind=DeploymentKind.APPLICATION, doppler_token="tok")
SECRETS = {"API_KEY": "abc", "GREETING": "hello world"}


@pytest.fixture
def payload(make_payload) -> WebhookPayload:
    return WebhookPayload.model_validate(make_payload(project="proj", config="dev"))


@pytest.fixture
def mocks():
    """Doppler + Dokploy mocks attached to one parent to record call order."""
    parent = MagicMock()
    doppler = MagicMock(spec=DopplerClient)
    dokploy = MagicMock(spec=DokployClient)
    doppler.fetch_secrets.return_value = dict(SECRETS)
    parent.attach_mock(doppler, "doppler")
    parent.attach_mock(dokploy, "dokploy")
    return parent, doppler, dokploy


@pytest.fixture
def dispatcher(mocks) -> SecretSyncDispatcher:
    _, doppler, dokploy = mocks
    return SecretSyncDispatcher(dokploy, {"svc1": doppler})


class TestSyncHappyPath:

    def test_runs_all_stages_in_order(self, dispatcher, mocks, payload):
        parent, _, _ = mocks
        assert dispatcher.sync(payload, TARGET) is True

        assert parent.mock_calls == [
            call.doppler.fetch_secrets("proj", "dev"),
            call.dokploy.update_environment("app-1", secrets_to_env(SECRETS), DeploymentKind.APPLICATION),
            call.dokploy.redeploy("app-1", DeploymentKind.APPLICATION),
        ]

    def test_compose_target_passes_kind_through(self, mocks, payload):
        _, doppler, dokploy = mocks
        target = TenantTarget(path="stack", deployment_id="cmp-9", kind=DeploymentKind.COMPOSE, doppler_token="t")
        dispatcher = SecretSyncDispatcher(dokploy, {"stack": doppler})

        assert dispatcher.sync(payload, target) is True
        dokploy.redeploy.assert_called_once_with("cmp-9", DeploymentKind.COMPOSE)

    def test_uses_the_targets_own_client(self, mocks, payload):
        _, doppler, dokploy = mocks
        other = MagicMock(spec=DopplerClient)
        dispatcher = SecretSyncDispatcher(dokploy, {"svc1": doppler, "other": other})

        dispatcher.sync(payload, TARGET)
        doppler.fetch_secrets.assert_called_once()
        other.fetch_secrets.assert_not_called()

    def test_client_mapping_is_read_only(self, dispatcher):
        with pytest.raises(TypeError):
            dispatcher.doppler_clients["new"] = MagicMock()  # type: ignore[index]


class TestSyncFailures:

    @pytest.mark.parametrize(
        "error",
        [
            UpstreamError("doppler", 500, "boom"),
            TransportError("connection refused"),
            DecodeError("not a flat object"),
        ],
    )
    def test_fetch_failure_stops_everything(self, dispatcher, mocks, payload, error, caplog):
        _, doppler, dokploy = mocks
        doppler.fetch_secrets.side_effect = error

        with caplog.at_level(logging.ERROR):
            assert dispatcher.sync(payload, TARGET) is False

        dokploy.update_environment.assert_not_called()
        dokploy.redeploy.assert_not_called()
        assert "stage=fetch" in caplog.text
        assert type(error).__name__ in caplog.text
        assert "svc1" in caplog.text

    def test_update_failure_skips_redeploy(self, dispatcher, mocks, payload, caplog):
        _, _, dokploy = mocks
        dokploy.update_environment.side_effect = UpstreamError("dokploy", 400, "bad env")

        with caplog.at_level(logging.ERROR):
            assert dispatcher.sync(payload, TARGET) is False

        dokploy.redeploy.assert_not_called()
        assert "stage=update" in caplog.text
        assert "400" in caplog.text

    def test_redeploy_failure_leaves_update_in_place(self, dispatcher, mocks, payload, caplog):
        _, _, dokploy = mocks
        dokploy.redeploy.side_effect = TransportError("timed out")

        with caplog.at_level(logging.ERROR):
            assert dispatcher.sync(payload, TARGET) is False

        dokploy.update_environment.assert_called_once()
        assert "stage=redeploy" in caplog.text

    def test_unexpected_errors_propagate(self, dispatcher, mocks, payload):
        _, doppler, _ = mocks
        doppler.fetch_secrets.side_effect = RuntimeError("bug")
        with pytest.raises(RuntimeError):
            dispatcher.sync(payload, TARGET)

    def test_missing_client_is_refused(self, mocks, payload, caplog):
        _, _, dokploy = mocks
        dispatcher = SecretSyncDispatcher(dokploy, {})

        with caplog.at_level(logging.ERROR):
            assert dispatcher.sync(payload, TARGET) is False

        dokploy.update_environment.assert_not_called()
        assert "No Doppler client" in caplog.text

    def test_secret_values_not_logged(self, dispatcher, mocks, payload, caplog):
        with caplog.at_level(logging.DEBUG):
            dispatcher.sync(payload, TARGET)
        assert "hello world" not in caplog.text
        assert "abc" not in caplog.text


def test_close_closes_all_clients(mocks):
    _, doppler, dokploy = mocks
    SecretSyncDispatcher(dokploy, {"svc1": doppler}).close()
    doppler.close.assert_called_once()
    dokploy.close.assert_called_once()


def test_sync_after_close_is_logged_not_raised(payload, caplog):
    """A sync still running at shutdown fails like any other transport error."""
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={}))
    doppler = DopplerClient("tok", transport=transport)
    dokploy = DokployClient("https://dokploy.example.test", "key", transport=transport)
    dispatcher = SecretSyncDispatcher(dokploy, {"svc1": doppler})
    dispatcher.close()

    with caplog.at_level(logging.ERROR):
        assert dispatcher.sync(payload, TARGET) is False

    assert "stage=fetch" in caplog.text
    assert "TransportError" in caplog.text
