"""CLI entry point: configure, log the startup banner, serve.

Usage:
    doppler-bridge --services "api:app123:application:dp.st.xxx"
    PORT=8080 WEBHOOK_SECRET=... DOKPLOY_HOST=... doppler-bridge

Flags override the matching environment variables.
"""

from __future__ import annotations

import argparse
import logging
import sys

import uvicorn
from fastapi import FastAPI

from doppler_bridge.config import Settings, mask_token
from doppler_bridge.errors import ConfigError
from doppler_bridge.serve import create_app
from doppler_bridge.webhooks.routing import webhook_url_path

logger = logging.getLogger("doppler_bridge")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# argparse dests match Settings field names
_OVERRIDE_FLAGS = (
    ("--port", int, "Port to listen on (PORT)"),
    ("--bridge-host", str, "Interface to bind (BRIDGE_HOST)"),
    ("--dokploy-host", str, "Dokploy instance URL (DOKPLOY_HOST)"),
    ("--dokploy-api-token", str, "Dokploy API token (DOKPLOY_API_TOKEN)"),
    ("--doppler-token", str, "Doppler service token for single-tenant mode (DOPPLER_TOKEN)"),
    ("--doppler-secret", str, "Doppler webhook signing secret (DOPPLER_SECRET)"),
    ("--webhook-secret", str, "Secret token for webhook authentication (WEBHOOK_SECRET)"),
    ("--cf-access-client-id", str, "Cloudflare Access client ID (CF_ACCESS_CLIENT_ID)"),
    ("--cf-access-client-secret", str, "Cloudflare Access client secret (CF_ACCESS_CLIENT_SECRET)"),
    ("--services", str, "Comma-separated path:serviceId:serviceType:dopplerToken (SERVICES)"),
    ("--log-level", str, "Logging level (LOG_LEVEL)"),
)

_FLAG_ALIASES = {"--bridge-host": ("--host",)}


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT, force=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="doppler-bridge",
        description="Sync Doppler secrets into Dokploy on webhook",
    )
    for flag, type_, help_text in _OVERRIDE_FLAGS:
        parser.add_argument(flag, *_FLAG_ALIASES.get(flag, ()), type=type_, default=None, help=help_text)
    return parser


def load_settings(argv: list[str] | None = None) -> Settings:
    """Environment settings with CLI flags layered on top."""
    args = build_parser().parse_args(argv)
    overrides = {key: value for key, value in vars(args).items() if value is not None}
    return Settings(**overrides)


def log_banner(settings: Settings, app: FastAPI) -> None:
    router = app.state.router
    mode = "Single-Tenant" if router.is_single_tenant else "Multi-Tenant"
    logger.info("Starting Doppler Bridge (%s)", mode)
    logger.info("  Port: %d", settings.port)
    logger.info("  Dokploy Host: %s", settings.dokploy_host)
    logger.info("  Services: %d configured", len(router.targets))
    for target in router.targets.values():
        logger.info(
            "    - %s -> %s (%s) [token: %s]",
            webhook_url_path(target), target.deployment_id, target.kind.value,
            mask_token(target.doppler_token),
        )
    logger.info(
        "  Doppler Signature Verification: %s",
        "ENABLED" if settings.signature_verification_enabled else "DISABLED",
    )
    logger.info("  Webhook Authentication: ENABLED")
    logger.info(
        "  Cloudflare Zero Trust: %s", "ENABLED" if settings.zero_trust_enabled else "DISABLED"
    )


def main(argv: list[str] | None = None) -> None:
    settings = load_settings(argv)
    configure_logging(settings.log_level)

    try:
        settings.validate_required()
        app = create_app(settings)
    except ConfigError as e:
        logger.error("Failed to load config: %s", e)
        sys.exit(1)

    log_banner(settings, app)
    logger.info("Server listening on %s:%d", settings.bridge_host, settings.port)
    uvicorn.run(app, host=settings.bridge_host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
