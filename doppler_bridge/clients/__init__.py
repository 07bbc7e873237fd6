"""Outbound HTTP clients for Doppler and Dokploy."""
