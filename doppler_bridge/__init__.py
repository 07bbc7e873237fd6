"""Doppler -> Dokploy secret sync bridge."""

__version__ = "0.1.0"
