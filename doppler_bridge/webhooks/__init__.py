"""Webhook inbound system.

Receives Doppler change notifications, routes them to a Dokploy target by
URL path, and syncs secrets in the background.
"""
