"""Doppler secrets -> Dokploy env text."""

from __future__ import annotations

from collections.abc import Mapping

# Values containing any of these get double-quoted
_QUOTE_TRIGGERS = (" ", "\n", '"')


def _format_value(value: str) -> str:
    if not any(ch in value for ch in _QUOTE_TRIGGERS):
        return value
    # Backslashes first so the quote escapes are not doubled
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def secrets_to_env(secrets: Mapping[str, str]) -> str:
    """Serialize a secret collection as ``KEY=VALUE`` lines.

    Entries follow the mapping's iteration order and are joined with a single
    newline, without a trailing one. A quoted value may itself span several
    physical lines when it contains newlines.
    """
    return "\n".join(f"{key}={_format_value(value)}" for key, value in secrets.items())
