"""Doppler webhook payload models.

Doppler posts one JSON document per change. Only ``config.project`` and
``config.name`` drive the sync; the rest is kept for logging.

A JSON ``null`` anywhere in the document counts as an absent field and gets
the field's default, so ``"diff": {"added": null}`` decodes like ``{}``.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, ValidationError, model_validator

from doppler_bridge.errors import PayloadError


class _PayloadModel(BaseModel):
    @model_validator(mode="before")
    @classmethod
    def _null_as_absent(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data


class ConfigInfo(_PayloadModel):
    name: str = ""
    environment: str = ""
    project: str = ""


class ProjectInfo(_PayloadModel):
    id: str = ""
    name: str = ""
    description: str | None = None


class WorkplaceInfo(_PayloadModel):
    id: str = ""
    name: str = ""


class SecretsDiff(_PayloadModel):
    added: list[str] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)
    updated: list[str] = Field(default_factory=list)


class WebhookPayload(_PayloadModel):
    """A Doppler secrets-change notification."""

    type: str = ""
    config: ConfigInfo = Field(default_factory=ConfigInfo)
    project: ProjectInfo = Field(default_factory=ProjectInfo)
    workplace: WorkplaceInfo = Field(default_factory=WorkplaceInfo)
    diff: SecretsDiff = Field(default_factory=SecretsDiff)

    def summary(self) -> str:
        """One-line description for logs (key names only, never values)."""
        return (
            f"type={self.type} project={self.project.name} config={self.config.name} "
            f"added={len(self.diff.added)} removed={len(self.diff.removed)} "
            f"updated={len(self.diff.updated)}"
        )


def decode_payload(body: bytes) -> WebhookPayload:
    """Parse a raw webhook body. Raises PayloadError on bad JSON or shape."""
    try:
        return WebhookPayload.model_validate_json(body)
    except ValidationError as e:
        raise PayloadError(f"failed to parse webhook: {e.error_count()} error(s)") from e
