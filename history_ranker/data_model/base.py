"""Shared Pydantic base models."""

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict


class StrictBaseModel(BaseModel):
    """Base model with strict, immutable defaults."""

    model_config = ConfigDict(frozen=True, extra="forbid")


def ensure_aware(value: datetime) -> datetime:
    """Treat naive timestamps as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value
