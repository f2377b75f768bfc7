"""Cached form record models."""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field, field_validator


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class FormBasicInfo(BaseModel):
    """Metadata extracted from a raw form payload."""

    id: int = Field(ge=0)
    title: str = ""
    entry_count: int = Field(default=0, ge=0)
    is_active: bool = True
    is_trash: bool = False


class CacheRecord(BaseModel):
    """A single form as persisted in the local cache."""

    id: int = Field(ge=0)
    title: str
    entry_count: int = Field(default=0, ge=0)
    is_active: bool = True
    is_trash: bool = False
    last_synced: datetime = Field(default_factory=utc_now)
    raw_data: dict[str, Any] = Field(default_factory=dict)  # Original API payload

    @field_validator("last_synced", mode="after")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        """Treat naive timestamps as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    @property
    def age_seconds(self) -> float:
        """Seconds elapsed since this record was last synced."""
        return (utc_now() - self.last_synced).total_seconds()

    @property
    def status_label(self) -> str:
        """Human readable status."""
        if self.is_trash:
            return "trash"
        return "active" if self.is_active else "inactive"
