"""Service settings model.

Validated view of config/settings.yaml merged with environment overrides.
"""

from typing import Literal, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator


class ServiceSettings(BaseModel):
    """Runtime settings for the collector."""

    project_id: Optional[str] = Field(None, description="GCP project that owns the Pub/Sub subscription")
    subscription_name: str = Field(default="play-subscription", description="Pub/Sub subscription name")
    max_pull_messages: int = Field(default=10, ge=1, le=1000, description="Messages per synchronous pull")
    data_dir: str = Field(default=".", description="Directory for the JSON snapshot files")
    storage_backend: Literal["file", "memory"] = Field(default="file", description="Snapshot persistence backend")
    display_timezone: str = Field(default="Asia/Kolkata", description="IANA zone for human-readable timestamps")
    credentials_file: Optional[str] = Field(
        None, description="Service-account JSON for the Play Developer API (defaults to ADC)"
    )

    @field_validator("project_id", "credentials_file")
    @classmethod
    def empty_as_none(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            return None
        return value

    @field_validator("display_timezone")
    @classmethod
    def known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {value}")
        return value

    class Config:
        json_schema_extra = {
            "example": {
                "project_id": "my-play-project",
                "subscription_name": "play-subscription",
                "max_pull_messages": 10,
                "data_dir": "./data",
                "storage_backend": "file",
                "display_timezone": "Asia/Kolkata",
                "credentials_file": None,
            }
        }
