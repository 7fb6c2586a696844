"""Legacy generic data entries (the /data endpoints)."""

from typing import Any

from pydantic import BaseModel, Field


class DataEntry(BaseModel):
    """Free-form JSON document stored as posted."""

    id: str = Field(..., description="Locally generated id")
    data: Any = Field(default=None, description="Request body as posted")
    createdAt: str = Field(..., description="Creation time (ISO 8601 UTC)")
