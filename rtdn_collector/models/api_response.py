"""HTTP response bodies for the collector endpoints."""

from typing import Optional

from pydantic import BaseModel, Field

from .notification import Notification
from .subscription import EnrichmentResult


class PushAcceptedResponse(BaseModel):
    """Acknowledgement returned to the push subscription."""

    success: bool = True
    id: str = Field(..., description="Id of the stored notification")


class PullResponse(BaseModel):
    """Result of a synchronous pull."""

    message: str
    pulled: int = Field(..., description="Number of messages stored and acknowledged")
    entries: list[Notification] = Field(default_factory=list)


class ListenerResponse(BaseModel):
    """Result of starting or stopping the streaming listener."""

    message: str
    subscription: Optional[str] = None


class FetchResponse(BaseModel):
    """Result of a batch enrichment run.

    total always equals len(subscriptions).
    """

    message: str
    total: int
    processed: int = Field(..., description="Newly enriched records")
    alreadyProcessed: int = Field(..., description="Records that already existed for the messageId")
    unenriched: int = Field(..., description="New records where neither API version returned data")
    subscriptions: list[EnrichmentResult] = Field(default_factory=list)


class StatusCounts(BaseModel):
    push: int
    pull: int
    subscriptions: int
    data: int


class StatusResponse(BaseModel):
    """Service status with collection counts and redacted config."""

    status: str = "ok"
    pullListenerActive: bool
    counts: StatusCounts
    config: dict[str, str]
