"""Inbound notification models.

Raw transport messages (push envelope, Pub/Sub pull message, Pub/Sub
streamed message) and the canonical Notification record they decode into.
"""

from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field


class NotificationSource(str, Enum):
    """Transport a notification arrived on."""

    PUSH = "push"
    PULL = "pull"
    PULL_STREAM = "pull-stream"


class PushMessage(BaseModel):
    """Webhook body delivered by a Pub/Sub push subscription.

    Usually {"message": {"data": <base64>, ...}, "subscription": ...} but any
    JSON value (or undecodable text) is accepted.
    """

    kind: Literal["push"] = "push"
    envelope: Any = Field(default=None, description="Request body as received")


class PullMessage(BaseModel):
    """Message returned by a synchronous Pub/Sub pull."""

    kind: Literal["pull"] = "pull"
    messageId: str = Field(..., description="Pub/Sub message id")
    data: bytes = Field(default=b"", description="Message payload bytes")
    attributes: Optional[dict[str, str]] = Field(None, description="Message attributes")
    publishTime: Optional[str] = Field(None, description="Publish time (RFC 3339)")
    ackId: Optional[str] = Field(None, description="Acknowledgement id for this delivery")


class StreamedMessage(BaseModel):
    """Message delivered by a streaming pull callback.

    The ack/nack functions stay on the transport message object.
    """

    kind: Literal["pull-stream"] = "pull-stream"
    messageId: str = Field(..., description="Pub/Sub message id")
    data: bytes = Field(default=b"", description="Message payload bytes")
    attributes: Optional[dict[str, str]] = Field(None, description="Message attributes")
    publishTime: Optional[str] = Field(None, description="Publish time (RFC 3339)")


RawMessage = Annotated[
    Union[PushMessage, PullMessage, StreamedMessage],
    Field(discriminator="kind"),
]


class Notification(BaseModel):
    """Canonical notification record, stored as received."""

    id: str = Field(..., description="Locally generated id")
    type: NotificationSource = Field(..., description="Transport the notification came from")
    messageId: Optional[str] = Field(None, description="Pub/Sub message id (pull and pull-stream only)")
    data: Any = Field(default=None, description="Decoded JSON payload, or the raw value if decoding failed")
    attributes: Optional[dict[str, str]] = Field(None, description="Pub/Sub message attributes")
    publishTime: Optional[str] = Field(None, description="Pub/Sub publish time")
    rawPayload: Any = Field(default=None, description="Original push body (push only)")
    createdAt: Optional[str] = Field(None, description="Receipt time for push notifications (ISO 8601)")
    pulledAt: Optional[str] = Field(None, description="Receipt time for pulled notifications (ISO 8601)")

    class Config:
        json_schema_extra = {
            "example": {
                "id": "1700000000000-9876543210",
                "type": "pull",
                "messageId": "9876543210",
                "data": {
                    "version": "1.0",
                    "packageName": "com.example.app",
                    "eventTimeMillis": "1700000000000",
                    "subscriptionNotification": {
                        "version": "1.0",
                        "notificationType": 4,
                        "purchaseToken": "opaque-token",
                        "subscriptionId": "premium.monthly",
                    },
                },
                "attributes": {},
                "publishTime": "2023-11-14T22:13:20.000Z",
                "pulledAt": "2023-11-14T22:13:21.512Z",
            }
        }
