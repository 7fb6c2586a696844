"""Enriched subscription models.

An EnrichedSubscription joins one pulled notification with the subscription
state returned by the Play Developer API.
"""

from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from .events import optional_text


class ApiVersion(str, Enum):
    """Play Developer API flavour that served a subscription snapshot."""

    V2 = "v2"  # purchases.subscriptionsv2.get
    V1 = "v1"  # purchases.subscriptions.get


class NotificationInfo(BaseModel):
    """Notification metadata copied into the enriched record."""

    type: Optional[Any] = Field(None, description="notificationType code as sent")
    typeName: str = Field(..., description="Notification type name, UNKNOWN for unmapped codes")
    eventTime: Optional[Any] = Field(None, description="eventTimeMillis as sent by Google")
    eventTimeLocal: Optional[str] = Field(None, description="eventTime rendered in the display timezone")


class UserIdentifiers(BaseModel):
    """Obfuscated identifiers the app attached at purchase time."""

    obfuscatedAccountId: Optional[str] = None
    obfuscatedProfileId: Optional[str] = None


class SubscriptionStatus(BaseModel):
    """Lifecycle state and timestamps extracted from the API response.

    Raw times are kept as sent: RFC 3339 strings for v2, epoch millis for v1.
    """

    state: Optional[Any] = Field(None, description="subscriptionState (v2 only)")
    startTime: Optional[Any] = Field(None, description="Start time as returned by the API")
    startTimeLocal: Optional[str] = Field(None, description="Start time in the display timezone")
    expiryTime: Optional[Any] = Field(None, description="Expiry time as returned by the API")
    expiryTimeLocal: Optional[str] = Field(None, description="Expiry time in the display timezone")


class EnrichedSubscription(BaseModel):
    """Subscription snapshot for one notification, keyed by messageId."""

    id: str = Field(..., description="Locally generated id")
    messageId: Optional[str] = Field(None, description="Pub/Sub message id of the source notification")

    notification: NotificationInfo

    packageName: Optional[str] = None
    subscriptionId: Optional[str] = None
    purchaseToken: Optional[str] = None

    user: UserIdentifiers = Field(default_factory=UserIdentifiers)
    subscription: SubscriptionStatus = Field(default_factory=SubscriptionStatus)

    apiResponse: Optional[dict[str, Any]] = Field(None, description="Full Play Developer API response")
    apiVersion: Optional[ApiVersion] = Field(None, description="API version that answered, null if none did")

    pulledAt: Optional[str] = Field(None, description="When the source notification was pulled")
    processedAt: str = Field(..., description="Enrichment time (ISO 8601 UTC)")
    processedAtLocal: Optional[str] = Field(None, description="Enrichment time in the display timezone")

    @property
    def enriched(self) -> bool:
        return self.apiVersion is not None


class EnrichmentResult(EnrichedSubscription):
    """Batch enrichment outcome for one qualifying notification."""

    status: Literal["processed", "already_processed"]


class LookupRequest(BaseModel):
    """Ad-hoc lookup of a single purchase token.

    packageName and purchaseToken are required; the handler reports missing
    values itself so the error names both fields. Non-text values are
    read as text or treated as missing, never rejected by validation.
    """

    packageName: Optional[str] = None
    purchaseToken: Optional[str] = None
    subscriptionId: Optional[str] = Field(None, description="Needed for the v1 fallback")

    @field_validator("packageName", "purchaseToken", "subscriptionId", mode="before")
    @classmethod
    def _as_text(cls, value: Any) -> Optional[str]:
        return optional_text(value)

    class Config:
        json_schema_extra = {
            "example": {
                "packageName": "com.example.app",
                "purchaseToken": "opaque-token",
                "subscriptionId": "premium.monthly",
            }
        }


class LookupResult(BaseModel):
    """Response of an ad-hoc lookup. Never persisted."""

    packageName: str
    subscriptionId: Optional[str] = None
    user: UserIdentifiers
    subscription: SubscriptionStatus
    apiVersion: ApiVersion
    apiResponse: dict[str, Any]
    processedAtLocal: Optional[str] = None
