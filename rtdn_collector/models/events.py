"""RTDN payload models - DeveloperNotification as published by Google Play.

Field names follow the JSON Google Play sends (camelCase).
"""

from enum import IntEnum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

UNKNOWN_NOTIFICATION_TYPE = "UNKNOWN"


class NotificationType(IntEnum):
    """Subscription notification types sent by Google Play."""

    SUBSCRIPTION_RECOVERED = 1  # Recovered from account hold
    SUBSCRIPTION_RENEWED = 2  # Active subscription renewed
    SUBSCRIPTION_CANCELED = 3  # Voluntarily or involuntarily canceled
    SUBSCRIPTION_PURCHASED = 4  # New subscription purchased
    SUBSCRIPTION_ON_HOLD = 5  # Entered account hold
    SUBSCRIPTION_IN_GRACE_PERIOD = 6  # Entered grace period
    SUBSCRIPTION_RESTARTED = 7  # User restored from Play > Subscriptions
    SUBSCRIPTION_PRICE_CHANGE_CONFIRMED = 8  # User confirmed price change
    SUBSCRIPTION_DEFERRED = 9  # Recurrence time extended
    SUBSCRIPTION_PAUSED = 10  # Subscription paused
    SUBSCRIPTION_PAUSE_SCHEDULE_CHANGED = 11  # Pause schedule changed
    SUBSCRIPTION_REVOKED = 12  # Revoked before expiry
    SUBSCRIPTION_EXPIRED = 13  # Expired
    SUBSCRIPTION_PENDING_PURCHASE_CANCELED = 20  # Pending transaction canceled



def optional_text(value: Any) -> Optional[str]:
    """Read a scalar JSON value as text.

    Numbers are stringified; missing values, booleans and nested objects give None.
    """
    if value is None or isinstance(value, (bool, dict, list)):
        return None
    return value if isinstance(value, str) else str(value)


def notification_type_name(code: Any) -> str:
    """Map a notificationType code to its name.

    Unmapped or malformed codes map to UNKNOWN instead of failing.
    """
    if isinstance(code, bool):
        return UNKNOWN_NOTIFICATION_TYPE
    try:
        return NotificationType(int(code)).name
    except (TypeError, ValueError):
        return UNKNOWN_NOTIFICATION_TYPE


class SubscriptionNotification(BaseModel):
    """subscriptionNotification object inside a DeveloperNotification.

    notificationType is kept as sent; type_name resolves it.
    """

    version: Optional[str] = Field(None, description="Notification version")
    notificationType: Optional[Any] = Field(None, description="Notification type code")
    purchaseToken: Optional[str] = Field(None, description="Purchase token of the subscription")
    subscriptionId: Optional[str] = Field(None, description="Subscription product id")

    @field_validator("version", "purchaseToken", "subscriptionId", mode="before")
    @classmethod
    def _as_text(cls, value: Any) -> Optional[str]:
        return optional_text(value)

    @property
    def type_name(self) -> str:
        return notification_type_name(self.notificationType)


class SubscriptionNotificationPayload(BaseModel):
    """DeveloperNotification carrying a subscriptionNotification.

    Google sends eventTimeMillis as a string; both strings and integers are kept.
    """

    version: Optional[str] = Field(None, description="Notification version")
    packageName: Optional[str] = Field(None, description="Android package name")
    eventTimeMillis: Optional[Any] = Field(None, description="Event time (Unix millis)")
    subscriptionNotification: SubscriptionNotification

    class Config:
        json_schema_extra = {
            "example": {
                "version": "1.0",
                "packageName": "com.example.app",
                "eventTimeMillis": "1700000000000",
                "subscriptionNotification": {
                    "version": "1.0",
                    "notificationType": 4,
                    "purchaseToken": "opaque-token",
                    "subscriptionId": "premium.monthly",
                },
            }
        }

    @field_validator("version", "packageName", mode="before")
    @classmethod
    def _as_text(cls, value: Any) -> Optional[str]:
        return optional_text(value)

    @classmethod
    def from_data(cls, data: Any) -> Optional["SubscriptionNotificationPayload"]:
        """Parse Notification.data, returning None if it is not a subscription event.

        Any data with a subscriptionNotification object qualifies; odd field
        types are coerced rather than rejected.
        """
        if not isinstance(data, dict):
            return None
        if not isinstance(data.get("subscriptionNotification"), dict):
            return None
        return cls.model_validate(data)
