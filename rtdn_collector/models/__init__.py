"""Pydantic models for notifications, enrichment records and API bodies."""

# Settings
from .settings import ServiceSettings

# Inbound notifications
from .notification import (
    NotificationSource,
    PushMessage,
    PullMessage,
    StreamedMessage,
    RawMessage,
    Notification,
)

# RTDN payloads
from .events import (
    NotificationType,
    SubscriptionNotification,
    SubscriptionNotificationPayload,
    UNKNOWN_NOTIFICATION_TYPE,
    notification_type_name,
    optional_text,
)

# Enrichment
from .subscription import (
    ApiVersion,
    NotificationInfo,
    UserIdentifiers,
    SubscriptionStatus,
    EnrichedSubscription,
    EnrichmentResult,
    LookupRequest,
    LookupResult,
)

# Legacy entries
from .entry import DataEntry

# API responses
from .api_response import (
    PushAcceptedResponse,
    PullResponse,
    ListenerResponse,
    FetchResponse,
    StatusCounts,
    StatusResponse,
)

__all__ = [
    # Settings
    "ServiceSettings",
    # Notifications
    "NotificationSource",
    "PushMessage",
    "PullMessage",
    "StreamedMessage",
    "RawMessage",
    "Notification",
    # RTDN payloads
    "NotificationType",
    "SubscriptionNotification",
    "SubscriptionNotificationPayload",
    "UNKNOWN_NOTIFICATION_TYPE",
    "notification_type_name",
    "optional_text",
    # Enrichment
    "ApiVersion",
    "NotificationInfo",
    "UserIdentifiers",
    "SubscriptionStatus",
    "EnrichedSubscription",
    "EnrichmentResult",
    "LookupRequest",
    "LookupResult",
    # Legacy
    "DataEntry",
    # API responses
    "PushAcceptedResponse",
    "PullResponse",
    "ListenerResponse",
    "FetchResponse",
    "StatusCounts",
    "StatusResponse",
]
