"""Subscription enrichment of pulled notifications.

Responsibilities:
- Select notifications that carry a subscriptionNotification
- Skip notifications already enriched (idempotency key: messageId)
- Fetch subscription state, v2 first with v1 as fallback
- Extract user ids, state and start/expiry times per API version
- Store one EnrichedSubscription per messageId
"""

import threading
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from pydantic import BaseModel

from rtdn_collector.logging_config import get_logger, short_token
from rtdn_collector.models import (
    ApiVersion,
    EnrichedSubscription,
    EnrichmentResult,
    LookupRequest,
    LookupResult,
    Notification,
    NotificationInfo,
    SubscriptionNotificationPayload,
    SubscriptionStatus,
    UserIdentifiers,
    notification_type_name,
    optional_text,
)
from rtdn_collector.repositories.record_store import RecordStore, get_subscription_store
from rtdn_collector.services.play_api import SubscriptionStatusSource, get_play_api
from rtdn_collector.utils import (
    format_local,
    generate_entry_id,
    millis_to_local_display,
    to_local_display,
    utc_now_iso,
)

logger = get_logger(__name__)


class StatusLookup(BaseModel):
    """Outcome of the v2 -> v1 fallback.

    apiVersion and details are both set when a version answered and both
    None when every version was exhausted.
    """

    apiVersion: Optional[ApiVersion] = None
    details: Optional[dict[str, Any]] = None

    @property
    def found(self) -> bool:
        return self.apiVersion is not None and self.details is not None


def _mapping(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


class SubscriptionEnricher:
    """Joins pulled notifications with Play Developer API subscription state.

    Enrichment is serialized with a lock so the messageId check and the
    append happen atomically.
    """

    def __init__(
        self,
        status_source: Optional[SubscriptionStatusSource] = None,
        subscription_store: Optional[RecordStore[EnrichedSubscription]] = None,
        display_timezone: Optional[str] = None,
    ):
        """Initialize the enricher.

        Args:
            status_source: Subscription state API, defaults to the Play Developer API client
            subscription_store: Store for enriched records, defaults to the global store
            display_timezone: Zone for rendered timestamps, defaults to configuration
        """
        if display_timezone is None:
            from rtdn_collector.config import get_config

            display_timezone = get_config().display_timezone

        self._status_source = status_source or get_play_api()
        self._store = subscription_store if subscription_store is not None else get_subscription_store()
        self._tz = display_timezone
        self._lock = threading.RLock()

    def fetch_status(
        self,
        package_name: Optional[str],
        purchase_token: Optional[str],
        subscription_id: Optional[str] = None,
    ) -> StatusLookup:
        """Fetch subscription state, trying v2 first and v1 second.

        v1 needs a subscription id; without one only v2 is tried.
        """
        if not package_name or not purchase_token:
            logger.warning(
                "subscription_lookup_skipped",
                reason="missing package name or purchase token",
                package_name=package_name,
            )
            return StatusLookup()

        details = self._status_source.get_subscription_v2(package_name, purchase_token)
        if details:
            return StatusLookup(apiVersion=ApiVersion.V2, details=details)

        if subscription_id:
            logger.info(
                "subscription_lookup_fallback",
                package_name=package_name,
                subscription_id=subscription_id,
                token=short_token(purchase_token),
            )
            details = self._status_source.get_subscription_v1(package_name, subscription_id, purchase_token)
            if details:
                return StatusLookup(apiVersion=ApiVersion.V1, details=details)

        logger.warning(
            "subscription_lookup_exhausted",
            package_name=package_name,
            subscription_id=subscription_id,
            token=short_token(purchase_token),
        )
        return StatusLookup()

    def extract_status(self, lookup: StatusLookup) -> tuple[UserIdentifiers, SubscriptionStatus]:
        """Pull user ids, state and times out of an API response.

        v2 nests the user ids under externalAccountIdentifiers, has a
        subscriptionState and RFC 3339 times (expiry on the first line item).
        v1 has top-level ids, no state and epoch-millis times. Ids of an
        unexpected type are stringified or dropped; the raw response is kept.
        """
        if not lookup.found:
            return UserIdentifiers(), SubscriptionStatus()

        details = lookup.details or {}

        if lookup.apiVersion == ApiVersion.V2:
            external_ids = _mapping(details.get("externalAccountIdentifiers"))
            line_items = details.get("lineItems") or []
            first_item = _mapping(line_items[0]) if isinstance(line_items, list) and line_items else {}
            expiry_time = first_item.get("expiryTime") or None
            start_time = details.get("startTime") or None

            user = UserIdentifiers(
                obfuscatedAccountId=optional_text(external_ids.get("obfuscatedExternalAccountId")) or None,
                obfuscatedProfileId=optional_text(external_ids.get("obfuscatedExternalProfileId")) or None,
            )
            status = SubscriptionStatus(
                state=details.get("subscriptionState") or None,
                startTime=start_time,
                startTimeLocal=to_local_display(start_time, self._tz),
                expiryTime=expiry_time,
                expiryTimeLocal=to_local_display(expiry_time, self._tz),
            )
            return user, status

        expiry_time = details.get("expiryTimeMillis") or None
        start_time = details.get("startTimeMillis") or None
        user = UserIdentifiers(
            obfuscatedAccountId=optional_text(details.get("obfuscatedExternalAccountId")) or None,
            obfuscatedProfileId=optional_text(details.get("obfuscatedExternalProfileId")) or None,
        )
        status = SubscriptionStatus(
            startTime=start_time,
            startTimeLocal=millis_to_local_display(start_time, self._tz),
            expiryTime=expiry_time,
            expiryTimeLocal=millis_to_local_display(expiry_time, self._tz),
        )
        return user, status

    def _now(self) -> tuple[str, str]:
        processed_at = utc_now_iso()
        return processed_at, format_local(datetime.now(timezone.utc), self._tz)

    def enrich_notification(self, notification: Notification) -> Optional[EnrichmentResult]:
        """Enrich one notification.

        Returns:
            None if the notification is not a subscription notification,
            otherwise the stored record tagged processed or already_processed
        """
        payload = SubscriptionNotificationPayload.from_data(notification.data)
        if payload is None:
            logger.debug("notification_skipped", notification_id=notification.id, reason="not a subscription notification")
            return None

        with self._lock:
            if notification.messageId is not None:
                existing = self._store.find_by("messageId", notification.messageId)
                if existing is not None:
                    logger.info(
                        "subscription_already_processed",
                        message_id=notification.messageId,
                        subscription_record_id=existing.id,
                    )
                    return EnrichmentResult(**existing.model_dump(), status="already_processed")

            sub = payload.subscriptionNotification
            lookup = self.fetch_status(payload.packageName, sub.purchaseToken, sub.subscriptionId)
            user, status = self.extract_status(lookup)
            processed_at, processed_at_local = self._now()

            record = EnrichedSubscription(
                id=generate_entry_id(notification.messageId),
                messageId=notification.messageId,
                notification=NotificationInfo(
                    type=sub.notificationType,
                    typeName=notification_type_name(sub.notificationType),
                    eventTime=payload.eventTimeMillis,
                    eventTimeLocal=millis_to_local_display(payload.eventTimeMillis, self._tz),
                ),
                packageName=payload.packageName,
                subscriptionId=sub.subscriptionId,
                purchaseToken=sub.purchaseToken,
                user=user,
                subscription=status,
                apiResponse=lookup.details,
                apiVersion=lookup.apiVersion,
                pulledAt=notification.pulledAt,
                processedAt=processed_at,
                processedAtLocal=processed_at_local,
            )
            self._store.append(record)

        logger.info(
            "subscription_enriched",
            message_id=notification.messageId,
            notification_type=record.notification.typeName,
            api_version=record.apiVersion.value if record.apiVersion else None,
            state=record.subscription.state,
            token=short_token(record.purchaseToken),
        )
        return EnrichmentResult(**record.model_dump(), status="processed")

    def enrich_all(self, notifications: Iterable[Notification]) -> list[EnrichmentResult]:
        """Enrich every subscription notification in a batch.

        Non-subscription notifications are left out of the result. A
        notification neither API version could answer is still stored, with
        null fields. A notification whose record cannot be built is logged
        and skipped; store failures still propagate.
        """
        results: list[EnrichmentResult] = []
        with self._lock:
            for notification in notifications:
                try:
                    result = self.enrich_notification(notification)
                except ValueError as e:
                    logger.error(
                        "subscription_enrichment_failed",
                        notification_id=notification.id,
                        message_id=notification.messageId,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    continue
                if result is not None:
                    results.append(result)

        logger.info(
            "subscription_batch_completed",
            total=len(results),
            processed=sum(1 for r in results if r.status == "processed"),
            already_processed=sum(1 for r in results if r.status == "already_processed"),
        )
        return results

    def lookup(self, request: LookupRequest) -> Optional[LookupResult]:
        """Look up one purchase token without storing anything.

        Returns:
            LookupResult, or None when no API version returned data

        Raises:
            ValueError: If packageName or purchaseToken is missing
        """
        if not request.packageName or not request.purchaseToken:
            raise ValueError("packageName and purchaseToken are required")

        lookup = self.fetch_status(request.packageName, request.purchaseToken, request.subscriptionId)
        if not lookup.found:
            return None

        user, status = self.extract_status(lookup)
        _, processed_at_local = self._now()
        return LookupResult(
            packageName=request.packageName,
            subscriptionId=request.subscriptionId,
            user=user,
            subscription=status,
            apiVersion=lookup.apiVersion,
            apiResponse=lookup.details,
            processedAtLocal=processed_at_local,
        )


_enricher: Optional[SubscriptionEnricher] = None
_enricher_lock = threading.Lock()


def get_subscription_enricher() -> SubscriptionEnricher:
    """Get or create the singleton SubscriptionEnricher."""
    global _enricher
    if _enricher is None:
        with _enricher_lock:
            if _enricher is None:
                _enricher = SubscriptionEnricher()
    return _enricher


def reset_subscription_enricher() -> None:
    """Drop the singleton enricher (for testing)."""
    global _enricher
    with _enricher_lock:
        _enricher = None
