"""Subscription enrichment endpoints.

Implements:
- GET /subscriptions - List enriched subscriptions
- POST /subscriptions/fetch - Enrich all pulled notifications
- POST /subscriptions/lookup - Look up one purchase token (not stored)
- GET /subscriptions/{record_id} - Get one enriched subscription
- DELETE /subscriptions - Clear all enriched subscriptions
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, Path

from rtdn_collector.logging_config import get_logger, short_token
from rtdn_collector.models import (
    EnrichedSubscription,
    FetchResponse,
    LookupRequest,
    LookupResult,
)
from rtdn_collector.repositories.record_store import get_pull_store, get_subscription_store
from rtdn_collector.services.enricher import get_subscription_enricher

logger = get_logger(__name__)
router = APIRouter(tags=["Subscriptions"], prefix="/subscriptions")


@router.get("", response_model=list[EnrichedSubscription], summary="List enriched subscriptions")
async def list_subscriptions() -> list[EnrichedSubscription]:
    return get_subscription_store().list()


@router.post("/fetch", response_model=FetchResponse, summary="Enrich pulled notifications")
def fetch_subscriptions() -> FetchResponse:
    """Enrich every pulled subscription notification with Play Developer API state.

    Notifications without a subscriptionNotification are skipped. Already
    enriched messages are reported as already_processed without calling the
    API. When neither API version answers the record is stored with null
    fields.

    Raises:
        500: Unexpected failure (e.g. snapshot write error)
    """
    try:
        results = get_subscription_enricher().enrich_all(get_pull_store().list())
    except Exception as e:
        logger.error(
            "subscription_fetch_failed",
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )
        raise HTTPException(
            status_code=500,
            detail={"error": "Failed to fetch subscription details", "details": str(e)},
        )

    processed = [r for r in results if r.status == "processed"]
    return FetchResponse(
        message=f"Processed {len(results)} subscription notifications",
        total=len(results),
        processed=len(processed),
        alreadyProcessed=len(results) - len(processed),
        unenriched=sum(1 for r in processed if r.apiVersion is None),
        subscriptions=results,
    )


@router.post("/lookup", response_model=LookupResult, summary="Look up one purchase token")
def lookup_subscription(request: Optional[LookupRequest] = None) -> LookupResult:
    """Fetch subscription state for one purchase token without storing it.

    Raises:
        400: packageName or purchaseToken missing
        404: Neither API version returned data
        500: Unexpected failure
    """
    request = request or LookupRequest()
    if not request.packageName or not request.purchaseToken:
        raise HTTPException(
            status_code=400,
            detail={
                "error": "Missing required fields",
                "required": ["packageName", "purchaseToken"],
            },
        )

    logger.info(
        "subscription_lookup_request",
        package_name=request.packageName,
        subscription_id=request.subscriptionId,
        token=short_token(request.purchaseToken),
    )

    try:
        result = get_subscription_enricher().lookup(request)
    except Exception as e:
        logger.error(
            "subscription_lookup_failed",
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )
        raise HTTPException(
            status_code=500,
            detail={"error": "Failed to lookup subscription", "details": str(e)},
        )

    if result is None:
        raise HTTPException(
            status_code=404,
            detail={"error": "Subscription not found or API error"},
        )
    return result


@router.get("/{record_id}", response_model=EnrichedSubscription, summary="Get enriched subscription")
async def get_subscription(
    record_id: str = Path(..., description="Enriched subscription id"),
) -> EnrichedSubscription:
    """Get one enriched subscription.

    Raises:
        404: Record not found
    """
    record = get_subscription_store().find(record_id)
    if record is None:
        raise HTTPException(status_code=404, detail={"error": "Not found"})
    return record


@router.delete("", status_code=204, summary="Clear enriched subscriptions")
async def clear_subscriptions():
    """Remove every enriched subscription record."""
    store = get_subscription_store()
    removed = store.count()
    store.clear()
    logger.info("subscriptions_cleared", removed=removed)
    return None
