"""Push webhook endpoints.

Implements:
- POST /push - Receive a Pub/Sub push delivery
- GET /push - List push notifications
- GET /push/{notification_id} - Get one push notification
- DELETE /push/{notification_id} - Delete one push notification
"""

from fastapi import APIRouter, HTTPException, Path, Request

from rtdn_collector.logging_config import bind_context, get_logger
from rtdn_collector.models import Notification, PushAcceptedResponse
from rtdn_collector.repositories.record_store import RecordNotFoundError, get_push_store
from rtdn_collector.services.decoder import decode_push, parse_body

logger = get_logger(__name__)
router = APIRouter(tags=["Push"], prefix="/push")


@router.post(
    "",
    response_model=PushAcceptedResponse,
    summary="Receive push notification",
)
async def receive_push(request: Request) -> PushAcceptedResponse:
    """Store a notification delivered by a Pub/Sub push subscription.

    Any body is accepted: the base64 message.data is decoded when present,
    otherwise the body itself becomes the notification data. A 200 tells
    Pub/Sub the delivery succeeded.
    """
    envelope = parse_body(await request.body())
    notification = decode_push(envelope)
    get_push_store().append(notification)

    bind_context(notification_id=notification.id)
    logger.info(
        "push_notification_received",
        decoded=notification.data is not envelope,
        subscription=envelope.get("subscription") if isinstance(envelope, dict) else None,
    )
    return PushAcceptedResponse(id=notification.id)


@router.get("", response_model=list[Notification], summary="List push notifications")
async def list_push_notifications() -> list[Notification]:
    return get_push_store().list()


@router.get("/{notification_id}", response_model=Notification, summary="Get push notification")
async def get_push_notification(
    notification_id: str = Path(..., description="Notification id"),
) -> Notification:
    """Get one push notification.

    Raises:
        404: Notification not found
    """
    notification = get_push_store().find(notification_id)
    if notification is None:
        raise HTTPException(status_code=404, detail={"error": "Not found"})
    return notification


@router.delete("/{notification_id}", status_code=204, summary="Delete push notification")
async def delete_push_notification(
    notification_id: str = Path(..., description="Notification id"),
):
    """Delete one push notification.

    Returns:
        204 No Content on success

    Raises:
        404: Notification not found
    """
    try:
        get_push_store().remove(notification_id)
    except RecordNotFoundError:
        logger.warning("push_notification_not_found", notification_id=notification_id)
        raise HTTPException(status_code=404, detail={"error": "Not found"})

    logger.info("push_notification_deleted", notification_id=notification_id)
    return None
