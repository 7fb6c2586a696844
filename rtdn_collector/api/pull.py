"""Pub/Sub pull endpoints.

Implements:
- POST /pull - Synchronous pull of one batch
- POST /pull/start - Start the streaming listener
- POST /pull/stop - Stop the streaming listener
- GET /pull - List pulled notifications
- GET /pull/{notification_id} - Get one pulled notification
- DELETE /pull/{notification_id} - Delete one pulled notification
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, Path, Query

from rtdn_collector.config import get_config
from rtdn_collector.logging_config import get_logger
from rtdn_collector.models import ListenerResponse, Notification, PullResponse
from rtdn_collector.repositories.record_store import RecordNotFoundError, get_pull_store
from rtdn_collector.services.pull_listener import (
    ProjectNotConfiguredError,
    get_streaming_listener,
    pull_messages,
)

logger = get_logger(__name__)
router = APIRouter(tags=["Pull"], prefix="/pull")

PROJECT_HINT = "Set GOOGLE_CLOUD_PROJECT or GCP_PROJECT_ID env var"


def _project_not_configured(error: ProjectNotConfiguredError) -> HTTPException:
    logger.warning("pubsub_project_not_configured")
    return HTTPException(
        status_code=400,
        detail={"error": str(error), "hint": PROJECT_HINT},
    )


@router.post("", response_model=PullResponse, summary="Pull messages")
def pull(
    max_messages: Optional[int] = Query(None, ge=1, le=1000, description="Override the configured batch size"),
) -> PullResponse:
    """Pull up to max_messages (default from configuration) and store them.

    Messages are acknowledged only after they were stored.

    Raises:
        400: No GCP project configured
        500: Pub/Sub call failed
    """
    try:
        entries = pull_messages(max_messages=max_messages)
    except ProjectNotConfiguredError as e:
        raise _project_not_configured(e)
    except Exception as e:
        logger.error(
            "pull_failed",
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )
        raise HTTPException(
            status_code=500,
            detail={"error": "Failed to pull messages", "details": str(e)},
        )

    if not entries:
        return PullResponse(message="No new messages", pulled=0)

    return PullResponse(
        message=f"Pulled {len(entries)} messages",
        pulled=len(entries),
        entries=entries,
    )


@router.post("/start", response_model=ListenerResponse, summary="Start streaming listener")
def start_listener() -> ListenerResponse:
    """Start the streaming pull listener (no-op if already running).

    Raises:
        400: No GCP project configured
        500: Stream could not be opened
    """
    listener = get_streaming_listener()
    try:
        started = listener.start()
    except ProjectNotConfiguredError as e:
        raise _project_not_configured(e)
    except Exception as e:
        logger.error(
            "pull_listener_start_failed",
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )
        raise HTTPException(
            status_code=500,
            detail={"error": "Failed to start listener", "details": str(e)},
        )

    if not started:
        return ListenerResponse(message="Pull listener already running")
    return ListenerResponse(
        message="Pull listener started",
        subscription=get_config().subscription_name,
    )


@router.post("/stop", response_model=ListenerResponse, summary="Stop streaming listener")
def stop_listener() -> ListenerResponse:
    """Stop the streaming pull listener (no-op if none is running)."""
    if not get_streaming_listener().stop():
        return ListenerResponse(message="No pull listener running")
    return ListenerResponse(message="Pull listener stopped")


@router.get("", response_model=list[Notification], summary="List pulled notifications")
async def list_pull_notifications() -> list[Notification]:
    return get_pull_store().list()


@router.get("/{notification_id}", response_model=Notification, summary="Get pulled notification")
async def get_pull_notification(
    notification_id: str = Path(..., description="Notification id"),
) -> Notification:
    """Get one pulled notification.

    Raises:
        404: Notification not found
    """
    notification = get_pull_store().find(notification_id)
    if notification is None:
        raise HTTPException(status_code=404, detail={"error": "Not found"})
    return notification


@router.delete("/{notification_id}", status_code=204, summary="Delete pulled notification")
async def delete_pull_notification(
    notification_id: str = Path(..., description="Notification id"),
):
    """Delete one pulled notification.

    Raises:
        404: Notification not found
    """
    try:
        get_pull_store().remove(notification_id)
    except RecordNotFoundError:
        logger.warning("pull_notification_not_found", notification_id=notification_id)
        raise HTTPException(status_code=404, detail={"error": "Not found"})

    logger.info("pull_notification_deleted", notification_id=notification_id)
    return None
