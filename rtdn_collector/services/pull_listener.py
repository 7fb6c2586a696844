"""RTDN retrieval from Google Cloud Pub/Sub.

Responsibilities:
- Synchronous pull of a bounded batch of messages
- Long-lived streaming pull listener (at most one per process)
- Decode and store every message before acknowledging it

A message is acknowledged only after it has been written to the pull
store. If storing fails the message is left unacknowledged (sync pull) or
nacked (streaming) so Pub/Sub redelivers it.
"""

import concurrent.futures
import threading
from datetime import datetime
from typing import Any, Optional

from google.api_core.exceptions import GoogleAPIError
from google.cloud import pubsub_v1

from rtdn_collector.logging_config import get_logger
from rtdn_collector.models import Notification, PullMessage, StreamedMessage
from rtdn_collector.repositories.record_store import RecordStore, get_pull_store
from rtdn_collector.services.decoder import decode_pull, decode_streamed

logger = get_logger(__name__)

STOP_TIMEOUT_SECONDS = 10.0


class ProjectNotConfiguredError(Exception):
    """Raised when Pub/Sub is used without a GCP project id."""

    pass


def _subscription_path() -> str:
    """Resolve the configured subscription path.

    Raises:
        ProjectNotConfiguredError: If no project id is configured
    """
    from rtdn_collector.config import get_config

    config = get_config()
    if not config.project_id:
        raise ProjectNotConfiguredError("GCP_PROJECT_ID environment variable not set")
    return config.subscription_path


def _publish_time(value: Any) -> Optional[str]:
    """Render a Pub/Sub publish time as RFC 3339."""
    if value is None:
        return None
    if hasattr(value, "rfc3339"):
        return value.rfc3339()
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def pull_messages(
    max_messages: Optional[int] = None,
    store: Optional[RecordStore[Notification]] = None,
) -> list[Notification]:
    """Pull one batch of messages, store them, then acknowledge them.

    Args:
        max_messages: Upper bound for this pull, defaults to configuration
        store: Pull notification store, defaults to the global store

    Returns:
        Notifications stored by this pull (empty when none were waiting)

    Raises:
        ProjectNotConfiguredError: If no project id is configured
        GoogleAPIError: If the pull or acknowledge call fails
    """
    from rtdn_collector.config import get_config

    subscription_path = _subscription_path()
    if max_messages is None:
        max_messages = get_config().settings.max_pull_messages
    store = store if store is not None else get_pull_store()

    subscriber = pubsub_v1.SubscriberClient()
    try:
        response = subscriber.pull(
            request={"subscription": subscription_path, "max_messages": max_messages}
        )

        stored: list[Notification] = []
        ack_ids: list[str] = []

        for received in response.received_messages:
            message = received.message
            raw = PullMessage(
                messageId=message.message_id,
                data=message.data,
                attributes=dict(message.attributes),
                publishTime=_publish_time(message.publish_time),
                ackId=received.ack_id,
            )
            notification = decode_pull(raw)
            try:
                store.append(notification)
            except Exception as e:
                logger.error(
                    "pull_message_store_failed",
                    message_id=raw.messageId,
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )
                continue

            stored.append(notification)
            ack_ids.append(received.ack_id)

        if ack_ids:
            try:
                subscriber.acknowledge(
                    request={"subscription": subscription_path, "ack_ids": ack_ids}
                )
            except GoogleAPIError as e:
                # Stored messages stay unacknowledged and will be redelivered.
                logger.error(
                    "pull_acknowledge_failed",
                    subscription=subscription_path,
                    unacknowledged=len(ack_ids),
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise

        logger.info(
            "pull_completed",
            subscription=subscription_path,
            received=len(response.received_messages),
            stored=len(stored),
        )
        return stored
    finally:
        subscriber.close()


class StreamingListener:
    """Streaming pull listener that stores every delivered message.

    Only one stream is open at a time: start() while running and stop()
    while idle are no-ops that return False.
    """

    def __init__(self, store: Optional[RecordStore[Notification]] = None):
        self._lock = threading.RLock()
        self._store = store
        self._subscriber: Optional[pubsub_v1.SubscriberClient] = None
        self._future: Any = None
        self._subscription_path: Optional[str] = None

    @property
    def store(self) -> RecordStore[Notification]:
        return self._store if self._store is not None else get_pull_store()

    @property
    def subscription_path(self) -> Optional[str]:
        return self._subscription_path

    def is_active(self) -> bool:
        with self._lock:
            return self._future is not None

    def start(self) -> bool:
        """Open the streaming pull.

        Returns:
            True if a new stream was opened, False if one was already running

        Raises:
            ProjectNotConfiguredError: If no project id is configured
        """
        subscription_path = _subscription_path()

        with self._lock:
            if self._future is not None:
                logger.info("pull_listener_already_running", subscription=self._subscription_path)
                return False

            subscriber = pubsub_v1.SubscriberClient()
            try:
                future = subscriber.subscribe(subscription_path, callback=self._handle_message)
            except Exception:
                subscriber.close()
                raise

            self._subscriber = subscriber
            self._future = future
            self._subscription_path = subscription_path
            future.add_done_callback(self._on_stream_done)

        logger.info("pull_listener_started", subscription=subscription_path)
        return True

    def _handle_message(self, message: Any) -> None:
        """Streaming callback: decode, store, then ack (nack if storing fails)."""
        raw = StreamedMessage(
            messageId=message.message_id,
            data=message.data,
            attributes=dict(message.attributes or {}),
            publishTime=_publish_time(message.publish_time),
        )
        try:
            notification = decode_streamed(raw)
            self.store.append(notification)
        except Exception as e:
            logger.error(
                "stream_message_store_failed",
                message_id=raw.messageId,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            message.nack()
            return

        message.ack()
        logger.info("stream_message_stored", message_id=raw.messageId, notification_id=notification.id)

    def _on_stream_done(self, future: Any) -> None:
        """Release the stream when it ends on its own (subscription error)."""
        with self._lock:
            if future is not self._future:
                return
            subscriber = self._subscriber
            self._future = None
            self._subscriber = None

        exception = None if future.cancelled() else future.exception()
        logger.error(
            "pull_listener_error",
            subscription=self._subscription_path,
            error=str(exception) if exception else None,
            error_type=type(exception).__name__ if exception else None,
        )
        if subscriber is not None:
            subscriber.close()

    def stop(self) -> bool:
        """Close the streaming pull.

        Returns:
            True if a running stream was stopped, False if none was running
        """
        with self._lock:
            if self._future is None:
                return False
            future, subscriber = self._future, self._subscriber
            self._future = None
            self._subscriber = None

        future.cancel()
        try:
            future.result(timeout=STOP_TIMEOUT_SECONDS)
        except concurrent.futures.TimeoutError:
            logger.warning("pull_listener_stop_timeout", timeout_seconds=STOP_TIMEOUT_SECONDS)
        except concurrent.futures.CancelledError:
            logger.debug("pull_listener_stream_cancelled")
        except Exception as e:
            logger.warning(
                "pull_listener_stream_failed_on_stop",
                subscription=self._subscription_path,
                error=str(e),
                error_type=type(e).__name__,
            )
        finally:
            if subscriber is not None:
                subscriber.close()

        logger.info("pull_listener_stopped", subscription=self._subscription_path)
        return True


_listener: Optional[StreamingListener] = None
_listener_lock = threading.Lock()


def get_streaming_listener() -> StreamingListener:
    """Get or create the singleton StreamingListener."""
    global _listener
    if _listener is None:
        with _listener_lock:
            if _listener is None:
                _listener = StreamingListener()
    return _listener


def reset_streaming_listener() -> None:
    """Stop and drop the singleton listener (for testing and shutdown)."""
    global _listener
    with _listener_lock:
        if _listener is not None:
            _listener.stop()
            _listener = None
