"""Decoding of inbound transport messages into Notification records.

Decoding is total: malformed payloads never raise, they degrade to the raw
envelope (push) or the decoded text (pull). Nothing here touches a store.
"""

import base64
import json
from typing import Any, Optional, Union

from rtdn_collector.logging_config import get_logger
from rtdn_collector.models import (
    Notification,
    NotificationSource,
    PullMessage,
    PushMessage,
    StreamedMessage,
)
from rtdn_collector.utils import generate_entry_id, utc_now_iso

logger = get_logger(__name__)


def parse_body(body: bytes) -> Any:
    """Parse a webhook body as JSON; undecodable bodies are kept as text."""
    if not body:
        return {}
    try:
        return json.loads(body)
    except ValueError:
        return body.decode("utf-8", errors="replace")


def _push_data(envelope: Any) -> Any:
    """Extract the JSON inside message.data, or fall back to the envelope."""
    if not isinstance(envelope, dict):
        return envelope
    message = envelope.get("message")
    if not isinstance(message, dict) or not message.get("data"):
        return envelope

    try:
        decoded = base64.b64decode(message["data"]).decode("utf-8")
        return json.loads(decoded)
    except (ValueError, TypeError) as e:
        # binascii.Error, UnicodeDecodeError and JSONDecodeError are ValueErrors
        logger.warning(
            "push_payload_undecodable",
            error=str(e),
            error_type=type(e).__name__,
        )
        return envelope


def _text_data(data: bytes) -> Any:
    """UTF-8 decode then JSON parse, keeping the text when it is not JSON."""
    text = data.decode("utf-8", errors="replace")
    try:
        return json.loads(text)
    except ValueError:
        return text


def decode_push(envelope: Any, received_at: Optional[str] = None) -> Notification:
    """Decode a push webhook body.

    Args:
        envelope: Parsed request body (any JSON value)
        received_at: Receipt time, defaults to now

    Returns:
        Notification with type push and no messageId
    """
    return Notification(
        id=generate_entry_id(),
        type=NotificationSource.PUSH,
        data=_push_data(envelope),
        rawPayload=envelope,
        createdAt=received_at or utc_now_iso(),
    )


def _decode_pulled(
    message: Union[PullMessage, StreamedMessage],
    source: NotificationSource,
    received_at: Optional[str],
) -> Notification:
    return Notification(
        id=generate_entry_id(message.messageId),
        type=source,
        messageId=message.messageId,
        data=_text_data(message.data),
        attributes=message.attributes,
        publishTime=message.publishTime,
        pulledAt=received_at or utc_now_iso(),
    )


def decode_pull(message: PullMessage, received_at: Optional[str] = None) -> Notification:
    """Decode a message returned by a synchronous pull."""
    return _decode_pulled(message, NotificationSource.PULL, received_at)


def decode_streamed(message: StreamedMessage, received_at: Optional[str] = None) -> Notification:
    """Decode a message delivered by the streaming listener."""
    return _decode_pulled(message, NotificationSource.PULL_STREAM, received_at)


def decode(
    raw: Union[PushMessage, PullMessage, StreamedMessage],
    received_at: Optional[str] = None,
) -> Notification:
    """Decode any raw transport message into a Notification."""
    if isinstance(raw, PushMessage):
        return decode_push(raw.envelope, received_at)
    if isinstance(raw, PullMessage):
        return decode_pull(raw, received_at)
    if isinstance(raw, StreamedMessage):
        return decode_streamed(raw, received_at)
    raise TypeError(f"Unsupported raw message type: {type(raw).__name__}")
