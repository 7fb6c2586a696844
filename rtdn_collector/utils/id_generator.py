"""Record id and timestamp generation.

Ids are millisecond timestamps, optionally suffixed with the Pub/Sub message
id: 1700000000000 for push notifications, 1700000000000-9876543210 for
pulled ones.
"""

import threading
import time
from datetime import datetime, timezone
from typing import Optional


_last_millis = 0
_id_lock = threading.Lock()


def _next_millis() -> int:
    """Current time in millis, strictly increasing within this process."""
    global _last_millis
    with _id_lock:
        now = int(time.time() * 1000)
        if now <= _last_millis:
            now = _last_millis + 1
        _last_millis = now
        return now


def generate_entry_id(message_id: Optional[str] = None) -> str:
    """Generate a record id.

    Args:
        message_id: Transport message id to append, if any

    Returns:
        "<millis>" or "<millis>-<message_id>"
    """
    millis = _next_millis()
    if message_id:
        return f"{millis}-{message_id}"
    return str(millis)


def utc_now_iso() -> str:
    """Current UTC time as ISO 8601 with millisecond precision."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")
