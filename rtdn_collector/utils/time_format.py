"""Human-readable timestamp rendering.

Display only: callers keep the raw value next to the rendered string.
Both helpers return None for empty or unparseable input instead of raising.
"""

import re
from datetime import datetime, timezone
from typing import Any, Optional
from zoneinfo import ZoneInfo

DEFAULT_TIMEZONE = "Asia/Kolkata"
DISPLAY_FORMAT = "%d/%m/%Y, %I:%M:%S %p"

# fromisoformat() accepts at most microseconds; Google sends up to nanos.
_FRACTION = re.compile(r"\.(\d{6})\d+")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an RFC 3339 timestamp (e.g. 2024-01-31T10:00:00.123Z)."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _FRACTION.sub(r".\1", text)

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def format_local(moment: datetime, tz_name: str = DEFAULT_TIMEZONE) -> str:
    """Render an aware datetime as "31/01/2024, 03:30:00 PM IST"."""
    tz = ZoneInfo(tz_name)
    local = moment.astimezone(tz)
    return f"{local.strftime(DISPLAY_FORMAT)} {local.tzname()}"


def to_local_display(value: Any, tz_name: str = DEFAULT_TIMEZONE) -> Optional[str]:
    """Render an RFC 3339 timestamp in the display timezone."""
    if not value:
        return None
    moment = parse_timestamp(value)
    if moment is None:
        return None
    return format_local(moment, tz_name)


def millis_to_local_display(millis: Any, tz_name: str = DEFAULT_TIMEZONE) -> Optional[str]:
    """Render epoch milliseconds (int or numeric string) in the display timezone."""
    if not millis or isinstance(millis, bool):
        return None
    try:
        moment = datetime.fromtimestamp(int(millis) / 1000, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None
    return format_local(moment, tz_name)
