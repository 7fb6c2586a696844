"""Utility functions and helpers for the collector."""

from rtdn_collector.utils.id_generator import (
    generate_entry_id,
    utc_now_iso,
)
from rtdn_collector.utils.time_format import (
    DEFAULT_TIMEZONE,
    format_local,
    millis_to_local_display,
    parse_timestamp,
    to_local_display,
)

__all__ = [
    # Ids and receipt timestamps
    "generate_entry_id",
    "utc_now_iso",
    # Display rendering
    "DEFAULT_TIMEZONE",
    "parse_timestamp",
    "format_local",
    "to_local_display",
    "millis_to_local_display",
]
