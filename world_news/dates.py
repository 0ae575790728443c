"""Publication date parsing and display formatting."""

from __future__ import annotations

import logging
from datetime import datetime, tzinfo
from typing import Optional

logger = logging.getLogger(__name__)

WIRE_DATE_FORMAT = "%a, %d %b %Y %H:%M:%S %z"
DISPLAY_DATE_FORMAT = "%Y.%m.%d %H:%M"


def parse_date(raw_value: Optional[str]) -> Optional[datetime]:
    """Parse the API ``pubDate`` format into an aware datetime."""
    if not raw_value:
        return None
    try:
        return datetime.strptime(raw_value.strip(), WIRE_DATE_FORMAT)
    except ValueError:
        return None


def format_date(raw_value: str, tz: Optional[tzinfo] = None) -> str:
    """Render ``raw_value`` as ``yyyy.MM.dd HH:mm``.

    The source offset's wall-clock time is kept unless ``tz`` is given.
    Values that cannot be parsed are returned unchanged.
    """
    parsed = parse_date(raw_value)
    if parsed is None:
        logger.debug("Leaving unparseable date as-is: %r", raw_value)
        return raw_value
    if tz is not None:
        parsed = parsed.astimezone(tz)
    return parsed.strftime(DISPLAY_DATE_FORMAT)
