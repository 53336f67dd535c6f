"""
Datetime utility functions for source-system timestamps
"""
from datetime import datetime, timezone
from typing import Optional
import logging

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Timezone-aware current UTC time"""
    return datetime.now(timezone.utc)


def to_datetime(value) -> Optional[datetime]:
    """
    Convert a stored or source-system timestamp to an aware datetime

    Handles multiple cases:
    - None -> None
    - Python datetime -> returned as-is (naive values are assumed UTC)
    - ISO string (including trailing 'Z') -> parsed datetime
    - Other -> None with warning

    Args:
        value: datetime, ISO string, or None

    Returns:
        Python datetime or None
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
        except ValueError as e:
            logger.warning(f"Failed to parse datetime string '{value}': {e}")
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)

    logger.warning(f"Unknown datetime type: {type(value)}, value: {value}")
    return None
