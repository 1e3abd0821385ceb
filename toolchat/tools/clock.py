"""
Date & Time Tool

Reports the current date and time in a given IANA timezone.
"""

import logging
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field

from ..config import config
from ..errors import ToolExecutionError

logger = logging.getLogger(__name__)


def iso_timestamp(moment: datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a ``Z`` suffix."""
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


class DateTimeInput(BaseModel):
    timezone: Optional[str] = Field(
        default=None,
        description='Timezone, e.g. "Europe/Helsinki" or "America/New_York"',
    )


def format_long(moment: datetime) -> str:
    """Format as e.g. ``Monday, October 19, 2026 at 4:31:05 PM EEST``."""
    hour = moment.hour % 12 or 12
    meridiem = "AM" if moment.hour < 12 else "PM"
    return (
        f"{moment:%A, %B} {moment.day}, {moment.year} at "
        f"{hour}:{moment:%M:%S} {meridiem} {moment.tzname()}"
    )


def get_datetime(tz_name: Optional[str] = None, now: Optional[datetime] = None) -> dict:
    """
    Describe one instant in the requested timezone.

    Args:
        tz_name: IANA timezone name; defaults to the configured timezone.
        now: The instant to describe (aware datetime); defaults to the current time.

    Returns:
        Dictionary with ``formatted`` (local, human readable), ``iso``
        (UTC ISO-8601) and ``timezone``.

    Raises:
        ToolExecutionError: If the timezone is unknown.
    """
    tz_name = tz_name or config.tools.default_timezone
    try:
        zone = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ToolExecutionError(f"Unknown timezone '{tz_name}'") from e

    now = now or datetime.now(timezone.utc)
    return {
        "formatted": format_long(now.astimezone(zone)),
        "iso": iso_timestamp(now),
        "timezone": tz_name,
    }


def _handle_datetime(params: DateTimeInput) -> dict:
    result = get_datetime(params.timezone)
    logger.info("Time in %s: %s", result["timezone"], result["formatted"])
    return result


def _register():
    from .registry import ToolRegistry

    ToolRegistry.register(
        name="datetime",
        description=(
            "Show current date and time. Use when the user asks about time or date."
        ),
        input_model=DateTimeInput,
        handler=_handle_datetime,
    )


_register()
