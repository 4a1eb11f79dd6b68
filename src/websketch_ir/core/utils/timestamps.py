# src/websketch_ir/core/utils/timestamps.py
import math
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

# Calendar date, 'T' (or a space), wall time, optional 1-9 digit fraction and
# an optional 'Z' or +HH:MM offset. Pinned here so acceptance does not depend
# on the interpreter's own fromisoformat.
ISO_TIMESTAMP_PATTERN = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})[Tt ](\d{2}):(\d{2}):(\d{2})"
    r"(?:\.(\d{1,9}))?"
    r"(?:([Zz])|([+-])(\d{2}):(\d{2}))?$"
)


def _parse_iso(text: str) -> Optional[datetime]:
    match = ISO_TIMESTAMP_PATTERN.match(text)
    if match is None:
        return None
    year, month, day, hour, minute, second = (int(part) for part in match.group(1, 2, 3, 4, 5, 6))
    fraction = match.group(7) or ""
    microsecond = int(fraction[:6].ljust(6, "0"))
    tz = timezone.utc
    if match.group(9):
        offset_hours, offset_minutes = int(match.group(10)), int(match.group(11))
        if offset_hours > 23 or offset_minutes > 59:
            return None
        offset = timedelta(hours=offset_hours, minutes=offset_minutes)
        tz = timezone(-offset if match.group(9) == "-" else offset)
    try:
        local = datetime(year, month, day, hour, minute, second, microsecond, tzinfo=tz)
        return local.astimezone(timezone.utc)
    except (OverflowError, ValueError):
        return None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Interprets a wire timestamp: an ISO-8601 string or epoch milliseconds.
    Returns None when the value is neither or falls outside the range a UTC
    datetime can hold. Naive timestamps are taken as UTC, and the result is
    always normalized to UTC.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        if value < 0:
            return None
        try:
            return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        return _parse_iso(value.strip())
    return None


def format_iso(moment: datetime, timespec: str = "milliseconds") -> str:
    """UTC ISO-8601 with a 'Z' suffix, e.g. 2025-01-01T00:00:00.000Z."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec=timespec).replace("+00:00", "Z")
