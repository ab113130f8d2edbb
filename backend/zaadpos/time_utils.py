from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional
from zoneinfo import ZoneInfo

# Google Sheets / Excel serial day 0
SHEET_EPOCH = datetime(1899, 12, 30, tzinfo=timezone.utc)

_YMD_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def utcnow() -> datetime:
    """Server-side 'now' in UTC (aware)."""
    return datetime.now(timezone.utc)


def epoch_ms(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to an aware UTC datetime.

    - None / "" -> None
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC

    Raises ValueError on malformed input.
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    if dt.tzinfo is None:
        # interpret naive as UTC
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def from_serial_days(days: float) -> datetime:
    # Round to the millisecond so serial values read back as the instant written
    ms = round(days * 86400 * 1000)
    return SHEET_EPOCH + timedelta(milliseconds=ms)


def parse_sheet_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a raw timestamp cell. Never raises.

    Supports ISO strings, epoch milliseconds and spreadsheet serial day
    numbers (days since 1899-12-30). Anything else is None.
    """
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    if isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        try:
            value = float(s)
        except ValueError:
            try:
                return parse_iso_datetime(s)
            except ValueError:
                return None

    if isinstance(value, (int, float)):
        if value != value:  # NaN
            return None
        try:
            if value > 1e11:
                return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
            if 20000 < value < 90000:
                return from_serial_days(value)
        except (OverflowError, OSError, ValueError):
            return None
    return None


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with millisecond precision and trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc)
    return dt_utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def day_key(dt: datetime, tz: ZoneInfo) -> str:
    """Calendar date (YYYY-MM-DD) of an instant in the configured zone."""
    return dt.astimezone(tz).strftime("%Y-%m-%d")


def invoice_day_prefix(dt: datetime, tz: ZoneInfo) -> str:
    """'<day> <month> <2-digit-year>' without leading zeros on day and month."""
    local = dt.astimezone(tz)
    return f"{local.day} {local.month} {local.year % 100:02d}"


def today_key(tz: ZoneInfo) -> str:
    return day_key(utcnow(), tz)


def normalize_date(value: Any) -> str:
    """
    Accept YYYY-MM-DD, or any parseable timestamp -> YYYY-MM-DD (UTC date).
    Returns "" when the value is not a date.
    """
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.astimezone(timezone.utc).strftime("%Y-%m-%d")
    if isinstance(value, date):
        return value.isoformat()

    s = str(value).strip()
    if _YMD_RE.match(s):
        try:
            date.fromisoformat(s)
        except ValueError:
            return ""
        return s

    dt = parse_sheet_timestamp(value)
    if dt is None:
        return ""
    return dt.strftime("%Y-%m-%d")


def is_calendar_date(value: Any) -> bool:
    s = str(value or "").strip()
    if not _YMD_RE.match(s):
        return False
    try:
        date.fromisoformat(s)
    except ValueError:
        return False
    return True


def midday_utc(ymd: str) -> str:
    """Fixed mid-day instant for a calendar date, e.g. 2024-01-10T12:00:00.000Z."""
    return f"{ymd}T12:00:00.000Z"
