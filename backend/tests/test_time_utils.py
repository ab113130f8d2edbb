# Overview: Pytest coverage for timestamp parsing, day keys and invoice prefixes.

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from zaadpos.time_utils import (
    day_key,
    invoice_day_prefix,
    is_calendar_date,
    midday_utc,
    normalize_date,
    parse_iso_datetime,
    parse_sheet_timestamp,
    to_utc_z,
)

NAIROBI = ZoneInfo("Africa/Nairobi")
TEN_JAN_9AM = datetime(2024, 1, 10, 9, 0, tzinfo=timezone.utc)


class TestParseSheetTimestamp:
    def test_iso_string(self):
        assert parse_sheet_timestamp("2024-01-10T09:00:00.000Z") == TEN_JAN_9AM

    def test_epoch_milliseconds(self):
        assert parse_sheet_timestamp(1704877200000) == TEN_JAN_9AM
        assert parse_sheet_timestamp("1704877200000") == TEN_JAN_9AM

    def test_serial_days(self):
        """Spreadsheet serial 45301.375 is 2024-01-10 09:00."""
        assert parse_sheet_timestamp(45301.375) == TEN_JAN_9AM

    def test_unparseable_values_are_none(self):
        for value in (None, "", "   ", "hello", True, 12, float("nan")):
            assert parse_sheet_timestamp(value) is None

    def test_naive_iso_is_utc(self):
        assert parse_iso_datetime("2024-01-10T09:00") == TEN_JAN_9AM


class TestFormatting:
    def test_to_utc_z_has_milliseconds(self):
        assert to_utc_z(TEN_JAN_9AM) == "2024-01-10T09:00:00.000Z"

    def test_day_key_uses_configured_zone(self):
        """21:30 UTC on the 10th is already the 11th in Nairobi (UTC+3)."""
        late = datetime(2024, 1, 10, 21, 30, tzinfo=timezone.utc)
        assert day_key(late, NAIROBI) == "2024-01-11"
        assert invoice_day_prefix(late, NAIROBI) == "11 1 24"

    def test_invoice_prefix_has_no_leading_zeros(self):
        assert invoice_day_prefix(TEN_JAN_9AM, NAIROBI) == "10 1 24"
        assert invoice_day_prefix(datetime(2025, 11, 5, 6, tzinfo=timezone.utc), NAIROBI) == "5 11 25"

    def test_midday_utc(self):
        assert midday_utc("2024-01-10") == "2024-01-10T12:00:00.000Z"


class TestDates:
    def test_normalize_date(self):
        assert normalize_date("2024-01-10") == "2024-01-10"
        assert normalize_date(" 2024-01-10 ") == "2024-01-10"
        assert normalize_date(45301) == "2024-01-10"
        assert normalize_date("2024-02-30") == ""
        assert normalize_date("yesterday") == ""
        assert normalize_date(None) == ""

    def test_is_calendar_date(self):
        assert is_calendar_date("2024-01-10")
        assert not is_calendar_date("2024-1-10")
        assert not is_calendar_date("2024-13-01")
        assert not is_calendar_date(None)
