"""Tests for regex patterns and the day/name helpers built on them.

These tests cover the parsing side of the sync without requiring a
running OnePoint instance or browser.
"""

from datetime import datetime

import pytest

from patterns import Patterns
from utils import format_day, normalize_name, parse_cli_day, parse_day


# ---------------------------------------------------------------------------
# WIRE_DAY pattern: OnePoint day format DD-MM-YYYY
# ---------------------------------------------------------------------------

class TestWireDayPattern:
    """Patterns.WIRE_DAY must match the day format used in OnePoint paths."""

    @pytest.mark.parametrize(
        "label, day, month, year",
        [
            ("10-03-2026", "10", "03", "2026"),
            ("01-01-2025", "01", "01", "2025"),
            ("31-12-1999", "31", "12", "1999"),
        ],
    )
    def test_matches(self, label, day, month, year):
        m = Patterns.WIRE_DAY.match(label)
        assert m is not None, f"WIRE_DAY should match '{label}'"
        assert m.groups() == (day, month, year)

    @pytest.mark.parametrize(
        "label",
        [
            "2026-03-10",   # ISO order
            "1-3-2026",     # no zero padding
            "10.03.2026",   # dot separator
            "10-03-26",     # two-digit year
            "10-03-2026 ",  # trailing space
        ],
    )
    def test_rejects(self, label):
        assert Patterns.WIRE_DAY.match(label) is None


class TestDateFormatPattern:
    @pytest.mark.parametrize("value", ["2026-03-10", "1999-12-31"])
    def test_matches(self, value):
        assert Patterns.DATE_FORMAT.match(value)

    @pytest.mark.parametrize("value", ["10-03-2026", "2026-3-10", "2026/03/10", ""])
    def test_rejects(self, value):
        assert Patterns.DATE_FORMAT.match(value) is None


# ---------------------------------------------------------------------------
# Helpers using the patterns
# ---------------------------------------------------------------------------

class TestDayHelpers:
    def test_format_and_parse_wire_day(self):
        day = datetime(2026, 3, 10)
        assert format_day(day) == "10-03-2026"
        assert parse_day(" 10-03-2026 ") == day

    def test_parse_day_rejects_iso(self):
        with pytest.raises(ValueError, match="DD-MM-YYYY"):
            parse_day("2026-03-10")

    def test_parse_cli_day(self):
        assert parse_cli_day("2026-03-10") == datetime(2026, 3, 10)

    def test_parse_cli_day_rejects_invalid_date(self):
        with pytest.raises(ValueError):
            parse_cli_day("2026-02-30")


class TestNormalizeName:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("Project A", "project a"),
            ("  Project \t  A  ", "project a"),
            ("", ""),
            (None, ""),
        ],
    )
    def test_collapses_whitespace_and_case(self, raw, expected):
        assert normalize_name(raw) == expected
