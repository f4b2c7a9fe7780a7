"""
Tests for Date Parsing
======================
"""

from pathlib import Path

# Add parent to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from bundle_navigator.dates import find_dates, parse_date


class TestParseDate:
    """Normalization to ISO with precision"""

    def test_iso(self):
        parsed = parse_date("2021-03-15")
        assert parsed.iso == "2021-03-15"
        assert parsed.precision == "day"

    def test_numeric_day_first(self):
        assert parse_date("15/03/2021").iso == "2021-03-15"
        assert parse_date("5.3.21").iso == "2021-03-05"

    def test_day_month_year(self):
        assert parse_date("15 March 2021").iso == "2021-03-15"
        assert parse_date("1st of June 2020").iso == "2020-06-01"

    def test_month_day_year(self):
        assert parse_date("March 15, 2021").iso == "2021-03-15"

    def test_month_year(self):
        parsed = parse_date("March 2021")
        assert parsed.iso == "2021-03"
        assert parsed.precision == "month"

    def test_bare_year(self):
        parsed = parse_date("2019")
        assert parsed.iso == "2019"
        assert parsed.precision == "year"

    def test_unparseable(self):
        assert parse_date("sometime last spring") is None
        assert parse_date(None) is None

    def test_invalid_month_rejected(self):
        assert parse_date("15/13/2021") is None

    def test_sort_key_orders_precision(self):
        assert parse_date("2021").sort_key < parse_date("January 2021").sort_key < parse_date("2 January 2021").sort_key


class TestFindDates:
    """Dates inside running text"""

    def test_multiple_dates_in_order(self):
        dates = find_dates("Served on 2 May 2020, acknowledged 14/05/2020.")
        assert [d.iso for d in dates] == ["2020-05-02", "2020-05-14"]

    def test_no_overlapping_matches(self):
        dates = find_dates("On March 15, 2021 the claim was issued.")
        assert len(dates) == 1
        assert dates[0].iso == "2021-03-15"
