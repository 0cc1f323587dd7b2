"""Tests for fund_metrics.dates — calendar-date parsing."""
from __future__ import annotations

from datetime import date, datetime

import pytest

from fund_metrics.dates import cutoff_key, is_valid_date, parse_date, to_cutoff, years_between


class TestIsValidDate:
    @pytest.mark.parametrize("value", ["2020-01-01", "2020-02-29", "1999-12-31"])
    def test_accepts_real_days(self, value):
        assert is_valid_date(value)

    @pytest.mark.parametrize(
        "value",
        ["2020-02-30", "2021-02-29", "2021-13-01", "2021-00-10", "2021-04-31"],
    )
    def test_rejects_impossible_days(self, value):
        assert not is_valid_date(value)

    @pytest.mark.parametrize(
        "value",
        [
            "2020-1-01",
            "20-01-01",
            " 2020-01-01",
            "2020-01-01\n",
            "\uff12\uff10\uff12\uff10-01-01",
            "2020-01-01T00:00:00",
            "2020/01/01",
            "",
        ],
    )
    def test_rejects_wrong_format(self, value):
        assert not is_valid_date(value)

    @pytest.mark.parametrize("value", [None, 20200101, date(2020, 1, 1)])
    def test_rejects_non_strings(self, value):
        assert not is_valid_date(value)


class TestParseDate:
    def test_returns_naive_calendar_date(self):
        assert parse_date("2021-12-31") == date(2021, 12, 31)

    def test_invalid_returns_none(self):
        assert parse_date("2021-02-30") is None


class TestCutoff:
    def test_none_is_no_limit(self):
        assert to_cutoff(None) is None
        assert cutoff_key(None) == "none"

    def test_string_and_date_agree(self):
        assert to_cutoff("2022-06-30") == to_cutoff(date(2022, 6, 30))
        assert cutoff_key("2022-06-30") == cutoff_key(date(2022, 6, 30)) == "2022-06-30"

    def test_datetime_truncates_to_day(self):
        assert to_cutoff(datetime(2022, 6, 30, 23, 59)) == date(2022, 6, 30)

    def test_invalid_string_raises(self):
        with pytest.raises(ValueError):
            to_cutoff("2022-02-30")


def test_years_between_uses_365_25_day_years():
    assert years_between(date(2020, 1, 1), date(2024, 1, 1)) == pytest.approx(1461 / 365.25)
