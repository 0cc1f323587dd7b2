"""Tests for fund_metrics.aggregate — metrics record, cache, FundBook, multi-fund views."""
from __future__ import annotations

from datetime import date

import pandas as pd
import pytest

from fund_metrics.aggregate import (
    FundBook,
    MetricsCache,
    MetricsRecord,
    calculate_metrics,
    calculate_metrics_cached,
    consolidate_by_name,
    metrics_frame,
)
from fund_metrics.fund import CashFlow, CashFlowKind, Fund, Valuation
from fund_metrics.ledger import parse_cash_flows_for_irr
from fund_metrics.metrics import calculate_irr, calculate_moic

C = CashFlowKind.CONTRIBUTION
D = CashFlowKind.DISTRIBUTION

RATIOS = ("irr", "moic", "dpi", "rvpi", "tvpi")


# ---------------------------------------------------------------------------
# calculate_metrics
# ---------------------------------------------------------------------------

class TestCalculateMetrics:
    def test_impaired_scenario(self, impaired_fund: Fund):
        m = calculate_metrics(impaired_fund)
        assert m.moic == pytest.approx(0.6)
        assert m.irr < 0
        assert m.irr == pytest.approx(-0.4, abs=1e-2)
        assert m.outstanding_commitment == pytest.approx(500_000)
        assert m.called_capital == pytest.approx(500_000)
        assert m.total_contributions == pytest.approx(500_000)
        assert m.nav == pytest.approx(300_000)
        assert m.investment_return == pytest.approx(-200_000)
        assert m.vintage_year == 2020
        assert m.dpi == 0.0

    def test_mature_fund_figures(self, mature_fund: Fund):
        m = calculate_metrics(mature_fund)
        assert m.commitment == 10_000_000
        assert m.called_capital == pytest.approx(9_000_000)
        assert m.total_distributions == pytest.approx(4_000_000)
        assert m.nav == pytest.approx(6_000_000)
        assert m.nav_date == "2022-06-30"
        assert m.nav_adjusted is True
        assert m.outstanding_commitment == pytest.approx(1_000_000)
        assert m.investment_return == pytest.approx(1_000_000)
        assert m.vintage_year == 2018
        assert m.moic == pytest.approx(10 / 9)
        assert 0 < m.irr < 0.1

    def test_ratio_identities(self, mature_fund: Fund, impaired_fund: Fund):
        for fund in (mature_fund, impaired_fund):
            m = calculate_metrics(fund)
            assert m.dpi + m.rvpi == pytest.approx(m.tvpi)
            assert m.tvpi == pytest.approx(m.moic)

    def test_paid_in_ratios_undefined_without_contributions(self):
        fund = Fund(
            id=9,
            commitment=1_000,
            cash_flows=(CashFlow("2020-06-30", 100, D),),
            valuations=(Valuation("2021-01-01", 500),),
        )
        m = calculate_metrics(fund)
        assert m.dpi is None and m.rvpi is None and m.tvpi is None
        assert m.moic is None
        assert m.irr == calculate_irr(parse_cash_flows_for_irr(fund))
        assert m.nav == 500
        assert m.vintage_year is None

    def test_negative_nav_counts_as_capital_at_risk_without_calls(self):
        fund = Fund(
            id=8,
            commitment=1_000,
            cash_flows=(CashFlow("2020-01-01", 100, D),),
            valuations=(Valuation("2021-06-30", -400),),
        )
        m = calculate_metrics(fund)
        series = parse_cash_flows_for_irr(fund)
        assert m.called_capital == 0.0
        assert m.moic == pytest.approx(0.25)
        assert m.moic == calculate_moic(series)
        assert m.irr == calculate_irr(series)
        assert m.tvpi is None

    def test_empty_fund(self):
        m = calculate_metrics(Fund(commitment=250))
        assert m.outstanding_commitment == 250
        assert m.nav == 0.0
        assert m.nav_date is None
        assert all(getattr(m, name) is None for name in RATIOS)

    @pytest.mark.parametrize("cutoff", [None, "2019-12-31", "2020-12-31", "2021-06-30", "2022-12-31"])
    def test_round_trip_with_signed_series(self, mature_fund: Fund, cutoff):
        m = calculate_metrics(mature_fund, cutoff)
        series = parse_cash_flows_for_irr(mature_fund, cutoff)
        assert m.irr == calculate_irr(series)
        assert m.moic == calculate_moic(series)

    def test_cutoff_filters_everything(self, mature_fund: Fund):
        m = calculate_metrics(mature_fund, cutoff="2019-12-31")
        assert m.called_capital == pytest.approx(7_000_000)
        assert m.total_distributions == 0.0
        assert m.nav == 0.0
        assert m.outstanding_commitment == pytest.approx(3_000_000)
        assert m.moic == 0.0
        assert m.tvpi == 0.0

    def test_cutoff_forms_agree(self, mature_fund: Fund):
        assert calculate_metrics(mature_fund, "2021-06-30") == calculate_metrics(
            mature_fund, date(2021, 6, 30)
        )

    def test_invalid_cutoff_raises(self, mature_fund: Fund):
        with pytest.raises(ValueError):
            calculate_metrics(mature_fund, "2021-02-30")

    def test_to_dict(self, impaired_fund: Fund):
        data = calculate_metrics(impaired_fund).to_dict()
        assert data["total_contributions"] == data["called_capital"]
        assert set(RATIOS) <= set(data)


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------

class TestMetricsCache:
    def test_keyed_by_fund_and_cutoff(self, impaired_fund: Fund):
        cache = MetricsCache()
        record = calculate_metrics(impaired_fund)
        cache.put(1, None, record)
        assert cache.get(1) is record
        assert cache.get(1, "2021-01-01") is None
        assert cache.get(2) is None

    def test_string_and_date_cutoffs_share_a_key(self, impaired_fund: Fund):
        cache = MetricsCache()
        record = calculate_metrics(impaired_fund, "2021-01-01")
        cache.put(1, date(2021, 1, 1), record)
        assert cache.get(1, "2021-01-01") is record

    def test_oldest_evicted_first(self, impaired_fund: Fund):
        cache = MetricsCache(max_size=2)
        record = calculate_metrics(impaired_fund)
        for fund_id in (1, 2, 3):
            cache.put(fund_id, None, record)
        assert len(cache) == 2
        assert cache.get(1) is None
        assert cache.get(3) is record

    def test_ttl_expiry(self, impaired_fund: Fund):
        cache = MetricsCache(ttl=0)
        cache.put(1, None, calculate_metrics(impaired_fund))
        assert cache.get(1) is None
        assert len(cache) == 0

    def test_clear(self, impaired_fund: Fund):
        cache = MetricsCache()
        cache.put(1, None, calculate_metrics(impaired_fund))
        cache.clear()
        assert len(cache) == 0


class TestCalculateMetricsCached:
    def test_second_call_hits_cache(self, impaired_fund: Fund):
        cache = MetricsCache()
        first = calculate_metrics_cached(impaired_fund, cache)
        assert calculate_metrics_cached(impaired_fund, cache) is first
        assert len(cache) == 1

    def test_funds_without_id_are_not_cached(self):
        cache = MetricsCache()
        calculate_metrics_cached(Fund(commitment=1), cache)
        assert len(cache) == 0


# ---------------------------------------------------------------------------
# FundBook
# ---------------------------------------------------------------------------

class TestFundBook:
    @pytest.fixture
    def book(self, impaired_fund: Fund, mature_fund: Fund) -> FundBook:
        return FundBook([impaired_fund, mature_fund])

    def test_metrics_are_cached(self, book: FundBook):
        first = book.metrics(1)
        assert book.metrics(1) is first
        assert len(book.cache) == 1

    def test_add_cash_flow_invalidates(self, book: FundBook):
        book.metrics(1)
        book.metrics(2)
        book.add_cash_flow(1, CashFlow("2021-06-30", 600_000, D))
        assert len(book.cache) == 0
        assert book.metrics(1).total_distributions == pytest.approx(600_000)

    def test_add_valuation_invalidates(self, book: FundBook):
        before = book.metrics(1)
        book.add_valuation(1, Valuation("2022-01-01", 900_000))
        after = book.metrics(1)
        assert after is not before
        assert after.nav == pytest.approx(900_000)

    def test_remove_fund_invalidates(self, book: FundBook):
        book.metrics(2)
        book.remove_fund(1)
        assert len(book.cache) == 0
        assert len(book) == 1

    def test_duplicate_and_anonymous_funds_rejected(self, book: FundBook, impaired_fund: Fund):
        with pytest.raises(ValueError):
            book.add_fund(impaired_fund)
        with pytest.raises(ValueError):
            book.add_fund(Fund(commitment=1))

    def test_replace_unknown_fund_raises(self, book: FundBook):
        with pytest.raises(KeyError):
            book.replace_fund(Fund(id=99, commitment=1))

    def test_frame_covers_every_fund(self, book: FundBook):
        df = book.metrics_frame()
        assert sorted(df["fund_id"]) == [1, 2]
        assert len(book.cache) == 2


# ---------------------------------------------------------------------------
# Multi-fund views
# ---------------------------------------------------------------------------

class TestConsolidateByName:
    @pytest.fixture
    def investors(self) -> list[Fund]:
        return [
            Fund(
                id=10,
                name="Atlas Ventures III",
                commitment=2_000_000,
                cash_flows=(CashFlow("2020-01-01", 1_000_000, C),),
                valuations=(Valuation("2021-12-31", 1_200_000),),
            ),
            Fund(
                id=11,
                name="Atlas Ventures III",
                commitment=1_000_000,
                cash_flows=(
                    CashFlow("2020-06-30", 500_000, C),
                    CashFlow("2021-09-30", 100_000, C),
                ),
                valuations=(Valuation("2021-06-30", 400_000),),
            ),
            Fund(
                id=12,
                name="Other Fund",
                commitment=100,
                cash_flows=(CashFlow("2020-01-01", 50, C),),
            ),
        ]

    def test_pools_positions(self, investors):
        pooled = consolidate_by_name(investors)
        atlas = pooled["Atlas Ventures III"]
        assert atlas.commitment == pytest.approx(3_000_000)
        assert atlas.called_capital == pytest.approx(1_600_000)
        # 1.2M + (0.4M + 0.1M call after its mark)
        assert atlas.nav == pytest.approx(1_700_000)
        assert atlas.nav_date == "2021-12-31"
        assert atlas.outstanding_commitment == pytest.approx(1_400_000)
        assert set(pooled) == {"Atlas Ventures III", "Other Fund"}

    def test_flows_after_latest_mark_are_not_double_counted(self, investors):
        investors[0] = investors[0].with_cash_flow(CashFlow("2022-03-31", 200_000, D))
        atlas = consolidate_by_name(investors)["Atlas Ventures III"]
        assert atlas.nav == pytest.approx(1_500_000)

    def test_cutoff(self, investors):
        atlas = consolidate_by_name(investors, cutoff="2021-07-31")["Atlas Ventures III"]
        assert atlas.nav == pytest.approx(400_000)
        assert atlas.nav_date == "2021-06-30"

    def test_no_marks(self, investors):
        other = consolidate_by_name(investors)["Other Fund"]
        assert other.nav == 0.0
        assert other.nav_date is None
        assert other.moic == 0.0


class TestMetricsFrame:
    def test_one_row_per_fund(self, impaired_fund: Fund, mature_fund: Fund):
        df = metrics_frame([impaired_fund, mature_fund], cutoff="2021-12-31")
        assert isinstance(df, pd.DataFrame)
        assert len(df) == 2
        assert {"fund_id", "name", "account", "irr", "moic", "nav", "vintage_year"} <= set(df.columns)
        assert list(df["name"]) == ["Harbor Credit II", "Summit Buyout IV"]

    def test_uses_cache_when_given(self, impaired_fund: Fund):
        cache = MetricsCache()
        metrics_frame([impaired_fund], cache=cache)
        assert len(cache) == 1

    def test_record_type(self, impaired_fund: Fund):
        assert isinstance(calculate_metrics(impaired_fund), MetricsRecord)


def test_fund_book_cache_follows_settings(monkeypatch, impaired_fund: Fund):
    monkeypatch.setenv("FUND_METRICS_CACHE_MAX_SIZE", "3")
    monkeypatch.setenv("FUND_METRICS_CACHE_TTL_SECONDS", "60")
    book = FundBook([impaired_fund])
    assert book.cache.max_size == 3
    assert book.cache.ttl == 60.0
