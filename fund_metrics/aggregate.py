"""
aggregate.py — Orchestration layer: full metrics per fund under one cutoff.

calculate_metrics is pure. MetricsCache and FundBook hold the only
mutable state in the package; FundBook clears its cache on every write.

Depends on: metrics.py, ledger.py, fund.py, dates.py
"""
from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import asdict, dataclass
from typing import Any, Iterable, Optional

import pandas as pd

from fund_metrics.config import DEFAULT_IRR_CONFIG, EngineSettings, IRRConfig, get_settings
from fund_metrics.dates import DateLike, cutoff_key, to_cutoff
from fund_metrics.fund import CashFlow, CashFlowKind, Fund, Valuation
from fund_metrics.ledger import (
    get_latest_nav_date,
    get_outstanding_commitment,
    get_total_by_type,
    get_vintage_year,
    parse_cash_flows_for_irr,
    project_nav,
)
from fund_metrics.metrics import calc_dpi, calc_rvpi, calc_tvpi, calculate_irr, calculate_moic

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Metrics record
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MetricsRecord:
    """Derived figures for one fund as of one cutoff. Ratios are None when undefined."""

    commitment: float
    called_capital: float
    total_distributions: float
    nav: float
    nav_date: Optional[str]
    nav_adjusted: bool
    outstanding_commitment: float
    investment_return: float
    vintage_year: Optional[int]
    irr: Optional[float]
    moic: Optional[float]
    dpi: Optional[float]
    rvpi: Optional[float]
    tvpi: Optional[float]

    @property
    def total_contributions(self) -> float:
        return self.called_capital

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["total_contributions"] = self.called_capital
        return data


def calculate_metrics(
    fund: Fund,
    cutoff: Optional[DateLike] = None,
    config: IRRConfig = DEFAULT_IRR_CONFIG,
) -> MetricsRecord:
    """
    Compute every derived figure for ``fund`` as of ``cutoff``.

    Parameters
    ----------
    fund:
        The position. Not modified.
    cutoff:
        As-of date; flows and snapshots after it are ignored. None means
        no limit.
    config:
        IRR root-finder constants.

    Returns
    -------
    MetricsRecord
        irr and moic come from the signed series of
        parse_cash_flows_for_irr. dpi, rvpi and tvpi are None when no
        capital has been called.
    """
    cutoff_date = to_cutoff(cutoff)

    called = get_total_by_type(fund, CashFlowKind.CONTRIBUTION, cutoff_date)
    distributions = get_total_by_type(fund, CashFlowKind.DISTRIBUTION, cutoff_date)
    nav, nav_adjusted = project_nav(fund, cutoff_date)
    series = parse_cash_flows_for_irr(fund, cutoff_date)

    return MetricsRecord(
        commitment=fund.commitment,
        called_capital=called,
        total_distributions=distributions,
        nav=nav,
        nav_date=get_latest_nav_date(fund, cutoff_date),
        nav_adjusted=nav_adjusted,
        outstanding_commitment=get_outstanding_commitment(fund, cutoff_date),
        investment_return=distributions + nav - called,
        vintage_year=get_vintage_year(fund),
        irr=calculate_irr(series, config=config),
        moic=calculate_moic(series),
        dpi=calc_dpi(called, distributions),
        rvpi=calc_rvpi(called, nav),
        tvpi=calc_tvpi(called, nav, distributions),
    )


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------

class MetricsCache:
    """
    Memo of MetricsRecords keyed by (fund id, cutoff).

    Oldest entries are evicted first once ``max_size`` is reached. With a
    ``ttl`` (seconds) entries also expire on read. Invalidation is
    wholesale through ``clear()``.
    """

    def __init__(self, max_size: int = 1000, ttl: Optional[float] = None) -> None:
        self.max_size = max_size
        self.ttl = ttl
        self._entries: OrderedDict[tuple[int, str], tuple[MetricsRecord, float]] = OrderedDict()
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Optional[EngineSettings] = None) -> "MetricsCache":
        settings = settings or get_settings()
        return cls(max_size=settings.cache_max_size, ttl=settings.cache_ttl_seconds)

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, fund_id: int, cutoff: Optional[DateLike] = None) -> Optional[MetricsRecord]:
        key = (fund_id, cutoff_key(cutoff))
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            record, stored_at = entry
            if self.ttl is not None and time.monotonic() - stored_at >= self.ttl:
                del self._entries[key]
                return None
            return record

    def put(self, fund_id: int, cutoff: Optional[DateLike], record: MetricsRecord) -> None:
        key = (fund_id, cutoff_key(cutoff))
        with self._lock:
            self._entries.pop(key, None)
            while self._entries and len(self._entries) >= self.max_size:
                self._entries.popitem(last=False)
            self._entries[key] = (record, time.monotonic())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        logger.debug("Metrics cache cleared")


def calculate_metrics_cached(
    fund: Fund,
    cache: MetricsCache,
    cutoff: Optional[DateLike] = None,
    config: IRRConfig = DEFAULT_IRR_CONFIG,
) -> MetricsRecord:
    """calculate_metrics through ``cache``. Funds without an id are never cached."""
    if fund.id is None:
        return calculate_metrics(fund, cutoff, config)

    cached = cache.get(fund.id, cutoff)
    if cached is not None:
        return cached

    record = calculate_metrics(fund, cutoff, config)
    cache.put(fund.id, cutoff, record)
    return record


# ---------------------------------------------------------------------------
# Multi-fund views
# ---------------------------------------------------------------------------

def consolidate_by_name(
    funds: Iterable[Fund],
    cutoff: Optional[DateLike] = None,
    config: IRRConfig = DEFAULT_IRR_CONFIG,
) -> dict[str, MetricsRecord]:
    """
    Metrics per fund name, pooled across every investor holding it.

    Cash flows are merged and commitments summed. Each position's NAV is
    projected separately and the sum is booked as one snapshot on the
    latest snapshot date among them.
    """
    cutoff_date = to_cutoff(cutoff)
    by_name: dict[str, list[Fund]] = {}
    for fund in funds:
        by_name.setdefault(fund.name, []).append(fund)

    consolidated = {}
    for name, members in by_name.items():
        flows: list[CashFlow] = []
        total_nav = 0.0
        latest_nav_date: Optional[str] = None
        for fund in members:
            flows.extend(fund.cash_flows)
            total_nav += project_nav(fund, cutoff_date)[0]
            nav_date = get_latest_nav_date(fund, cutoff_date)
            if nav_date is not None and (latest_nav_date is None or nav_date > latest_nav_date):
                latest_nav_date = nav_date

        valuations: tuple[Valuation, ...] = ()
        if latest_nav_date is not None:
            # Member NAVs are already projected to the cutoff. Back out the
            # flows the pooled snapshot would be rolled forward through.
            drift = project_nav(
                Fund(cash_flows=tuple(flows), valuations=(Valuation(latest_nav_date, 0.0),)),
                cutoff_date,
            )[0]
            valuations = (Valuation(latest_nav_date, total_nav - drift),)

        synthetic = Fund(
            commitment=sum(f.commitment for f in members),
            cash_flows=tuple(flows),
            valuations=valuations,
            name=name,
            account=f"{len(members)} investor{'s' if len(members) != 1 else ''}",
        )
        consolidated[name] = calculate_metrics(synthetic, cutoff_date, config)
    return consolidated


def metrics_frame(
    funds: Iterable[Fund],
    cutoff: Optional[DateLike] = None,
    cache: Optional[MetricsCache] = None,
    config: IRRConfig = DEFAULT_IRR_CONFIG,
) -> pd.DataFrame:
    """
    One row per fund: fund_id, name, account and every MetricsRecord field.
    """
    rows = []
    for fund in funds:
        if cache is not None:
            record = calculate_metrics_cached(fund, cache, cutoff, config)
        else:
            record = calculate_metrics(fund, cutoff, config)
        rows.append({"fund_id": fund.id, "name": fund.name, "account": fund.account, **record.to_dict()})
    return pd.DataFrame(rows)


# ---------------------------------------------------------------------------
# FundBook
# ---------------------------------------------------------------------------

class FundBook:
    """
    The owning collection of funds and their metrics cache.

    Any write (fund added, replaced or removed, cash flow or valuation
    added) clears the whole cache.

    Usage:
        book = FundBook()
        book.add_fund(Fund(id=1, commitment=1e6))
        book.add_cash_flow(1, CashFlow("2020-01-01", 5e5, CashFlowKind.CONTRIBUTION))
        book.metrics(1, cutoff="2021-12-31")
    """

    def __init__(
        self,
        funds: Iterable[Fund] = (),
        cache: Optional[MetricsCache] = None,
        config: IRRConfig = DEFAULT_IRR_CONFIG,
    ) -> None:
        self.cache = cache if cache is not None else MetricsCache.from_settings()
        self.config = config
        self._funds: dict[int, Fund] = {}
        for fund in funds:
            self.add_fund(fund)

    def __len__(self) -> int:
        return len(self._funds)

    def __iter__(self):
        return iter(list(self._funds.values()))

    def get(self, fund_id: int) -> Fund:
        return self._funds[fund_id]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add_fund(self, fund: Fund) -> "FundBook":
        if fund.id is None:
            raise ValueError("Fund must have an id to be added to a FundBook")
        if fund.id in self._funds:
            raise ValueError(f"Fund {fund.id} already exists")
        self._funds[fund.id] = fund
        self.cache.clear()
        return self

    def replace_fund(self, fund: Fund) -> "FundBook":
        if fund.id not in self._funds:
            raise KeyError(fund.id)
        self._funds[fund.id] = fund
        self.cache.clear()
        return self

    def remove_fund(self, fund_id: int) -> "FundBook":
        del self._funds[fund_id]
        self.cache.clear()
        return self

    def add_cash_flow(self, fund_id: int, cash_flow: CashFlow) -> "FundBook":
        return self.replace_fund(self._funds[fund_id].with_cash_flow(cash_flow))

    def add_valuation(self, fund_id: int, valuation: Valuation) -> "FundBook":
        return self.replace_fund(self._funds[fund_id].with_valuation(valuation))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def metrics(self, fund_id: int, cutoff: Optional[DateLike] = None) -> MetricsRecord:
        return calculate_metrics_cached(self._funds[fund_id], self.cache, cutoff, self.config)

    def metrics_frame(self, cutoff: Optional[DateLike] = None) -> pd.DataFrame:
        return metrics_frame(self._funds.values(), cutoff, cache=self.cache, config=self.config)

    def consolidated(self, cutoff: Optional[DateLike] = None) -> dict[str, MetricsRecord]:
        return consolidate_by_name(self._funds.values(), cutoff, self.config)
