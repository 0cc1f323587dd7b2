"""
ledger.py — Turns a Fund's raw ledger into figures and signed series.

Every function takes an optional as-of cutoff (``date`` or ``YYYY-MM-DD``
string). Entries dated after the cutoff, or carrying an invalid date,
never participate. The Fund is read only.

Depends on: dates.py, fund.py, metrics.py
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Iterator, Optional, Union

from fund_metrics.dates import DateLike, parse_date, to_cutoff
from fund_metrics.fund import CashFlow, CashFlowKind, Fund, Valuation
from fund_metrics.metrics import FlowPoint

logger = logging.getLogger(__name__)


def _on_or_before(d: date, cutoff: Optional[date]) -> bool:
    return cutoff is None or d <= cutoff


def _dated_flows(fund: Fund, cutoff: Optional[date]) -> Iterator[tuple[date, CashFlow]]:
    for cf in fund.cash_flows:
        d = parse_date(cf.date)
        if d is not None and _on_or_before(d, cutoff):
            yield d, cf


def _latest_valuation(
    fund: Fund, cutoff: Optional[date]
) -> Optional[tuple[date, Valuation]]:
    """Snapshot with the latest date on or before cutoff (first stored wins ties)."""
    latest: Optional[tuple[date, Valuation]] = None
    for valuation in fund.valuations:
        d = parse_date(valuation.date)
        if d is None or not _on_or_before(d, cutoff):
            continue
        if latest is None or d > latest[0]:
            latest = (d, valuation)
    return latest


# ---------------------------------------------------------------------------
# Totals
# ---------------------------------------------------------------------------

def get_total_by_type(
    fund: Fund,
    kind: Union[CashFlowKind, str],
    cutoff: Optional[DateLike] = None,
) -> float:
    """
    Sum of |amount| over flows of ``kind``, regardless of stored sign.

    An unknown kind matches nothing and totals 0.0.
    """
    try:
        kind = CashFlowKind(kind)
    except ValueError:
        logger.debug("Unknown cash flow kind %r", kind)
        return 0.0
    cutoff_date = to_cutoff(cutoff)
    return float(
        sum(abs(cf.amount) for _, cf in _dated_flows(fund, cutoff_date) if cf.kind is kind)
    )


def get_vintage_year(fund: Fund) -> Optional[int]:
    """Calendar year of the earliest-dated contribution, or None if there is none."""
    years = [
        d
        for d in (parse_date(cf.date) for cf in fund.cash_flows if cf.kind is CashFlowKind.CONTRIBUTION)
        if d is not None
    ]
    return min(years).year if years else None


# ---------------------------------------------------------------------------
# NAV projection
# ---------------------------------------------------------------------------

def get_latest_nav_date(fund: Fund, cutoff: Optional[DateLike] = None) -> Optional[str]:
    """Date of the snapshot get_latest_nav starts from, or None."""
    latest = _latest_valuation(fund, to_cutoff(cutoff))
    return latest[1].date if latest is not None else None


def project_nav(fund: Fund, cutoff: Optional[DateLike] = None) -> tuple[float, bool]:
    """
    Roll the latest snapshot forward to the cutoff.

    Returns
    -------
    (nav, adjusted)
        ``nav`` is 0.0 when no snapshot qualifies. ``adjusted`` is True when
        at least one contribution or distribution after the snapshot date
        moved the figure.
    """
    cutoff_date = to_cutoff(cutoff)
    latest = _latest_valuation(fund, cutoff_date)
    if latest is None:
        return 0.0, False

    nav_date, valuation = latest
    nav = valuation.amount
    adjusted = False
    for d, cf in _dated_flows(fund, cutoff_date):
        if d <= nav_date:
            continue
        # Calls put cash into the fund, distributions take it out.
        if cf.kind is CashFlowKind.CONTRIBUTION:
            nav += abs(cf.amount)
            adjusted = True
        elif cf.kind is CashFlowKind.DISTRIBUTION:
            nav -= abs(cf.amount)
            adjusted = True
    return nav, adjusted


def get_latest_nav(fund: Fund, cutoff: Optional[DateLike] = None) -> float:
    """
    Estimated current value of the position.

    Starts from the latest snapshot dated on or before ``cutoff`` and nets
    every contribution (+) and distribution (-) dated strictly after the
    snapshot and on or before ``cutoff``. Adjustments are ignored.
    """
    return project_nav(fund, cutoff)[0]


# ---------------------------------------------------------------------------
# Commitment
# ---------------------------------------------------------------------------

def get_outstanding_commitment(fund: Fund, cutoff: Optional[DateLike] = None) -> float:
    """
    Remaining callable capital, floored at zero.

    Only flows marked ``affects_commitment`` participate: contributions
    and adjustments draw the commitment down, distributions (recallable)
    restore it. The result is not capped at the original commitment.
    """
    outstanding = fund.commitment
    for _, cf in _dated_flows(fund, to_cutoff(cutoff)):
        if not cf.affects_commitment:
            continue
        if cf.kind is CashFlowKind.DISTRIBUTION:
            outstanding += abs(cf.amount)
        else:
            outstanding -= abs(cf.amount)
    return max(0.0, outstanding)


# ---------------------------------------------------------------------------
# Signed series for IRR / MOIC
# ---------------------------------------------------------------------------

def parse_cash_flows_for_irr(fund: Fund, cutoff: Optional[DateLike] = None) -> list[FlowPoint]:
    """
    Investor-perspective signed series, sorted by date.

    Contributions become negative, distributions positive, adjustments are
    dropped. When a snapshot qualifies, the projected NAV is appended as a
    terminal flow dated at the snapshot date. A negative NAV is kept: an
    impaired position must not be left out of the return.
    """
    cutoff_date = to_cutoff(cutoff)
    dated = [
        (d, cf.signed_amount)
        for d, cf in _dated_flows(fund, cutoff_date)
        if cf.kind is not CashFlowKind.ADJUSTMENT
    ]

    latest = _latest_valuation(fund, cutoff_date)
    if latest is not None:
        dated.append((latest[0], get_latest_nav(fund, cutoff_date)))

    dated.sort(key=lambda item: item[0])
    return [FlowPoint(d.isoformat(), amount) for d, amount in dated]
