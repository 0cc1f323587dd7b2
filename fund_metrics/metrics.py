"""
metrics.py — Pure mathematical functions for fund return analysis.

All functions are stateless and have no side effects. None means
"undefined for this data" and is returned instead of raising.

Depends only on: config.py, dates.py
"""
from __future__ import annotations

import logging
from typing import Any, NamedTuple, Optional, Sequence

import numpy as np
import numpy.typing as npt

from fund_metrics.config import DEFAULT_IRR_CONFIG, IRRConfig
from fund_metrics.dates import parse_date, years_between

logger = logging.getLogger(__name__)


class FlowPoint(NamedTuple):
    """A signed, dated amount: negative = paid in, positive = received."""

    date: str
    amount: float


def _coerce_points(cashflows: Any) -> Optional[list[FlowPoint]]:
    """Read a list of FlowPoints, (date, amount) pairs or mappings; None if malformed."""
    if not isinstance(cashflows, (list, tuple)):
        return None
    points = []
    for cf in cashflows:
        if isinstance(cf, dict):
            if "date" not in cf or "amount" not in cf:
                return None
            date_str, amount = cf["date"], cf["amount"]
        else:
            try:
                date_str, amount = cf
            except (TypeError, ValueError):
                return None
        if isinstance(amount, bool) or not isinstance(amount, (int, float, np.number)):
            return None
        points.append(FlowPoint(date_str, float(amount)))
    return points


# ---------------------------------------------------------------------------
# IRR
# ---------------------------------------------------------------------------

def calc_npv(
    amounts: npt.NDArray[np.float64],
    years: npt.NDArray[np.float64],
    rate: float,
) -> float:
    """Net Present Value of amounts received ``years`` after the first flow."""
    return float(np.sum(amounts / (1 + rate) ** years))


def calc_dnpv(
    amounts: npt.NDArray[np.float64],
    years: npt.NDArray[np.float64],
    rate: float,
) -> float:
    """First derivative of calc_npv with respect to rate."""
    return float(np.sum(-years * amounts / (1 + rate) ** (years + 1)))


def calculate_irr(
    cashflows: Sequence[FlowPoint],
    guess: Optional[float] = None,
    config: IRRConfig = DEFAULT_IRR_CONFIG,
) -> Optional[float]:
    """
    Annualised Internal Rate of Return of an irregular dated series.

    Uses Newton-Raphson on NPV(r) = sum(amount_i / (1 + r) ** years_i),
    where years_i is the time since the earliest flow in 365.25-day years.
    A step that would take the rate to -100% or below is damped to land
    halfway between the current rate and -100%.

    Parameters
    ----------
    cashflows:
        Signed flows (negative = contributions, positive = distributions
        and terminal value). Order does not matter; flows are sorted.
    guess:
        Starting rate. Defaults to ``config.guess``.
    config:
        Iteration budget, precision and acceptable rate band.

    Returns
    -------
    float or None
        IRR as a decimal (0.15 = 15%). None when there are fewer than two
        flows, the span is shorter than ``config.min_days``, the NPV curve
        is flat at the current rate, the result falls outside
        ``[config.min_rate, config.max_rate]``, or the iteration budget is
        exhausted.
    """
    points = _coerce_points(cashflows)
    if points is None or len(points) < 2:
        return None

    dated = [(parse_date(p.date), p.amount) for p in points]
    if any(d is None for d, _ in dated):
        return None
    dated.sort(key=lambda item: item[0])

    first, last = dated[0][0], dated[-1][0]
    if (last - first).days < config.min_days:
        logger.debug("IRR undefined: span of %d days is too short", (last - first).days)
        return None

    amounts = np.array([amount for _, amount in dated], dtype=np.float64)
    years = np.array([years_between(first, d) for d, _ in dated], dtype=np.float64)

    rate = config.guess if guess is None else guess
    eps = config.precision

    with np.errstate(all="ignore"):
        for _ in range(config.max_iterations):
            npv = calc_npv(amounts, years, rate)
            dnpv = calc_dnpv(amounts, years, rate)
            if not (np.isfinite(npv) and np.isfinite(dnpv)):
                logger.debug("IRR undefined: NPV not finite at rate %r", rate)
                return None

            if abs(npv) < eps:
                return _within_band(rate, config)
            if abs(dnpv) < eps:
                logger.debug("IRR undefined: flat NPV curve at rate %r", rate)
                return None

            new_rate = rate - npv / dnpv
            if new_rate <= -1:
                # Keep 1 + r positive: step halfway towards -100% instead.
                new_rate = (rate - 1) / 2
            if abs(new_rate - rate) < eps:
                return _within_band(new_rate, config)
            rate = new_rate

    logger.debug("IRR undefined: no convergence in %d iterations", config.max_iterations)
    return None


def _within_band(rate: float, config: IRRConfig) -> Optional[float]:
    if rate > config.max_rate or rate < config.min_rate:
        logger.debug("IRR undefined: rate %r outside [%r, %r]", rate, config.min_rate, config.max_rate)
        return None
    return float(rate)


# ---------------------------------------------------------------------------
# Multiples
# ---------------------------------------------------------------------------

def calculate_moic(cashflows: Sequence[FlowPoint]) -> Optional[float]:
    """
    Multiple on Invested Capital of a signed series.

    MOIC = sum of positive amounts / sum of |negative amounts|.
    None when the series is empty, malformed or has no contributions.
    """
    points = _coerce_points(cashflows)
    if not points:
        return None

    amounts = np.array([p.amount for p in points], dtype=np.float64)
    contributions = float(np.sum(np.abs(amounts[amounts < 0])))
    distributions = float(np.sum(amounts[amounts > 0]))

    # No capital in, no meaningful multiple
    if contributions == 0:
        return None
    return distributions / contributions


def calc_dpi(paid_in: float, distributions: float) -> Optional[float]:
    """Distributions to Paid-In capital (DPI)."""
    if paid_in <= 0:
        return None
    return distributions / paid_in


def calc_rvpi(paid_in: float, nav: float) -> Optional[float]:
    """Residual Value to Paid-In capital (RVPI)."""
    if paid_in <= 0:
        return None
    return nav / paid_in


def calc_tvpi(paid_in: float, nav: float, distributions: float) -> Optional[float]:
    """
    Total Value to Paid-In capital (TVPI).

    TVPI = (NAV + cumulative distributions) / paid-in = DPI + RVPI
    """
    if paid_in <= 0:
        return None
    return (distributions + nav) / paid_in
