"""
fund.py — Immutable fund ledger: cash flows, valuation snapshots, commitment.

Also hosts the persistence boundary (parse_amount / from_dict) that turns
loosely-typed stored records into the canonical shapes the engine expects.

Depends only on: dates.py, exceptions.py
"""
from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Mapping, Optional

import numpy as np
import pandas as pd

from fund_metrics.dates import parse_date
from fund_metrics.exceptions import AmountParseError, InvalidRecordError

logger = logging.getLogger(__name__)

_PARENS = re.compile(r"^\((.*)\)$")


class CashFlowKind(str, Enum):
    """Direction of a ledger entry."""

    CONTRIBUTION = "Contribution"  # capital called from the investor
    DISTRIBUTION = "Distribution"  # capital returned to the investor
    ADJUSTMENT = "Adjustment"  # accounting correction, no cash moves


# ---------------------------------------------------------------------------
# Persistence boundary
# ---------------------------------------------------------------------------

def parse_amount(value: Any) -> float:
    """
    Coerce a stored amount to a float.

    Accepts numbers and currency strings such as ``"$1,000"`` or
    ``"(2,500.50)"`` (parentheses denote a negative amount).

    Raises
    ------
    AmountParseError
        For None, booleans, empty strings, non-finite values and anything
        that does not read as a number.
    """
    if isinstance(value, bool) or value is None:
        raise AmountParseError(value)
    if isinstance(value, (int, float, np.integer, np.floating)):
        number = float(value)
    elif isinstance(value, str):
        cleaned = value.replace("$", "").replace(",", "").strip()
        cleaned = _PARENS.sub(r"-\1", cleaned).strip()
        if not cleaned:
            raise AmountParseError(value)
        try:
            number = float(cleaned)
        except ValueError:
            raise AmountParseError(value) from None
    else:
        raise AmountParseError(value)

    if not math.isfinite(number):
        raise AmountParseError(value)
    return number


def _parse_kind(value: Any) -> CashFlowKind:
    try:
        return CashFlowKind(value)
    except ValueError:
        raise InvalidRecordError(f"Unknown cash flow type: {value!r}") from None


def _first(record: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in record:
            return record[key]
    return default


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CashFlow:
    """One capital call, distribution or manual correction."""

    date: str
    amount: float
    kind: CashFlowKind
    affects_commitment: bool = True

    @property
    def signed_amount(self) -> float:
        """Amount in investor sign convention (calls negative, returns positive)."""
        if self.kind is CashFlowKind.CONTRIBUTION:
            return -abs(self.amount)
        if self.kind is CashFlowKind.DISTRIBUTION:
            return abs(self.amount)
        return 0.0

    @classmethod
    def from_dict(cls, record: Mapping[str, Any]) -> "CashFlow":
        if not isinstance(record, Mapping):
            raise InvalidRecordError(f"Cash flow record must be a mapping, got {type(record).__name__}")
        affects = _first(record, "affectsCommitment", "affects_commitment", default=True)
        return cls(
            date=str(_first(record, "date", default="")),
            amount=parse_amount(_first(record, "amount")),
            kind=_parse_kind(_first(record, "type", "kind")),
            affects_commitment=affects is not False,
        )


@dataclass(frozen=True)
class Valuation:
    """A point-in-time NAV snapshot. May be negative for impaired positions."""

    date: str
    amount: float

    @classmethod
    def from_dict(cls, record: Mapping[str, Any]) -> "Valuation":
        if not isinstance(record, Mapping):
            raise InvalidRecordError(f"Valuation record must be a mapping, got {type(record).__name__}")
        return cls(
            date=str(_first(record, "date", default="")),
            amount=parse_amount(_first(record, "amount")),
        )


@dataclass(frozen=True)
class Fund:
    """
    One investor's position in a fund.

    Cash flows and valuations are kept in creation order, which need not
    be date order. Instances are immutable; ``with_cash_flow`` and
    ``with_valuation`` return updated copies.
    """

    commitment: float = 0.0
    cash_flows: tuple[CashFlow, ...] = field(default_factory=tuple)
    valuations: tuple[Valuation, ...] = field(default_factory=tuple)
    id: Optional[int] = None
    name: str = ""
    account: str = ""
    group_id: Optional[int] = None

    def __post_init__(self) -> None:
        # Lists are accepted for convenience but stored as tuples.
        object.__setattr__(self, "cash_flows", tuple(self.cash_flows))
        object.__setattr__(self, "valuations", tuple(self.valuations))

    @classmethod
    def from_dict(cls, record: Mapping[str, Any]) -> "Fund":
        """
        Build a Fund from a stored record.

        Understands the stored key names (``fundName``, ``accountNumber``,
        ``cashFlows``, ``monthlyNav``, ``groupId``) as well as the
        snake_case attribute names. Amounts go through ``parse_amount``.
        """
        if not isinstance(record, Mapping):
            raise InvalidRecordError(f"Fund record must be a mapping, got {type(record).__name__}")

        raw_flows = _first(record, "cashFlows", "cash_flows", default=[]) or []
        raw_navs = _first(record, "monthlyNav", "valuations", default=[]) or []
        if not isinstance(raw_flows, (list, tuple)) or not isinstance(raw_navs, (list, tuple)):
            raise InvalidRecordError("cashFlows and monthlyNav must be lists")

        name = str(_first(record, "fundName", "name", default=""))
        try:
            commitment = parse_amount(_first(record, "commitment", default=0))
            flows = tuple(CashFlow.from_dict(cf) for cf in raw_flows)
            navs = tuple(Valuation.from_dict(n) for n in raw_navs)
        except AmountParseError as exc:
            logger.warning("Rejected fund record %r: %s", name, exc.message)
            raise

        return cls(
            commitment=commitment,
            cash_flows=flows,
            valuations=navs,
            id=_first(record, "id"),
            name=name,
            account=str(_first(record, "accountNumber", "account", default="")),
            group_id=_first(record, "groupId", "group_id"),
        )

    # ------------------------------------------------------------------
    # Copy-on-write updates
    # ------------------------------------------------------------------

    def with_cash_flow(self, cash_flow: CashFlow) -> "Fund":
        return replace(self, cash_flows=self.cash_flows + (cash_flow,))

    def with_valuation(self, valuation: Valuation) -> "Fund":
        return replace(self, valuations=self.valuations + (valuation,))

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def get_cashflows(self) -> pd.DataFrame:
        """
        Return the ledger as a date-sorted DataFrame.

        Columns:
            date, kind, amount, signed_amount, affects_commitment

        Entries whose date is not a valid calendar date are dropped.
        """
        rows = [
            {
                "date": parse_date(cf.date),
                "kind": cf.kind.value,
                "amount": abs(cf.amount),
                "signed_amount": cf.signed_amount,
                "affects_commitment": cf.affects_commitment,
            }
            for cf in self.cash_flows
            if parse_date(cf.date) is not None
        ]
        columns = ["date", "kind", "amount", "signed_amount", "affects_commitment"]
        df = pd.DataFrame(rows, columns=columns)
        return df.sort_values("date", kind="stable").reset_index(drop=True)

    def __repr__(self) -> str:
        return (
            f"Fund(id={self.id!r}, name={self.name!r}, "
            f"commitment=${self.commitment:,.0f}, "
            f"flows={len(self.cash_flows)}, valuations={len(self.valuations)})"
        )
