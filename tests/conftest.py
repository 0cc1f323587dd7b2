"""
conftest.py — Shared pytest fixtures for fund_metrics test suite.
"""
from __future__ import annotations

import pytest

from fund_metrics.config import reset_settings
from fund_metrics.fund import CashFlow, CashFlowKind, Fund, Valuation

C = CashFlowKind.CONTRIBUTION
D = CashFlowKind.DISTRIBUTION
A = CashFlowKind.ADJUSTMENT


@pytest.fixture(autouse=True)
def fresh_settings():
    """Each test reads settings from a clean environment."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def impaired_fund() -> Fund:
    """Half the commitment called, now marked at 60% of cost."""
    return Fund(
        id=1,
        name="Harbor Credit II",
        commitment=1_000_000,
        cash_flows=(CashFlow("2020-01-01", 500_000, C, affects_commitment=True),),
        valuations=(Valuation("2021-01-01", 300_000),),
    )


@pytest.fixture
def mature_fund() -> Fund:
    """
    Three calls, two non-recallable distributions, one NAV mark after the
    last snapshot. Storage order is deliberately not date order.
    """
    return Fund(
        id=2,
        name="Summit Buyout IV",
        account="LP-001",
        commitment=10_000_000,
        cash_flows=(
            CashFlow("2019-02-01", -3_000_000, C),  # stored negative
            CashFlow("2018-01-15", 4_000_000, C),
            CashFlow("2020-06-30", 2_000_000, C),
            CashFlow("2020-01-01", 100_000, A, affects_commitment=False),
            CashFlow("2021-03-31", 1_500_000, D, affects_commitment=False),
            CashFlow("2022-09-30", 2_500_000, D, affects_commitment=False),
        ),
        valuations=(
            Valuation("2021-12-31", 9_000_000),
            Valuation("2020-12-31", 8_000_000),
            Valuation("2022-06-30", 8_500_000),
        ),
    )


@pytest.fixture
def snapshot_fund() -> Fund:
    """A single 1,000,000 NAV mark at year-end 2021 and nothing else."""
    return Fund(
        id=3,
        name="Granite Growth I",
        commitment=5_000_000,
        valuations=(Valuation("2021-12-31", 1_000_000),),
    )
