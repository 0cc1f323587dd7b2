"""
basic_fund_metrics.py — Computes point-in-time metrics for a small book of funds.

Run:
    python examples/basic_fund_metrics.py
"""
from __future__ import annotations

import pandas as pd

from fund_metrics import CashFlow, CashFlowKind, Fund, FundBook, MetricsWorker, Valuation
from fund_metrics.logging_config import setup_logging

C = CashFlowKind.CONTRIBUTION
D = CashFlowKind.DISTRIBUTION


def main() -> None:
    setup_logging()

    # -------------------------------------------------------------------
    # 1. Load positions from stored records
    # -------------------------------------------------------------------
    summit = Fund.from_dict(
        {
            "id": 1,
            "fundName": "Summit Buyout IV",
            "accountNumber": "LP-001",
            "commitment": "$10,000,000",
            "cashFlows": [
                {"date": "2018-01-15", "amount": "$4,000,000", "type": "Contribution"},
                {"date": "2019-02-01", "amount": 3_000_000, "type": "Contribution"},
                {"date": "2020-06-30", "amount": 2_000_000, "type": "Contribution"},
                {"date": "2021-03-31", "amount": 1_500_000, "type": "Distribution", "affectsCommitment": False},
                {"date": "2022-09-30", "amount": 2_500_000, "type": "Distribution", "affectsCommitment": False},
            ],
            "monthlyNav": [
                {"date": "2020-12-31", "amount": 8_000_000},
                {"date": "2022-06-30", "amount": 8_500_000},
            ],
        }
    )

    harbor = Fund(
        id=2,
        name="Harbor Credit II",
        account="LP-002",
        commitment=1_000_000,
        cash_flows=(CashFlow("2020-01-01", 500_000, C),),
        valuations=(Valuation("2021-01-01", 300_000),),
    )

    book = FundBook([summit, harbor])

    # -------------------------------------------------------------------
    # 2. Metrics today and as of an earlier reporting date
    # -------------------------------------------------------------------
    columns = ["name", "called_capital", "total_distributions", "nav", "irr", "moic", "tvpi",
               "outstanding_commitment", "vintage_year"]
    with pd.option_context("display.width", 160, "display.float_format", "{:,.3f}".format):
        print("\n=== Current ===")
        print(book.metrics_frame()[columns].to_string(index=False))
        print("\n=== As of 2021-06-30 ===")
        print(book.metrics_frame(cutoff="2021-06-30")[columns].to_string(index=False))

    # -------------------------------------------------------------------
    # 3. A new distribution clears the cache
    # -------------------------------------------------------------------
    book.add_cash_flow(2, CashFlow("2022-12-15", 350_000, D, affects_commitment=False))
    m = book.metrics(2)
    print(f"\nHarbor after distribution: DPI={m.dpi:.2f}x  TVPI={m.tvpi:.2f}x")

    # -------------------------------------------------------------------
    # 4. Recalculate the whole book in a background worker
    # -------------------------------------------------------------------
    with MetricsWorker() as worker:
        for fund_id, record in worker.calculate_batch(list(book), cutoff="2022-12-31"):
            irr = f"{record.irr:.1%}" if record.irr is not None else "n/a"
            print(f"Fund {fund_id}: IRR {irr}")


if __name__ == "__main__":
    main()
