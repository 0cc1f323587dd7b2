"""
fund_metrics — Private-equity fund metrics and valuation engine.

Public API surface:

    from fund_metrics import Fund, CashFlow, CashFlowKind, Valuation
    from fund_metrics import calculate_metrics, MetricsRecord, MetricsCache, FundBook
    from fund_metrics import calculate_irr, calculate_moic
    from fund_metrics import get_latest_nav, get_outstanding_commitment
    from fund_metrics import MetricsWorker
"""
from __future__ import annotations

# Configuration
from fund_metrics.config import DEFAULT_IRR_CONFIG, EngineSettings, IRRConfig, get_settings

# Core data classes and engines
from fund_metrics.dates import is_valid_date, parse_date
from fund_metrics.fund import CashFlow, CashFlowKind, Fund, Valuation, parse_amount
from fund_metrics.metrics import FlowPoint, calculate_irr, calculate_moic
from fund_metrics.ledger import (
    get_latest_nav,
    get_latest_nav_date,
    get_outstanding_commitment,
    get_total_by_type,
    get_vintage_year,
    parse_cash_flows_for_irr,
)
from fund_metrics.aggregate import (
    FundBook,
    MetricsCache,
    MetricsRecord,
    calculate_metrics,
    calculate_metrics_cached,
    consolidate_by_name,
    metrics_frame,
)
from fund_metrics.worker import MetricsWorker
from fund_metrics.exceptions import (
    AmountParseError,
    FundMetricsError,
    InvalidRecordError,
    WorkerError,
    WorkerInitError,
    WorkerTimeoutError,
)

__version__ = "0.1.0"

__all__ = [
    # Config
    "DEFAULT_IRR_CONFIG",
    "EngineSettings",
    "IRRConfig",
    "get_settings",
    # Model
    "CashFlow",
    "CashFlowKind",
    "Fund",
    "Valuation",
    "parse_amount",
    "is_valid_date",
    "parse_date",
    # Engine
    "FlowPoint",
    "calculate_irr",
    "calculate_moic",
    "get_latest_nav",
    "get_latest_nav_date",
    "get_outstanding_commitment",
    "get_total_by_type",
    "get_vintage_year",
    "parse_cash_flows_for_irr",
    # Aggregation
    "FundBook",
    "MetricsCache",
    "MetricsRecord",
    "calculate_metrics",
    "calculate_metrics_cached",
    "consolidate_by_name",
    "metrics_frame",
    # Worker
    "MetricsWorker",
    # Errors
    "AmountParseError",
    "FundMetricsError",
    "InvalidRecordError",
    "WorkerError",
    "WorkerInitError",
    "WorkerTimeoutError",
    # Version
    "__version__",
]
