"""
exceptions.py — Errors raised at the edges of the engine.

The calculation functions themselves never raise for bad data; they
return None. These exceptions belong to the persistence boundary and to
the batch worker.
"""
from __future__ import annotations


class FundMetricsError(Exception):
    """Base exception for fund_metrics errors."""

    def __init__(self, message: str, code: str = "FUND_METRICS_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(message)


class AmountParseError(FundMetricsError, ValueError):
    """Raised when a stored amount cannot be coerced to a number."""

    def __init__(self, value: object) -> None:
        self.value = value
        super().__init__(f"Cannot parse amount: {value!r}", code="AMOUNT_PARSE_ERROR")


class InvalidRecordError(FundMetricsError, ValueError):
    """Raised when a raw fund record is structurally wrong."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="INVALID_RECORD")


class WorkerError(FundMetricsError):
    """Raised when a batch dispatch to the metrics worker fails."""

    def __init__(self, message: str, code: str = "WORKER_ERROR") -> None:
        super().__init__(message, code=code)


class WorkerInitError(WorkerError):
    """The metrics worker failed to start within its init timeout."""

    def __init__(self, message: str = "Worker initialization failed") -> None:
        super().__init__(message, code="WORKER_INIT_ERROR")


class WorkerTimeoutError(WorkerError):
    """A dispatched batch was not answered before its timeout."""

    def __init__(self, request_id: int, timeout: float) -> None:
        self.request_id = request_id
        self.timeout = timeout
        super().__init__(
            f"Worker request {request_id} timed out after {timeout:g}s",
            code="WORKER_TIMEOUT",
        )
