"""
worker.py — Batch offload of metrics calculation to a background worker.

A single-process pool computes calculate_metrics for a whole batch of
funds. Each dispatch gets a request id; responses are correlated by that
id and every pending request carries its own timeout timer.

Depends on: aggregate.py
"""
from __future__ import annotations

import itertools
import logging
import threading
from concurrent.futures import Executor, Future, ProcessPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Optional, Sequence

from fund_metrics.aggregate import MetricsRecord, calculate_metrics
from fund_metrics.config import DEFAULT_IRR_CONFIG, IRRConfig, get_settings
from fund_metrics.dates import DateLike, to_cutoff
from fund_metrics.exceptions import WorkerError, WorkerInitError, WorkerTimeoutError
from fund_metrics.fund import Fund

logger = logging.getLogger(__name__)

BatchResult = list[tuple[Optional[int], MetricsRecord]]


# ---------------------------------------------------------------------------
# Worker functions (module-level for ProcessPoolExecutor compatibility)
# ---------------------------------------------------------------------------

def _worker_ready() -> bool:
    return True


def _compute_batch(
    funds: Sequence[Fund],
    cutoff: Optional[str],
    request_id: int,
    config: IRRConfig,
) -> tuple[BatchResult, int]:
    """Compute metrics for every fund; echoes request_id for correlation."""
    results = [(fund.id, calculate_metrics(fund, cutoff, config)) for fund in funds]
    return results, request_id


# ---------------------------------------------------------------------------
# MetricsWorker
# ---------------------------------------------------------------------------

@dataclass
class _Pending:
    future: Future
    timer: threading.Timer


class MetricsWorker:
    """
    Dispatches metrics batches to one background worker.

    Usage:
        with MetricsWorker() as worker:
            results = worker.calculate_batch(funds, cutoff="2023-12-31")

    ``dispatch`` returns a Future resolving to ``[(fund_id, MetricsRecord), ...]``.
    A batch either fully succeeds or the Future fails; there is no
    partial result and no retry.
    """

    def __init__(
        self,
        executor: Optional[Executor] = None,
        timeout: Optional[float] = None,
        init_timeout: Optional[float] = None,
        config: IRRConfig = DEFAULT_IRR_CONFIG,
    ) -> None:
        settings = get_settings()
        self.timeout = settings.worker_timeout_seconds if timeout is None else timeout
        self.init_timeout = (
            settings.worker_init_timeout_seconds if init_timeout is None else init_timeout
        )
        self.config = config
        self._executor = executor
        self._owns_executor = executor is None
        self._pending: dict[int, _Pending] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self._ready = False
        self._failure: Optional[WorkerError] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> "MetricsWorker":
        """
        Start the worker and wait for it to answer a readiness probe.

        Raises
        ------
        WorkerInitError
            If the worker cannot start or does not answer within
            ``init_timeout``. Pending and later dispatches are rejected.
        """
        if self._ready:
            return self
        if self._failure is not None:
            raise self._failure

        try:
            if self._executor is None:
                self._executor = ProcessPoolExecutor(max_workers=1)
            self._executor.submit(_worker_ready).result(timeout=self.init_timeout)
        except FutureTimeoutError:
            self._fail(WorkerInitError("Worker initialization timeout"))
            raise self._failure from None
        except Exception as exc:
            self._fail(WorkerInitError(f"Worker initialization failed: {exc}"))
            raise self._failure from exc

        self._ready = True
        logger.info("Metrics worker ready")
        return self

    def shutdown(self) -> None:
        """Reject outstanding requests and stop the worker."""
        self._reject_all(WorkerError("Worker terminated"))
        self._ready = False
        if self._executor is not None and self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None

    def __enter__(self) -> "MetricsWorker":
        return self.start()

    def __exit__(self, *exc_info) -> None:
        self.shutdown()

    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def dispatch(self, funds: Sequence[Fund], cutoff: Optional[DateLike] = None) -> Future:
        """Send a batch to the worker; the returned Future carries the results."""
        future: Future = Future()
        if self._failure is not None:
            future.set_exception(self._failure)
            return future
        if not self._ready:
            future.set_exception(WorkerError("Worker not initialized"))
            return future

        cutoff_date = to_cutoff(cutoff)
        cutoff_str = cutoff_date.isoformat() if cutoff_date is not None else None

        with self._lock:
            request_id = next(self._ids)
            timer = threading.Timer(self.timeout, self._expire, args=(request_id,))
            timer.daemon = True
            self._pending[request_id] = _Pending(future, timer)
            timer.start()

        try:
            work = self._executor.submit(
                _compute_batch, list(funds), cutoff_str, request_id, self.config
            )
        except Exception as exc:
            self._settle(request_id, error=WorkerError(f"Dispatch failed: {exc}"))
            return future

        work.add_done_callback(lambda done, rid=request_id: self._on_done(rid, done))
        return future

    def calculate_batch(
        self, funds: Sequence[Fund], cutoff: Optional[DateLike] = None
    ) -> BatchResult:
        """Blocking form of dispatch."""
        return self.dispatch(funds, cutoff).result()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _on_done(self, request_id: int, done: Future) -> None:
        if done.cancelled():
            self._settle(request_id, error=WorkerError("Worker request cancelled"))
            return
        exc = done.exception()
        if exc is not None:
            logger.error("Metrics batch %d failed: %s", request_id, exc)
            self._settle(request_id, error=WorkerError(f"Worker error: {exc}"))
            return
        results, echoed_id = done.result()
        self._settle(echoed_id, results=results)

    def _expire(self, request_id: int) -> None:
        logger.warning("Metrics batch %d timed out after %gs", request_id, self.timeout)
        self._settle(request_id, error=WorkerTimeoutError(request_id, self.timeout))

    def _settle(
        self,
        request_id: int,
        results: Optional[BatchResult] = None,
        error: Optional[BaseException] = None,
    ) -> None:
        with self._lock:
            pending = self._pending.pop(request_id, None)
        # Already answered, expired or rejected.
        if pending is None:
            return
        pending.timer.cancel()
        if pending.future.done():
            return
        if error is not None:
            pending.future.set_exception(error)
        else:
            pending.future.set_result(results)

    def _reject_all(self, error: WorkerError) -> None:
        with self._lock:
            pending = list(self._pending.values())
            self._pending.clear()
        for entry in pending:
            entry.timer.cancel()
            if not entry.future.done():
                entry.future.set_exception(error)

    def _fail(self, error: WorkerInitError) -> None:
        logger.error("%s", error.message)
        self._failure = error
        self._ready = False
        self._reject_all(error)
        if self._executor is not None and self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None
