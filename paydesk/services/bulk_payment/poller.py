"""
Bulk Payment - Status Poller Module.

Module: poller.py
Follows a submitted bulk transaction until the backend reports a terminal
status or the attempt limit is reached.

State per bulk transaction id:
    IDLE -> SCHEDULED -> POLLING -> DONE | TIMED_OUT

Each tick fetches one snapshot, recomputes progress and merges the item
results into the payment queue by item id. Ticks of one handle never
overlap and only one loop per handle may be active at a time.
Submitted items stay in flight until the batch is final; a timeout
keeps them in flight so they cannot be sent again.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum

from loguru import logger

from paydesk.clients.payment_api import PaymentApiClient
from paydesk.config.settings import Settings, get_settings
from paydesk.models.bulk_batch import BulkTransactionBatch
from paydesk.services.bulk_payment.progress import (
    ProgressAggregator,
    ProgressStats,
    build_summary,
)
from paydesk.services.notification import Notifier
from paydesk.services.payment_queue import PaymentQueue
from paydesk.utils.exceptions import PollError, PollTimeoutError, TrackingConflictError, is_transient

ProgressCallback = Callable[[ProgressStats, BulkTransactionBatch], None]


class PollState(StrEnum):
    """Tracking state of one bulk transaction."""

    IDLE = "idle"
    SCHEDULED = "scheduled"
    POLLING = "polling"
    DONE = "done"
    TIMED_OUT = "timed_out"
    STOPPED = "stopped"  # Loop ended without a verdict (cancelled or crashed)


@dataclass
class BulkTracking:
    """Live tracking record of one bulk transaction."""

    bulk_transaction_id: str
    progress: ProgressAggregator
    state: PollState = PollState.IDLE
    attempts: int = 0
    last_batch: BulkTransactionBatch | None = None
    last_error: PollError | None = None
    timeout_error: PollTimeoutError | None = None
    history: list[ProgressStats] = field(default_factory=list)

    @property
    def stats(self) -> ProgressStats:
        return self.progress.stats

    @property
    def is_active(self) -> bool:
        return self.state in (PollState.SCHEDULED, PollState.POLLING)


class StatusPoller:
    """Polls bulk transaction status and reconciles the payment queue."""

    def __init__(
        self,
        api: PaymentApiClient,
        queue: PaymentQueue,
        notifier: Notifier | None = None,
        settings: Settings | None = None,
        interval: float | None = None,
        initial_delay: float | None = None,
        max_attempts: int | None = None,
    ) -> None:
        """
        Initialize poller.

        Args:
            api: Payment backend client
            queue: Payment queue receiving the item results
            notifier: Operator notifier
            settings: Settings providing the poll defaults
            interval: Seconds between two ticks
            initial_delay: Seconds before the first tick
            max_attempts: Ticks before giving up
        """
        settings = settings or get_settings()
        self.api = api
        self.queue = queue
        self.notifier = notifier or Notifier()
        self.interval = (
            settings.bulk_poll_interval_seconds if interval is None else interval
        )
        self.initial_delay = (
            settings.bulk_poll_initial_delay_seconds
            if initial_delay is None
            else initial_delay
        )
        self.max_attempts = (
            settings.bulk_poll_max_attempts if max_attempts is None else max_attempts
        )
        self._lock = asyncio.Lock()
        self._tracking: dict[str, BulkTracking] = {}
        self._tasks: dict[str, asyncio.Task] = {}

    def get_tracking(self, bulk_transaction_id: str) -> BulkTracking | None:
        return self._tracking.get(bulk_transaction_id)

    def is_tracking(self, bulk_transaction_id: str) -> bool:
        tracking = self._tracking.get(bulk_transaction_id)
        return tracking is not None and tracking.is_active

    async def _claim(self, bulk_transaction_id: str, total: int) -> BulkTracking:
        """Register a fresh tracking record, refusing overlapping loops."""
        async with self._lock:
            if self.is_tracking(bulk_transaction_id):
                raise TrackingConflictError(
                    f"Bulk transaction {bulk_transaction_id} is already being tracked"
                )
            tracking = BulkTracking(
                bulk_transaction_id=bulk_transaction_id,
                progress=ProgressAggregator(total),
                state=PollState.SCHEDULED,
            )
            tracking.history.append(tracking.stats)
            self._tracking[bulk_transaction_id] = tracking
            self.queue.lock(bulk_transaction_id)
            return tracking

    async def track(
        self,
        bulk_transaction_id: str,
        total: int,
        on_progress: ProgressCallback | None = None,
    ) -> BulkTracking:
        """
        Track a bulk transaction until it finishes or times out.

        Args:
            bulk_transaction_id: Handle returned by the submission
            total: Number of submitted items, used until the backend reports one
            on_progress: Called after every successful tick

        Returns:
            Final tracking record (state DONE or TIMED_OUT)

        Raises:
            TrackingConflictError: If a loop for this handle is already active
        """
        tracking = await self._claim(bulk_transaction_id, total)
        return await self._run(tracking, on_progress)

    async def start(
        self,
        bulk_transaction_id: str,
        total: int,
        on_progress: ProgressCallback | None = None,
    ) -> BulkTracking:
        """
        Start tracking in the background.

        Returns:
            Tracking record, updated in place as ticks complete
        """
        tracking = await self._claim(bulk_transaction_id, total)
        task = asyncio.create_task(self._run(tracking, on_progress))
        task.add_done_callback(self._handle_task_done)
        self._tasks[bulk_transaction_id] = task
        return tracking

    async def wait(self, bulk_transaction_id: str) -> BulkTracking | None:
        """Wait for a background loop to finish."""
        task = self._tasks.get(bulk_transaction_id)
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        return self._tracking.get(bulk_transaction_id)

    async def shutdown(self) -> None:
        """Cancel all background loops."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        for tracking in self._tracking.values():
            if tracking.is_active:
                tracking.state = PollState.STOPPED
        self.queue.unlock()

    def _handle_task_done(self, task: asyncio.Task) -> None:
        """Handle errors from background poll tasks."""
        for bulk_id, known in list(self._tasks.items()):
            if known is task:
                del self._tasks[bulk_id]
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.opt(exception=exc).error(f"Background bulk poll task failed: {exc}")

    async def _run(
        self, tracking: BulkTracking, on_progress: ProgressCallback | None
    ) -> BulkTracking:
        bulk_id = tracking.bulk_transaction_id
        logger.info(
            f"Tracking bulk {bulk_id}: first poll in {self.initial_delay}s, "
            f"every {self.interval}s, at most {self.max_attempts} polls"
        )
        try:
            await asyncio.sleep(self.initial_delay)
            tracking.state = PollState.POLLING

            while tracking.attempts < self.max_attempts:
                tracking.attempts += 1
                batch = await self._fetch(tracking)

                if batch is not None:
                    self._apply(tracking, batch)
                    if on_progress is not None:
                        on_progress(tracking.stats, batch)
                    if batch.is_terminal:
                        await self._finish(tracking, batch)
                        return tracking

                if tracking.attempts < self.max_attempts:
                    await asyncio.sleep(self.interval)

            await self._time_out(tracking)
            return tracking

        except asyncio.CancelledError:
            tracking.state = PollState.STOPPED
            logger.warning(f"Tracking of bulk {bulk_id} stopped after {tracking.attempts} poll(s)")
            raise
        except Exception:
            tracking.state = PollState.STOPPED
            raise
        finally:
            if self.queue.locked_by == bulk_id:
                self.queue.unlock()

    async def _fetch(self, tracking: BulkTracking) -> BulkTransactionBatch | None:
        """One poll; transient failures count as an empty tick."""
        try:
            return await self.api.get_bulk_status(
                tracking.bulk_transaction_id, fallback_total=tracking.stats.total
            )
        except Exception as e:
            if not is_transient(e):
                raise
            message = getattr(e, "message", None) or str(e) or PollError.default_message
            tracking.last_error = PollError(message)
            logger.warning(
                f"Poll {tracking.attempts}/{self.max_attempts} of bulk "
                f"{tracking.bulk_transaction_id} failed: {message}"
            )
            return None

    def _apply(self, tracking: BulkTracking, batch: BulkTransactionBatch) -> None:
        """
        Apply a snapshot to progress and queue.

        Runs without awaiting, so readers see the queue either before or
        after the whole merge.
        """
        tracking.last_batch = batch
        tracking.last_error = None
        stats = tracking.progress.update(batch)
        tracking.history.append(stats)
        merged = self.queue.apply_results(
            batch.transaction_results, tracking.bulk_transaction_id
        )
        logger.info(
            f"Bulk {batch.bulk_transaction_id} poll {tracking.attempts}: "
            f"{batch.status.value}, {stats.successful} ok, {stats.failed} failed, "
            f"{stats.pending} pending ({stats.percentage}%), {merged} item(s) updated"
        )

    async def _finish(self, tracking: BulkTracking, batch: BulkTransactionBatch) -> None:
        tracking.state = PollState.DONE
        self.queue.release_batch(tracking.bulk_transaction_id)
        level, message = build_summary(
            batch.successful_transactions,
            batch.failed_transactions,
            batch.total_transactions,
        )
        logger.info(f"Bulk {batch.bulk_transaction_id} finished with {batch.status.value}")
        await self.notifier.notify(level, message, batch.bulk_transaction_id)

    async def _time_out(self, tracking: BulkTracking) -> None:
        tracking.state = PollState.TIMED_OUT
        tracking.timeout_error = PollTimeoutError(
            tracking.bulk_transaction_id, tracking.attempts
        )
        logger.warning(
            f"Bulk {tracking.bulk_transaction_id} not finished after "
            f"{tracking.attempts} poll(s), last known progress kept"
        )
        await self.notifier.warning(
            tracking.timeout_error.message, tracking.bulk_transaction_id
        )
