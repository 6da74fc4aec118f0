"""
Bulk Payment Service - Main Module.

This module orchestrates bulk payments: recipient pre-flight, batch
submission and status reconciliation of the payment queue.

Module Structure:
- submission.py: Bulk submission request building and handle retrieval
- progress.py: Progress statistics and final summary
- poller.py: Status polling state machine and queue reconciliation

Public Interface:
- BulkPaymentService: Main service class
"""

from loguru import logger

from paydesk.clients.payment_api import PaymentApiClient
from paydesk.config.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from paydesk.config.settings import Settings, get_settings
from paydesk.models.bulk_batch import BatchPage
from paydesk.models.payment_item import PaymentStatus
from paydesk.models.validation import ValidationSummary
from paydesk.services.notification import Notifier
from paydesk.services.payment_queue import PaymentQueue
from paydesk.services.recipient_validator import RecipientValidator
from paydesk.utils.exceptions import PaymentApiError, SubmissionError, ValidationError

from .poller import BulkTracking, PollState, ProgressCallback, StatusPoller
from .progress import ProgressAggregator, ProgressStats, build_summary
from .submission import BulkSubmissionCoordinator, SubmissionOptions


class BulkPaymentService:
    """
    Bulk payment orchestration.

    Owns the payment queue and wires the validator, the submission
    coordinator and the status poller around it.
    """

    def __init__(
        self,
        api: PaymentApiClient | None = None,
        queue: PaymentQueue | None = None,
        notifier: Notifier | None = None,
        settings: Settings | None = None,
        poll_interval: float | None = None,
        poll_initial_delay: float | None = None,
        poll_max_attempts: int | None = None,
    ) -> None:
        """Initialize bulk payment service."""
        self.settings = settings or get_settings()
        self.api = api or PaymentApiClient(self.settings)
        self.queue = queue if queue is not None else PaymentQueue()
        self.notifier = notifier or Notifier()

        # Initialize all components
        self.validator = RecipientValidator(self.api, self.notifier)
        self.coordinator = BulkSubmissionCoordinator(
            self.api, self.notifier, self.settings
        )
        self.poller = StatusPoller(
            self.api,
            self.queue,
            self.notifier,
            self.settings,
            interval=poll_interval,
            initial_delay=poll_initial_delay,
            max_attempts=poll_max_attempts,
        )

    async def validate(self) -> ValidationSummary:
        """
        Pre-flight the queued payments.

        Raises:
            ValidationError: While a bulk transaction is being tracked
        """
        if self.queue.is_locked:
            raise ValidationError(
                f"Payments are being processed in bulk {self.queue.locked_by}, "
                f"validate once tracking has ended"
            )
        return await self.validator.validate(self.queue)

    async def submit(
        self,
        options: SubmissionOptions | None = None,
        description: str | None = None,
        reference: str | None = None,
        user_id: str | None = None,
    ) -> str:
        """
        Submit the queue as one bulk transaction and start tracking it.

        Tracking runs in the background; use `wait` or `submit_and_track`
        to block until it ends.

        Returns:
            Bulk transaction id

        Raises:
            SubmissionError: If the batch was not accepted; nothing is tracked
        """
        total = len(self.coordinator.select_items(self.queue))
        bulk_id = await self.coordinator.submit(
            self.queue, options, description, reference, user_id
        )
        await self.notifier.success(
            f"Bulk payment queued! Processing {total} transactions in background.",
            bulk_id,
        )
        await self.poller.start(bulk_id, total)
        return bulk_id

    async def submit_and_track(
        self,
        options: SubmissionOptions | None = None,
        description: str | None = None,
        reference: str | None = None,
        user_id: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> BulkTracking:
        """Submit the queue and wait until tracking ends."""
        total = len(self.coordinator.select_items(self.queue))
        bulk_id = await self.coordinator.submit(
            self.queue, options, description, reference, user_id
        )
        await self.notifier.success(
            f"Bulk payment queued! Processing {total} transactions in background.",
            bulk_id,
        )
        return await self.poller.track(bulk_id, total, on_progress)

    async def resume_tracking(
        self,
        bulk_transaction_id: str,
        total: int | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> BulkTracking:
        """
        Track a bulk transaction again with a fresh attempt limit.

        Used after a poll timeout or for a handle obtained elsewhere.

        Raises:
            TrackingConflictError: If the handle is still being tracked
        """
        if total is None:
            previous = self.poller.get_tracking(bulk_transaction_id)
            total = previous.stats.total if previous else len(self.queue)
        logger.info(f"Resuming tracking of bulk {bulk_transaction_id}")
        return await self.poller.track(bulk_transaction_id, total, on_progress)

    async def retry_failed(
        self,
        bulk_transaction_id: str,
        item_ids: list[str] | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> BulkTracking:
        """
        Re-run failed items of a bulk transaction and track it again.

        Args:
            bulk_transaction_id: Bulk transaction to retry
            item_ids: Items to retry, all failed items when omitted

        Raises:
            SubmissionError: If the backend refused the retry
        """
        try:
            batch = await self.api.retry_failed_transactions(bulk_transaction_id, item_ids)
        except PaymentApiError as e:
            await self.notifier.error(e.message, bulk_transaction_id)
            raise SubmissionError(e.message) from e

        retried = item_ids or [
            item.item_id
            for item in self.queue
            if item.status is PaymentStatus.FAILED and not item.is_rejected
        ]
        self.queue.reset_items(retried)
        self.queue.mark_submitted(retried, bulk_transaction_id)
        await self.notifier.info(
            f"Retrying {len(retried) if retried else 'failed'} payment(s)",
            bulk_transaction_id,
        )
        return await self.poller.track(
            bulk_transaction_id, batch.total_transactions or len(self.queue), on_progress
        )

    async def wait(self, bulk_transaction_id: str) -> BulkTracking | None:
        """Wait for background tracking of a bulk transaction to end."""
        return await self.poller.wait(bulk_transaction_id)

    def get_tracking(self, bulk_transaction_id: str) -> BulkTracking | None:
        return self.poller.get_tracking(bulk_transaction_id)

    async def list_batches(
        self,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        status: str | None = None,
    ) -> BatchPage:
        """Get one page of the user's bulk transactions."""
        return await self.api.list_bulk_transactions(
            page=max(page, 1),
            limit=max(1, min(limit, MAX_PAGE_SIZE)),
            status=status,
            user_id=self.settings.user_id,
        )

    async def close(self) -> None:
        """Stop background tracking and release the HTTP session."""
        await self.poller.shutdown()
        await self.api.close()


__all__ = [
    "BulkPaymentService",
    "BulkSubmissionCoordinator",
    "BulkTracking",
    "PollState",
    "ProgressAggregator",
    "ProgressStats",
    "StatusPoller",
    "SubmissionOptions",
    "build_summary",
]
