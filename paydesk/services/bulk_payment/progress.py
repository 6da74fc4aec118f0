"""
Bulk Payment - Progress Module.

Module: progress.py
Derives aggregate progress of a bulk transaction from the polled
snapshots and builds the final operator summary.
"""

from dataclasses import dataclass, replace
from decimal import ROUND_HALF_UP, Decimal

from paydesk.models.bulk_batch import BulkTransactionBatch
from paydesk.services.notification import NotificationLevel


@dataclass(frozen=True)
class ProgressStats:
    """Progress of one bulk transaction as shown to the operator."""

    total: int = 0
    successful: int = 0
    failed: int = 0
    pending: int = 0
    percentage: int = 0

    @property
    def processed(self) -> int:
        return self.successful + self.failed


def completion_percentage(processed: int, total: int) -> int:
    """
    Share of processed items, rounded half up, bounded to [0, 100].

    Examples:
        >>> completion_percentage(1, 3)
        33
        >>> completion_percentage(1, 8)
        13
        >>> completion_percentage(0, 0)
        0
    """
    if total <= 0:
        return 0
    value = (Decimal(100) * processed / total).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return max(0, min(100, int(value)))


class ProgressAggregator:
    """
    Keeps the progress of one tracked bulk transaction.

    The percentage never goes backwards for the same handle even if a
    later snapshot reports fewer processed items.
    """

    def __init__(self, total: int = 0) -> None:
        self._stats = ProgressStats()
        self.reset(total)

    @property
    def stats(self) -> ProgressStats:
        return self._stats

    def reset(self, total: int) -> ProgressStats:
        """Initial progress right after submission: everything pending."""
        self._stats = ProgressStats(total=total, pending=total)
        return self._stats

    def update(self, batch: BulkTransactionBatch) -> ProgressStats:
        """
        Recompute progress from a snapshot.

        Args:
            batch: Latest polled snapshot

        Returns:
            New progress stats
        """
        percentage = completion_percentage(
            batch.processed_transactions, batch.total_transactions
        )
        self._stats = replace(
            self._stats,
            total=batch.total_transactions,
            successful=batch.successful_transactions,
            failed=batch.failed_transactions,
            pending=batch.pending_transactions,
            percentage=max(self._stats.percentage, percentage),
        )
        return self._stats


def build_summary(successful: int, failed: int, total: int) -> tuple[NotificationLevel, str]:
    """
    Final summary message of a finished bulk transaction.

    Returns:
        Tuple of (level, message)
    """
    if total > 0 and successful == total:
        return NotificationLevel.SUCCESS, f"All {successful} payments completed successfully!"
    if successful > 0:
        return NotificationLevel.WARNING, f"{successful} succeeded, {failed} failed"
    return NotificationLevel.ERROR, f"All {failed} payments failed"
