"""
Bulk transaction batch model.

The server-side aggregate of a bulk submission. It is only ever observed
through the backend responses and never mutated locally.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import StrEnum
from typing import Any

from loguru import logger

from paydesk.models.payment_item import PaymentStatus


class BatchStatus(StrEnum):
    """Backend status of a bulk transaction."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"  # Reported by older backends, not terminal
    PARTIAL_SUCCESS = "PARTIAL_SUCCESS"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"

    @classmethod
    def from_backend(cls, value: str | None) -> "BatchStatus":
        """Parse a backend status, unknown values count as still processing."""
        if not value:
            return cls.PENDING
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            logger.warning(f"Unknown bulk status {value!r}, treating as PROCESSING")
            return cls.PROCESSING

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_BATCH_STATUSES


TERMINAL_BATCH_STATUSES = frozenset(
    {BatchStatus.SUCCESS, BatchStatus.FAILED, BatchStatus.PARTIAL_SUCCESS}
)


def _first(data: dict[str, Any], *keys: str) -> Any:
    """Return the first non-None value among keys."""
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def _as_int(value: Any) -> int:
    try:
        return max(int(value), 0)
    except (TypeError, ValueError):
        return 0


def _as_decimal(value: Any) -> Decimal | None:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


@dataclass(frozen=True)
class ItemResult:
    """Backend outcome of one item of a bulk batch."""

    item_id: str
    status: PaymentStatus
    error_message: str | None = None
    transaction_id: str | None = None
    amount: Decimal | None = None
    currency: str | None = None
    external_reference: str | None = None
    processed_at: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ItemResult":
        return cls(
            item_id=str(data["itemId"]),
            status=PaymentStatus.from_backend(data.get("status")),
            error_message=_first(data, "errorMessage", "error"),
            transaction_id=data.get("transactionId"),
            amount=_as_decimal(data.get("amount")),
            currency=data.get("currency"),
            external_reference=data.get("externalReference"),
            processed_at=data.get("processedAt"),
        )


@dataclass(frozen=True)
class BulkTransactionBatch:
    """
    One observed snapshot of a bulk batch.

    Counts always satisfy successful + failed + pending == total.
    """

    bulk_transaction_id: str
    status: BatchStatus
    total_transactions: int
    successful_transactions: int
    failed_transactions: int
    pending_transactions: int
    transaction_results: tuple[ItemResult, ...] = ()
    total_amount: Decimal | None = None
    currency: str | None = None
    error_message: str | None = None
    created_at: str | None = None
    completed_at: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def processed_transactions(self) -> int:
        return self.successful_transactions + self.failed_transactions

    @classmethod
    def from_response(
        cls, data: dict[str, Any], fallback_total: int | None = None
    ) -> "BulkTransactionBatch":
        """
        Build a snapshot from a submit or status response.

        Reads both the current and the legacy field names. Counts are
        normalized so that the pending count closes the sum; the total
        falls back to `fallback_total` when the backend omits it.

        Args:
            data: Backend response body
            fallback_total: Local item count used when no total is reported

        Returns:
            Normalized BulkTransactionBatch
        """
        bulk_id = data.get("bulkTransactionId")
        if not bulk_id:
            raise ValueError("Response does not contain a bulkTransactionId")

        successful = _as_int(_first(data, "successfulTransactions", "successfulItems"))
        failed = _as_int(_first(data, "failedTransactions", "failedItems"))
        reported_pending = _first(data, "pendingTransactions", "pendingItems")
        reported_total = _as_int(_first(data, "totalTransactions", "totalItems"))
        total = reported_total or (fallback_total or 0)

        if successful + failed > total:
            logger.warning(
                f"Bulk {bulk_id}: processed count {successful + failed} "
                f"exceeds total {total}, widening total"
            )
            total = successful + failed

        pending = total - successful - failed
        if reported_pending is not None and _as_int(reported_pending) != pending:
            logger.debug(
                f"Bulk {bulk_id}: reported pending {reported_pending} "
                f"normalized to {pending}"
            )

        raw_results = _first(data, "transactionResults", "results") or []
        results = tuple(
            ItemResult.from_dict(r)
            for r in raw_results
            if isinstance(r, dict) and r.get("itemId")
        )

        return cls(
            bulk_transaction_id=str(bulk_id),
            status=BatchStatus.from_backend(data.get("status")),
            total_transactions=total,
            successful_transactions=successful,
            failed_transactions=failed,
            pending_transactions=pending,
            transaction_results=results,
            total_amount=_as_decimal(data.get("totalAmount")),
            currency=data.get("currency"),
            error_message=data.get("errorMessage"),
            created_at=data.get("createdAt"),
            completed_at=data.get("completedAt"),
        )


@dataclass(frozen=True)
class BatchPage:
    """One page of the bulk transaction listing."""

    bulk_transactions: list[BulkTransactionBatch] = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 0
    total_pages: int = 0

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> "BatchPage":
        batches = [
            BulkTransactionBatch.from_response(b)
            for b in data.get("bulkTransactions") or []
            if isinstance(b, dict) and b.get("bulkTransactionId")
        ]
        return cls(
            bulk_transactions=batches,
            total=_as_int(data.get("total")),
            page=_as_int(data.get("page")) or 1,
            limit=_as_int(data.get("limit")),
            total_pages=_as_int(data.get("totalPages")),
        )
