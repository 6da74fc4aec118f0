"""
Shared fixtures for unit tests.

This module provides common fixtures used across multiple test modules:
- Backend snapshot factory
- StatusPoller instance over the shared queue
"""

import pytest

from paydesk.models.bulk_batch import BulkTransactionBatch
from paydesk.services.bulk_payment.poller import StatusPoller


@pytest.fixture
def make_batch():
    """
    Build a BulkTransactionBatch the way the status endpoint returns it.

    Returns:
        Callable taking status, counts and (item_id, status[, error]) results
    """

    def _make(
        status: str,
        successful: int = 0,
        failed: int = 0,
        total: int = 3,
        results: list[tuple] | None = None,
        bulk_id: str = "BULK-1",
    ) -> BulkTransactionBatch:
        transaction_results = []
        for result in results or []:
            entry = {"itemId": result[0], "status": result[1]}
            if len(result) > 2:
                entry["errorMessage"] = result[2]
            transaction_results.append(entry)
        return BulkTransactionBatch.from_response(
            {
                "bulkTransactionId": bulk_id,
                "status": status,
                "totalTransactions": total,
                "successfulTransactions": successful,
                "failedTransactions": failed,
                "pendingTransactions": total - successful - failed,
                "transactionResults": transaction_results,
            }
        )

    return _make


@pytest.fixture
def poller(mock_api, queue, notifier, settings):
    """StatusPoller without delays limited to 5 polls."""
    return StatusPoller(mock_api, queue, notifier, settings)
