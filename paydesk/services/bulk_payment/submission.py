"""
Bulk Payment - Submission Module.

Module: submission.py
Turns the payment items into one bulk submission request and obtains the
bulk transaction id from the backend. Payments themselves are executed by
the backend.
"""

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from loguru import logger

from paydesk.clients.payment_api import PaymentApiClient
from paydesk.config.constants import DEFAULT_BULK_DESCRIPTION
from paydesk.config.settings import Settings, get_settings
from paydesk.models.payment_item import PaymentItem, PaymentStatus
from paydesk.services.base_service import BaseService, log_operation
from paydesk.services.notification import Notifier
from paydesk.utils.exceptions import PaymentApiError, SubmissionError
from paydesk.utils.identifiers import generate_bulk_reference


@dataclass(frozen=True)
class SubmissionOptions:
    """Backend execution options; they do not change anything locally."""

    process_in_parallel: bool = True
    stop_on_first_failure: bool = False


class BulkSubmissionCoordinator(BaseService):
    """Submits payment items as one bulk transaction."""

    def __init__(
        self,
        api: PaymentApiClient,
        notifier: Notifier | None = None,
        settings: Settings | None = None,
    ) -> None:
        super().__init__(api, notifier)
        self.settings = settings or get_settings()

    def build_request(
        self,
        items: list[PaymentItem],
        options: SubmissionOptions,
        user_id: str,
        description: str | None = None,
        reference: str | None = None,
    ) -> dict[str, Any]:
        """Build the bulk submission body."""
        return {
            "userId": user_id,
            "transactions": [
                item.to_payload(wallet_type=self.settings.wallet_type) for item in items
            ],
            "description": description or DEFAULT_BULK_DESCRIPTION,
            "reference": reference or generate_bulk_reference(),
            "processInParallel": options.process_in_parallel,
            "stopOnFirstFailure": options.stop_on_first_failure,
        }

    @staticmethod
    def select_items(items: Iterable[PaymentItem]) -> list[PaymentItem]:
        """
        Pick the items that go into the batch.

        Left out so that nothing is paid twice: items that already
        succeeded and items still carried by an unfinished bulk transaction.
        Items rejected by the pre-flight validation are left out as well.

        Raises:
            SubmissionError: If nothing is left to submit or ids are not unique
        """
        items = list(items)
        duplicates = [
            item_id
            for item_id, count in Counter(item.item_id for item in items).items()
            if count > 1
        ]
        if duplicates:
            raise SubmissionError(f"Duplicate payment item ids: {', '.join(duplicates)}")

        in_flight = sorted({item.submitted_in for item in items if item.is_in_flight})
        selected = [
            item
            for item in items
            if item.status is not PaymentStatus.SUCCESS
            and not item.is_in_flight
            and not item.is_rejected
        ]
        if not selected:
            if in_flight:
                raise SubmissionError(
                    f"Payments are still being processed in bulk {', '.join(in_flight)}, "
                    f"track it until it finishes"
                )
            raise SubmissionError("No payments to process")
        if in_flight:
            logger.warning(
                f"Payments of unfinished bulk {', '.join(in_flight)} left out of the batch"
            )
        return selected

    @log_operation
    async def submit(
        self,
        items: Iterable[PaymentItem],
        options: SubmissionOptions | None = None,
        description: str | None = None,
        reference: str | None = None,
        user_id: str | None = None,
    ) -> str:
        """
        Submit a bulk transaction.

        Args:
            items: Payment items to submit
            options: Backend execution options
            description: Batch description (defaults to "Bulk payment")
            reference: Batch reference (generated when absent)
            user_id: Paying user (defaults to the configured user)

        Returns:
            Bulk transaction id

        Raises:
            SubmissionError: If the batch was not accepted; items are left untouched
        """
        selected = self.select_items(items)
        user_id = user_id or self.settings.user_id
        if not user_id:
            raise SubmissionError("User not authenticated")

        request = self.build_request(
            selected, options or SubmissionOptions(), user_id, description, reference
        )

        try:
            batch = await self.api.process_bulk_async(request, fallback_total=len(selected))
        except PaymentApiError as e:
            self.logger.error(f"Bulk submission failed: {e.message}")
            await self.notifier.error(e.message)
            raise SubmissionError(e.message) from e

        for item in selected:
            item.mark_submitted(batch.bulk_transaction_id)
        self.logger.info(
            f"Bulk transaction {batch.bulk_transaction_id} queued "
            f"with {len(selected)} item(s), reference {request['reference']}"
        )
        return batch.bulk_transaction_id
