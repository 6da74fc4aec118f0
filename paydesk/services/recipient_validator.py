"""
Recipient validator.

Pre-flights a list of payment items against the backend before they are
submitted. The backend reports a per-item outcome; local items are only
touched once the whole call has succeeded.
"""

from collections.abc import Iterable

from paydesk.models.payment_item import PaymentItem
from paydesk.models.validation import ValidationSummary
from paydesk.services.base_service import BaseService, log_operation
from paydesk.utils.exceptions import PaymentApiError, ValidationError


class RecipientValidator(BaseService):
    """Validates payment recipients through the bulk validation endpoint."""

    @log_operation
    async def validate(self, items: Iterable[PaymentItem]) -> ValidationSummary:
        """
        Validate items and record the outcome on each of them.

        Valid items stay pending and adopt the resolved account name;
        invalid items become failed with the backend error. Sibling items
        are not affected by each other's outcome. Items settled by a bulk
        transaction (paid or finally failed) or still in flight are not sent.

        Args:
            items: Payment items (a PaymentQueue works too)

        Returns:
            ValidationSummary returned by the backend

        Raises:
            ValidationError: If there is nothing to validate or the call failed;
                no item is modified in that case
        """
        by_id = {}
        skipped = 0
        for item in items:
            if item.is_in_flight or item.is_settled:
                skipped += 1
                continue
            by_id[item.item_id] = item
        if skipped:
            self.logger.info(f"{skipped} processed or in-flight payment(s) not validated")
        if not by_id:
            raise ValidationError("No payments to validate")

        # walletType is only needed for processing
        payload = [item.to_payload() for item in by_id.values()]

        try:
            summary = await self.api.validate_bulk_recipients(payload)
        except PaymentApiError as e:
            self.logger.error(f"Bulk validation failed: {e.message}")
            await self.notifier.error(e.message)
            raise ValidationError(e.message) from e

        for result in summary.results:
            item = by_id.get(result.item_id)
            if item is None:
                self.logger.warning(f"Validation result for unknown item {result.item_id} ignored")
                continue
            item.apply_validation(result)

        await self._notify_summary(summary)
        return summary

    async def _notify_summary(self, summary: ValidationSummary) -> None:
        if summary.all_valid:
            await self.notifier.success(
                f"All {summary.valid_items} recipients validated successfully!"
            )
        elif summary.valid_items > 0:
            await self.notifier.warning(
                f"{summary.valid_items} valid, {summary.invalid_items} invalid"
            )
        else:
            await self.notifier.error(
                f"All {summary.invalid_items} recipients failed validation"
            )
