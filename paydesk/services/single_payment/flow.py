"""
Single transfer flow.

Module: flow.py
Two-phase validate-then-confirm state machine for one-off transfers:

    FORM_ENTRY -> VALIDATING -> AWAITING_CONFIRMATION -> CONFIRMING
        -> COMPLETED | FAILED

A transfer is only ever executed against the snapshot captured by the
preceding successful validation.
"""

from dataclasses import replace

from loguru import logger

from paydesk.clients.payment_api import PaymentApiClient
from paydesk.config.settings import Settings, get_settings
from paydesk.models.payment_item import PaymentMode
from paydesk.models.single_payment import (
    ConfirmationSnapshot,
    FlowState,
    TransferReceipt,
    TransferRequest,
)
from paydesk.services.notification import Notifier
from paydesk.services.single_payment.handlers import TransferHandler, build_handlers
from paydesk.utils.exceptions import (
    ConfirmationError,
    FlowStateError,
    PaymentApiError,
    ValidationError,
)
from paydesk.validators.payment_fields import validate_amount


class SingleTransactionConfirmFlow:
    """Validate-then-confirm flow of one transfer at a time."""

    def __init__(
        self,
        api: PaymentApiClient | None = None,
        notifier: Notifier | None = None,
        settings: Settings | None = None,
        handlers: dict[PaymentMode, TransferHandler] | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.api = api or PaymentApiClient(self.settings)
        self.notifier = notifier or Notifier()
        self.handlers = handlers or build_handlers(self.api, self.settings)
        self.logger = logger.bind(service=self.__class__.__name__)

        self.state = FlowState.FORM_ENTRY
        self.snapshot: ConfirmationSnapshot | None = None
        self.receipt: TransferReceipt | None = None
        self.last_error: str | None = None

    def _require(self, *states: FlowState) -> None:
        if self.state not in states:
            raise FlowStateError(
                f"Cannot do this while the transfer is {self.state.value}"
            )

    def _handler(self, mode: PaymentMode) -> TransferHandler:
        handler = self.handlers.get(mode)
        if handler is None:
            raise ValidationError(f"Unsupported transaction type: {mode.value}")
        return handler

    async def validate(self, request: TransferRequest) -> ConfirmationSnapshot:
        """
        Validate the recipient and capture the confirmation snapshot.

        Args:
            request: Transfer as entered by the operator

        Returns:
            Snapshot to show the operator before confirming

        Raises:
            FlowStateError: If a transfer is being validated, awaits
                confirmation or is being executed
            ValidationError: If a local check or the gateway rejected it;
                the flow is back in FORM_ENTRY
        """
        self._require(FlowState.FORM_ENTRY, FlowState.FAILED, FlowState.COMPLETED)
        self.snapshot = None
        self.receipt = None
        self.last_error = None

        handler = self._handler(request.mode)
        is_valid, amount, error = validate_amount(request.amount)
        if is_valid:
            request = replace(request, amount=amount)
            error = handler.check(request)
        if error:
            self.state = FlowState.FORM_ENTRY
            self.last_error = error
            raise ValidationError(error)

        self.state = FlowState.VALIDATING
        try:
            snapshot = await handler.validate(request)
        except (ValidationError, PaymentApiError) as e:
            self.state = FlowState.FORM_ENTRY
            self.last_error = e.message
            self.logger.warning(f"{request.mode.value} validation failed: {e.message}")
            await self.notifier.error(e.message)
            raise ValidationError(e.message) from e
        except BaseException:
            self.state = FlowState.FORM_ENTRY
            raise

        self.snapshot = snapshot
        self.state = FlowState.AWAITING_CONFIRMATION
        self.logger.info(
            f"{snapshot.mode.value} transfer of {snapshot.amount} to "
            f"{snapshot.account_name} awaiting confirmation"
        )
        return snapshot

    def cancel(self) -> None:
        """Discard the snapshot and return to the form. No backend call."""
        self._require(FlowState.AWAITING_CONFIRMATION)
        self.snapshot = None
        self.state = FlowState.FORM_ENTRY

    async def confirm(self) -> TransferReceipt:
        """
        Execute the transfer captured by the last validation.

        Returns:
            Receipt of the executed transfer

        Raises:
            FlowStateError: If there is no validated transfer awaiting confirmation
            ConfirmationError: If the gateway rejected the transfer; the
                snapshot is discarded and the transfer must be validated again
        """
        self._require(FlowState.AWAITING_CONFIRMATION)
        snapshot = self.snapshot
        if snapshot is None:
            raise FlowStateError("No validated transfer to confirm")

        self.state = FlowState.CONFIRMING
        try:
            receipt = await self._handler(snapshot.mode).execute(snapshot)
        except (ConfirmationError, PaymentApiError, ValidationError) as e:
            await self._fail(e.message)
            raise ConfirmationError(e.message) from e
        except BaseException:
            self.state = FlowState.FAILED
            self.snapshot = None
            raise

        self.state = FlowState.COMPLETED
        self.snapshot = None
        self.receipt = receipt
        self.logger.info(
            f"{snapshot.mode.value} transfer completed, reference {receipt.txn_reference}"
        )
        await self.notifier.success(
            f"Transaction completed successfully! Reference: {receipt.txn_reference}"
        )
        return receipt

    async def _fail(self, message: str) -> None:
        self.state = FlowState.FAILED
        self.snapshot = None
        self.last_error = message
        self.logger.error(f"Transfer rejected: {message}")
        await self.notifier.error(message)

    def reset(self) -> None:
        """Back to an empty form."""
        if self.state in (FlowState.VALIDATING, FlowState.CONFIRMING):
            raise FlowStateError("Cannot reset while a backend call is in progress")
        self.state = FlowState.FORM_ENTRY
        self.snapshot = None
        self.receipt = None
        self.last_error = None
