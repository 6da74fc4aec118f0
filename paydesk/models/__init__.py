"""
Domain models.

Exports the payment item, bulk batch, validation and single transfer
models.
"""

from paydesk.models.bulk_batch import (
    TERMINAL_BATCH_STATUSES,
    BatchPage,
    BatchStatus,
    BulkTransactionBatch,
    ItemResult,
)
from paydesk.models.payment_item import (
    BankRecipient,
    MobileMoneyRecipient,
    PaymentItem,
    PaymentMode,
    PaymentStatus,
    Recipient,
    WalletRecipient,
)
from paydesk.models.single_payment import (
    ConfirmationSnapshot,
    FlowState,
    TransferReceipt,
    TransferRequest,
)
from paydesk.models.validation import ValidationResult, ValidationSummary

__all__ = [
    "TERMINAL_BATCH_STATUSES",
    "BankRecipient",
    "BatchPage",
    "BatchStatus",
    "BulkTransactionBatch",
    "ConfirmationSnapshot",
    "FlowState",
    "ItemResult",
    "MobileMoneyRecipient",
    "PaymentItem",
    "PaymentMode",
    "PaymentStatus",
    "Recipient",
    "TransferReceipt",
    "TransferRequest",
    "ValidationResult",
    "ValidationSummary",
    "WalletRecipient",
]
