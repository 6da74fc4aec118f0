"""
Single transfer models.

State of the validate-then-confirm flow, the frozen confirmation
snapshot and the transfer receipt.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import StrEnum
from typing import Any

from paydesk.models.payment_item import PaymentMode, Recipient


class FlowState(StrEnum):
    """States of the single transfer flow."""

    FORM_ENTRY = "form_entry"
    VALIDATING = "validating"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    CONFIRMING = "confirming"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class TransferRequest:
    """Instruction typed by the operator for a one-off transfer."""

    recipient: Recipient
    amount: Decimal
    narration: str | None = None
    customer_phone: str | None = None  # Bank deposits only
    currency: str | None = None

    @property
    def mode(self) -> PaymentMode:
        return self.recipient.mode


@dataclass(frozen=True)
class ConfirmationSnapshot:
    """
    Data captured by a successful validation.

    The confirm step executes against this snapshot only, never against
    the live form.
    """

    account_name: str
    reference: str
    amount: Decimal
    recipient: Recipient
    narration: str | None = None
    customer_phone: str | None = None
    currency: str | None = None

    @property
    def mode(self) -> PaymentMode:
        return self.recipient.mode


@dataclass(frozen=True)
class TransferReceipt:
    """Outcome of an executed transfer."""

    status: int
    message: str | None
    txn_reference: str | None

    @classmethod
    def from_response(
        cls, data: dict[str, Any], fallback_reference: str | None = None
    ) -> "TransferReceipt":
        return cls(
            status=int(data.get("status") or data.get("res") or 0),
            message=data.get("message"),
            txn_reference=data.get("txnReference") or fallback_reference,
        )
