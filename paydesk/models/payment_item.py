"""
Payment item model.

One payment instruction in one of three modes. The mode-specific fields
live in a dedicated recipient dataclass per mode, so an item can only
carry the fields that are mandatory for its own rail.
"""

from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation
from enum import StrEnum
from typing import Any, ClassVar, TYPE_CHECKING

if TYPE_CHECKING:
    from paydesk.models.bulk_batch import ItemResult
    from paydesk.models.validation import ValidationResult


class PaymentMode(StrEnum):
    """Rail used to move the funds."""

    WALLET_TO_MNO = "WALLET_TO_MNO"  # Mobile money
    WALLET_TO_BANK = "WALLET_TO_BANK"
    WALLET_TO_WALLET = "WALLET_TO_WALLET"


class PaymentStatus(StrEnum):
    """Client-observed lifecycle state of a payment item."""

    PENDING = "pending"
    PROCESSING = "processing"
    SUCCESS = "success"
    FAILED = "failed"

    @classmethod
    def from_backend(cls, value: str | None) -> "PaymentStatus":
        """
        Map a backend item status to the local status.

        Unknown or missing values are treated as still pending.
        """
        if not value:
            return cls.PENDING
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.PENDING

    @property
    def is_terminal(self) -> bool:
        """Success and Failed never change again."""
        return self in (PaymentStatus.SUCCESS, PaymentStatus.FAILED)


def decimal_to_json(value: Decimal) -> int | float:
    """
    Convert a Decimal amount to a JSON number.

    Raises:
        ValueError: If a fractional amount has no exact float form
    """
    if value == value.to_integral_value():
        return int(value)
    as_float = float(value)
    if Decimal(repr(as_float)) != value:
        raise ValueError(f"Amount {value} cannot be sent without losing precision")
    return as_float


def _compact(payload: dict[str, Any]) -> dict[str, Any]:
    """Drop keys whose value is None."""
    return {k: v for k, v in payload.items() if v is not None}


@dataclass(frozen=True)
class MobileMoneyRecipient:
    """Mobile money wallet (MNO) recipient."""

    mode: ClassVar[PaymentMode] = PaymentMode.WALLET_TO_MNO

    phone_number: str
    mno_provider: str
    recipient_name: str | None = None

    @property
    def display_name(self) -> str:
        return self.recipient_name or self.phone_number

    def with_display_name(self, name: str) -> "MobileMoneyRecipient":
        return replace(self, recipient_name=name)

    def to_payload(self) -> dict[str, Any]:
        return _compact(
            {
                "phoneNumber": self.phone_number,
                "mnoProvider": self.mno_provider,
                "recipientName": self.recipient_name,
            }
        )


@dataclass(frozen=True)
class BankRecipient:
    """Bank account recipient."""

    mode: ClassVar[PaymentMode] = PaymentMode.WALLET_TO_BANK

    account_number: str
    bank_code: str
    account_name: str
    bank_name: str | None = None
    swift_code: str | None = None

    @property
    def display_name(self) -> str:
        return self.account_name

    def with_display_name(self, name: str) -> "BankRecipient":
        return replace(self, account_name=name)

    def to_payload(self) -> dict[str, Any]:
        return _compact(
            {
                "accountNumber": self.account_number,
                "bankSortCode": self.bank_code,
                "accountName": self.account_name,
                "bankName": self.bank_name,
                "swiftCode": self.swift_code,
            }
        )


@dataclass(frozen=True)
class WalletRecipient:
    """Internal wallet recipient, addressed by phone number."""

    mode: ClassVar[PaymentMode] = PaymentMode.WALLET_TO_WALLET

    recipient_phone: str
    recipient_user_id: str | None = None
    recipient_name: str | None = None

    @property
    def display_name(self) -> str:
        return self.recipient_name or self.recipient_phone

    def with_display_name(self, name: str) -> "WalletRecipient":
        return replace(self, recipient_name=name)

    def to_payload(self) -> dict[str, Any]:
        return _compact(
            {
                "recipientPhone": self.recipient_phone,
                "recipientUserId": self.recipient_user_id,
                "recipientName": self.recipient_name,
            }
        )


Recipient = MobileMoneyRecipient | BankRecipient | WalletRecipient


def recipient_from_payload(data: dict[str, Any]) -> Recipient:
    """
    Build the recipient variant from a camelCase instruction dict.

    Args:
        data: Instruction with a `mode` key and its mode-specific fields

    Returns:
        Recipient variant matching the mode

    Raises:
        ValueError: If the mode is unknown or a mandatory field is missing
    """
    try:
        mode = PaymentMode(data.get("mode"))
    except ValueError as e:
        raise ValueError(f"Unsupported payment mode: {data.get('mode')!r}") from e

    def required(key: str) -> str:
        value = data.get(key)
        if value is None or not str(value).strip():
            raise ValueError(f"{key} is required for {mode.value}")
        return str(value).strip()

    if mode is PaymentMode.WALLET_TO_MNO:
        return MobileMoneyRecipient(
            phone_number=required("phoneNumber"),
            mno_provider=required("mnoProvider"),
            recipient_name=data.get("recipientName"),
        )
    if mode is PaymentMode.WALLET_TO_BANK:
        return BankRecipient(
            account_number=required("accountNumber"),
            bank_code=required("bankSortCode"),
            account_name=required("accountName"),
            bank_name=data.get("bankName"),
            swift_code=data.get("swiftCode"),
        )
    return WalletRecipient(
        recipient_phone=required("recipientPhone"),
        recipient_user_id=data.get("recipientUserId"),
        recipient_name=data.get("recipientName"),
    )


@dataclass
class PaymentItem:
    """
    One instruction to move funds.

    `item_id` is the merge key for every later reconciliation and cannot
    be reassigned once set.
    """

    item_id: str
    recipient: Recipient
    amount: Decimal
    currency: str
    description: str | None = None
    reference: str | None = None
    status: PaymentStatus = PaymentStatus.PENDING
    validated: bool = False
    error: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    # Bulk transaction the item was sent in, until that batch is final
    submitted_in: str | None = None
    # Bulk transaction that reported the current final status
    settled_in: str | None = None

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "item_id" and "item_id" in self.__dict__:
            raise AttributeError("item_id is immutable once assigned")
        super().__setattr__(name, value)

    @property
    def mode(self) -> PaymentMode:
        return self.recipient.mode

    @property
    def display_name(self) -> str:
        return self.recipient.display_name

    @property
    def is_in_flight(self) -> bool:
        """Sent in a bulk transaction that has not reached a final status."""
        return self.submitted_in is not None

    @property
    def is_settled(self) -> bool:
        """Paid, or failed with a final status reported by a bulk transaction."""
        if self.status is PaymentStatus.SUCCESS:
            return True
        return self.settled_in is not None and self.status.is_terminal

    @property
    def is_rejected(self) -> bool:
        """Failed the pre-flight validation and was never processed."""
        return self.validated and self.status is PaymentStatus.FAILED and not self.is_settled

    def mark_submitted(self, bulk_transaction_id: str) -> None:
        self.submitted_in = bulk_transaction_id

    def release(self) -> None:
        """The bulk transaction carrying the item is final."""
        self.submitted_in = None

    def apply_validation(self, result: "ValidationResult") -> None:
        """
        Apply a pre-flight validation outcome.

        Only status, error, validated and the display name may change.
        Items in flight or settled by a bulk transaction keep their state.
        """
        if self.is_in_flight or self.is_settled:
            return
        self.validated = True
        if result.is_valid:
            self.status = PaymentStatus.PENDING
            self.error = None
            if result.account_name:
                self.recipient = self.recipient.with_display_name(result.account_name)
        else:
            self.status = PaymentStatus.FAILED
            self.error = result.error

    def apply_result(
        self, result: "ItemResult", bulk_transaction_id: str | None = None
    ) -> None:
        """Overwrite status and error with a backend item result."""
        self.status = result.status
        self.error = result.error_message
        self.settled_in = (
            (bulk_transaction_id or self.submitted_in) if result.status.is_terminal else None
        )

    def reset(self) -> None:
        """Return to the freshly-added state (used after an edit or a retry)."""
        self.status = PaymentStatus.PENDING
        self.validated = False
        self.error = None
        self.settled_in = None

    def to_payload(self, wallet_type: str | None = None) -> dict[str, Any]:
        """
        Serialize to the backend instruction shape.

        Args:
            wallet_type: Wallet to debit, omitted for validation requests

        Returns:
            camelCase dict ready to be sent as JSON
        """
        payload: dict[str, Any] = {
            "itemId": self.item_id,
            "mode": self.mode.value,
            "amount": decimal_to_json(self.amount),
            "currency": self.currency,
            "description": self.description,
            "reference": self.reference,
            "walletType": wallet_type,
        }
        payload.update(self.recipient.to_payload())
        if self.metadata:
            payload["metadata"] = dict(self.metadata)
        return _compact(payload)

    @classmethod
    def from_payload(
        cls, data: dict[str, Any], item_id: str, default_currency: str
    ) -> "PaymentItem":
        """
        Build an item from a camelCase instruction dict.

        Raises:
            ValueError: If the mode, amount or a mandatory field is invalid
        """
        try:
            amount = Decimal(str(data.get("amount")))
        except (InvalidOperation, ValueError) as e:
            raise ValueError(f"Invalid amount: {data.get('amount')!r}") from e
        if not amount.is_finite() or amount <= 0:
            raise ValueError("Amount must be greater than zero")

        return cls(
            item_id=item_id,
            recipient=recipient_from_payload(data),
            amount=amount,
            currency=data.get("currency") or default_currency,
            description=data.get("description") or None,
            reference=data.get("reference") or None,
            metadata=dict(data.get("metadata") or {}),
        )
