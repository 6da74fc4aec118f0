"""Per-mode adapters of the single transfer flow.

Each handler knows how to pre-check, validate and execute a one-off
transfer on its rail. Validation produces the confirmation snapshot;
execution only ever reads that snapshot.
"""

import re
from abc import ABC, abstractmethod
from typing import Any, ClassVar

from paydesk.clients.payment_api import PaymentApiClient
from paydesk.config.constants import DEFAULT_NARRATION, GATEWAY_STATUS_OK
from paydesk.config.settings import Settings, get_settings
from paydesk.models.payment_item import (
    BankRecipient,
    MobileMoneyRecipient,
    PaymentMode,
    WalletRecipient,
    decimal_to_json,
)
from paydesk.models.single_payment import (
    ConfirmationSnapshot,
    TransferReceipt,
    TransferRequest,
)
from paydesk.utils.exceptions import ConfirmationError, ValidationError
from paydesk.validators.payment_fields import (
    format_phone_number,
    normalize_mno_provider,
)

__all__ = [
    "TransferHandler",
    "MobileMoneyTransferHandler",
    "BankTransferHandler",
    "WalletTransferHandler",
    "build_handlers",
    "is_gateway_success",
]

CUSTOMER_PHONE_PATTERN = re.compile(r"^0?7\d{8}$")
MERCHANT_MISSING_MESSAGE = "Merchant ID not found. Please try logging in again."
PAYMENT_FAILED_MESSAGE = "Payment failed. Please try again."


def is_gateway_success(data: dict[str, Any]) -> bool:
    """Gateways report success as status 1 (wallet gateway: res 1)."""
    return data.get("status") == GATEWAY_STATUS_OK or data.get("res") == GATEWAY_STATUS_OK


class TransferHandler(ABC):
    """Abstract base class for single transfer handlers.

    Attributes:
        api: Payment backend client.
        settings: Settings providing merchant identity and currency.
    """

    mode: ClassVar[PaymentMode]

    def __init__(self, api: PaymentApiClient, settings: Settings | None = None) -> None:
        self.api = api
        self.settings = settings or get_settings()

    @abstractmethod
    def check(self, request: TransferRequest) -> str | None:
        """Local form check.

        Returns:
            Error message, or None when the request may be validated.
        """

    @abstractmethod
    async def validate(self, request: TransferRequest) -> ConfirmationSnapshot:
        """Resolve the recipient and freeze the confirmation snapshot.

        Raises:
            ValidationError: If the gateway did not resolve the recipient.
            PaymentApiError: If the gateway call failed.
        """

    @abstractmethod
    def build_payload(self, snapshot: ConfirmationSnapshot, merchant_id: str) -> dict[str, Any]:
        """Build the execute request from the snapshot."""

    @abstractmethod
    async def send(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Issue the execute call."""

    async def execute(self, snapshot: ConfirmationSnapshot) -> TransferReceipt:
        """Execute the transfer described by the snapshot.

        Raises:
            ConfirmationError: If the gateway rejected the transfer.
            PaymentApiError: If the gateway call failed.
        """
        merchant_id = self.settings.merchant_id
        if not merchant_id:
            raise ConfirmationError(MERCHANT_MISSING_MESSAGE)

        data = await self.send(self.build_payload(snapshot, merchant_id))
        if not is_gateway_success(data):
            raise ConfirmationError(data.get("message") or PAYMENT_FAILED_MESSAGE)
        return TransferReceipt.from_response(data, snapshot.reference or None)

    @staticmethod
    def _resolved(data: dict[str, Any], name: str | None, fallback: str) -> str:
        if not is_gateway_success(data) or not name:
            raise ValidationError(data.get("message") or fallback)
        return str(name)


class MobileMoneyTransferHandler(TransferHandler):
    """Mobile money disbursement."""

    mode = PaymentMode.WALLET_TO_MNO

    def check(self, request: TransferRequest) -> str | None:
        recipient = request.recipient
        if not isinstance(recipient, MobileMoneyRecipient) or not recipient.phone_number.strip():
            return "Phone number is required for mobile money"
        return None

    async def validate(self, request: TransferRequest) -> ConfirmationSnapshot:
        recipient = request.recipient
        phone = format_phone_number(recipient.phone_number)
        data = await self.api.validate_phone_number(phone, request.amount)
        name = self._resolved(
            data,
            (data.get("data") or {}).get("name"),
            "Could not resolve the mobile money account name",
        )
        return ConfirmationSnapshot(
            account_name=name,
            reference=data.get("txnReference") or "",
            amount=request.amount,
            recipient=MobileMoneyRecipient(
                phone_number=phone,
                mno_provider=normalize_mno_provider(recipient.mno_provider),
                recipient_name=name,
            ),
            narration=request.narration,
            currency=request.currency,
        )

    def build_payload(self, snapshot: ConfirmationSnapshot, merchant_id: str) -> dict[str, Any]:
        return {
            "phoneNumber": snapshot.recipient.phone_number,
            "amount": decimal_to_json(snapshot.amount),
            "narration": snapshot.narration or DEFAULT_NARRATION,
            "merchantId": merchant_id,
            "merchantName": self.settings.merchant_name,
        }

    async def send(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self.api.send_mobile_money(payload)


class BankTransferHandler(TransferHandler):
    """Bank cash deposit."""

    mode = PaymentMode.WALLET_TO_BANK

    def check(self, request: TransferRequest) -> str | None:
        recipient = request.recipient
        if (
            not isinstance(recipient, BankRecipient)
            or not recipient.account_number.strip()
            or not recipient.bank_code.strip()
        ):
            return "Account number and bank are required for bank transfer"
        if not request.customer_phone or not CUSTOMER_PHONE_PATTERN.match(request.customer_phone):
            return "Please enter a valid customer phone number (e.g., 0748123456)"
        return None

    async def validate(self, request: TransferRequest) -> ConfirmationSnapshot:
        recipient = request.recipient
        data = await self.api.validate_bank_account(
            recipient.account_number, request.amount, recipient.bank_code
        )
        name = self._resolved(
            data, data.get("accountName"), "Could not resolve the bank account name"
        )
        return ConfirmationSnapshot(
            account_name=name,
            reference=data.get("txnReference") or "",
            amount=request.amount,
            recipient=recipient.with_display_name(name),
            narration=request.narration,
            customer_phone=request.customer_phone,
            currency=request.currency,
        )

    def build_payload(self, snapshot: ConfirmationSnapshot, merchant_id: str) -> dict[str, Any]:
        if not snapshot.customer_phone:
            raise ConfirmationError("Missing required bank payment data")
        recipient = snapshot.recipient
        return {
            "accountNumber": recipient.account_number,
            "amount": decimal_to_json(snapshot.amount),
            "bankSortCode": recipient.bank_code,
            "purposeOfTransaction": "",
            "sourceOfFunds": "",
            # Local format, no country code
            "customerPhoneNumber": snapshot.customer_phone,
            "narration": snapshot.narration,
            "merchantId": merchant_id,
            "merchantName": self.settings.merchant_name,
        }

    async def send(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self.api.bank_cash_deposit(payload)


class WalletTransferHandler(TransferHandler):
    """Internal wallet transfer."""

    mode = PaymentMode.WALLET_TO_WALLET

    def check(self, request: TransferRequest) -> str | None:
        recipient = request.recipient
        if not isinstance(recipient, WalletRecipient) or not recipient.recipient_phone.strip():
            return "Recipient phone is required for wallet transfer"
        return None

    @staticmethod
    def _customer_name(details: dict[str, Any]) -> str | None:
        name = details.get("name") or details.get("fullName")
        if name:
            return name
        parts = [details.get("firstName"), details.get("lastName")]
        return " ".join(p for p in parts if p) or None

    async def validate(self, request: TransferRequest) -> ConfirmationSnapshot:
        recipient = request.recipient
        phone = format_phone_number(recipient.recipient_phone)
        data = await self.api.verify_wallet_customer(phone)
        details = data.get("customerDetails") or {}
        name = self._customer_name(details)
        if not name:
            raise ValidationError(data.get("message") or "Could not resolve the wallet holder name")
        return ConfirmationSnapshot(
            account_name=name,
            reference=data.get("txnReference") or "",
            amount=request.amount,
            recipient=WalletRecipient(
                recipient_phone=phone,
                recipient_user_id=details.get("userId") or recipient.recipient_user_id,
                recipient_name=name,
            ),
            narration=request.narration,
            currency=request.currency,
        )

    def build_payload(self, snapshot: ConfirmationSnapshot, merchant_id: str) -> dict[str, Any]:
        return {
            "receiverPhone": snapshot.recipient.recipient_phone,
            "amount": decimal_to_json(snapshot.amount),
            "narration": snapshot.narration or DEFAULT_NARRATION,
            "merchantId": merchant_id,
            "currency": snapshot.currency or self.settings.default_currency,
        }

    async def send(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self.api.wallet_transfer(payload)


def build_handlers(
    api: PaymentApiClient, settings: Settings | None = None
) -> dict[PaymentMode, TransferHandler]:
    """One handler per payment mode."""
    handler_classes: tuple[type[TransferHandler], ...] = (
        MobileMoneyTransferHandler,
        BankTransferHandler,
        WalletTransferHandler,
    )
    return {cls.mode: cls(api, settings) for cls in handler_classes}
