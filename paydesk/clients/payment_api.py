"""
Payment backend API client.

Async HTTP client for the bulk transaction endpoints of the payment
backend and for the disbursement gateways used by single transfers.

Every failed call raises PaymentApiError carrying the backend message
when one is available.
"""

from decimal import Decimal
from typing import Any

import aiohttp
from loguru import logger

from paydesk.config.constants import (
    BANK_CASH_DEPOSIT_PATH,
    BULK_LIST_PATH,
    BULK_PROCESS_ASYNC_PATH,
    BULK_RETRY_PATH,
    BULK_STATUS_PATH,
    BULK_VALIDATE_PATH,
    GATEWAY_STATUS_FAILED,
    SEND_MOBILE_MONEY_PATH,
    VALIDATE_BANK_ACCOUNT_PATH,
    VALIDATE_PHONE_PATH,
    VERIFY_WALLET_CUSTOMER_PATH,
    WALLET_TRANSFER_PATH,
)
from paydesk.config.settings import Settings, get_settings
from paydesk.models.bulk_batch import BatchPage, BulkTransactionBatch
from paydesk.models.payment_item import decimal_to_json
from paydesk.models.validation import ValidationSummary
from paydesk.utils.exceptions import PaymentApiError
from paydesk.utils.security import mask_account, mask_phone, mask_sensitive

TIMEOUT_MESSAGE = "Request timed out. Please try again."


class PaymentApiClient:
    """
    Client for the payment backend.

    Uses:
    - Backend URL for bulk validation, submission, status and listing
    - Sandbox gateway for mobile money and bank single transfers
    - Wallet gateway for internal wallet single transfers
    """

    def __init__(
        self,
        settings: Settings | None = None,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        """
        Initialize payment API client.

        Args:
            settings: Settings to read URLs and credentials from
            session: Externally owned aiohttp session (not closed by us)
        """
        self.settings = settings or get_settings()
        self.base_url = self.settings.backend_url
        self.sandbox_url = self.settings.sandbox_url.rstrip("/")
        self.wallet_url = self.settings.wallet_gateway_url
        self.timeout = aiohttp.ClientTimeout(total=self.settings.request_timeout_seconds)
        self._session = session
        self._owns_session = session is None
        logger.debug(
            f"Payment API client for {self.base_url or '<unset>'} "
            f"(token {mask_sensitive(self.settings.access_token)})"
        )

    async def __aenter__(self) -> "PaymentApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the underlying session if this client created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.settings.access_token:
            headers["Authorization"] = f"Bearer {self.settings.access_token}"
        return headers

    @staticmethod
    def _extract_message(data: Any, fallback: str) -> str:
        """Pick the most specific error message of a response body."""
        if isinstance(data, dict):
            for key in ("message", "error", "errorMessage"):
                value = data.get(key)
                if isinstance(value, list) and value:
                    return "; ".join(str(v) for v in value)
                if value:
                    return str(value)
        return fallback

    async def _request(
        self,
        method: str,
        url: str,
        *,
        fallback_message: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Perform one HTTP call and return the decoded JSON body.

        Args:
            method: HTTP method
            url: Absolute URL
            fallback_message: Message used when the backend gives none
            json: JSON body
            params: Query parameters

        Returns:
            Decoded response body

        Raises:
            PaymentApiError: On transport error, timeout or HTTP status >= 400
        """
        try:
            session = await self._get_session()
            async with session.request(
                method,
                url,
                json=json,
                params=params,
                headers=self._headers(),
                timeout=self.timeout,
            ) as response:
                try:
                    data = await response.json(content_type=None)
                except ValueError:
                    data = {"message": (await response.text()).strip() or None}

                if response.status >= 400:
                    message = self._extract_message(data, fallback_message)
                    logger.warning(f"{method} {url} failed: HTTP {response.status}: {message}")
                    raise PaymentApiError(message, status_code=response.status)

                if not isinstance(data, dict):
                    raise PaymentApiError(fallback_message, status_code=response.status)
                return data

        except TimeoutError as e:
            logger.error(f"{method} {url} timed out")
            raise PaymentApiError(TIMEOUT_MESSAGE) from e
        except aiohttp.ClientError as e:
            logger.error(f"{method} {url} failed: {e}")
            raise PaymentApiError(fallback_message) from e

    # ------------------------------------------------------------------
    # Bulk transactions
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_batch(
        data: dict[str, Any], fallback_total: int | None = None
    ) -> BulkTransactionBatch:
        """Parse a batch body; a malformed body is reported like a failed call."""
        try:
            return BulkTransactionBatch.from_response(data, fallback_total)
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Malformed bulk transaction response: {e}")
            raise PaymentApiError(f"Invalid bulk transaction response: {e}") from e

    async def validate_bulk_recipients(
        self, items: list[dict[str, Any]]
    ) -> ValidationSummary:
        """Validate bulk recipients before payment."""
        logger.info(f"Validating {len(items)} bulk recipient(s)")
        data = await self._request(
            "POST",
            f"{self.base_url}{BULK_VALIDATE_PATH}",
            json={"items": items},
            fallback_message="Failed to validate bulk recipients",
        )
        return ValidationSummary.from_response(data)

    async def process_bulk_async(
        self, request: dict[str, Any], fallback_total: int | None = None
    ) -> BulkTransactionBatch:
        """Queue a bulk transaction for background processing."""
        logger.info(
            f"Submitting bulk transaction with "
            f"{len(request.get('transactions', []))} item(s), "
            f"reference {request.get('reference')}"
        )
        data = await self._request(
            "POST",
            f"{self.base_url}{BULK_PROCESS_ASYNC_PATH}",
            json=request,
            fallback_message="Failed to process bulk transaction",
        )
        return self._parse_batch(data, fallback_total)

    async def get_bulk_status(
        self, bulk_transaction_id: str, fallback_total: int | None = None
    ) -> BulkTransactionBatch:
        """Fetch the current snapshot of a bulk transaction."""
        data = await self._request(
            "GET",
            f"{self.base_url}{BULK_STATUS_PATH.format(bulk_transaction_id=bulk_transaction_id)}",
            fallback_message="Failed to fetch bulk transaction status",
        )
        data.setdefault("bulkTransactionId", bulk_transaction_id)
        return self._parse_batch(data, fallback_total)

    async def retry_failed_transactions(
        self, bulk_transaction_id: str, item_ids: list[str] | None = None
    ) -> BulkTransactionBatch:
        """Ask the backend to re-run failed items of a bulk transaction."""
        logger.info(
            f"Retrying failed items of bulk {bulk_transaction_id}: "
            f"{item_ids if item_ids else 'all'}"
        )
        data = await self._request(
            "POST",
            f"{self.base_url}{BULK_RETRY_PATH.format(bulk_transaction_id=bulk_transaction_id)}",
            json={"itemIds": item_ids},
            fallback_message="Failed to retry transactions",
        )
        data.setdefault("bulkTransactionId", bulk_transaction_id)
        return self._parse_batch(data)

    async def list_bulk_transactions(
        self,
        page: int = 1,
        limit: int = 10,
        status: str | None = None,
        user_id: str | None = None,
    ) -> BatchPage:
        """Get one page of bulk transactions."""
        params = {"page": page, "limit": limit, "status": status, "userId": user_id}
        data = await self._request(
            "GET",
            f"{self.base_url}{BULK_LIST_PATH}",
            params={k: v for k, v in params.items() if v is not None},
            fallback_message="Failed to fetch bulk transactions",
        )
        return BatchPage.from_response(data)

    # ------------------------------------------------------------------
    # Single transfers
    # ------------------------------------------------------------------

    def _check_gateway_status(self, data: dict[str, Any], fallback: str) -> dict[str, Any]:
        """Gateway reports business failures with status 0 and HTTP 200."""
        if data.get("status") == GATEWAY_STATUS_FAILED:
            raise PaymentApiError(self._extract_message(data, fallback))
        return data

    async def validate_phone_number(
        self, phone_number: str, amount: Decimal
    ) -> dict[str, Any]:
        """Resolve the name registered to a mobile money number."""
        logger.info(f"Validating mobile money number {mask_phone(phone_number)}")
        data = await self._request(
            "POST",
            f"{self.sandbox_url}{VALIDATE_PHONE_PATH}",
            json={"phoneNumber": phone_number, "amount": decimal_to_json(amount)},
            fallback_message="Failed to validate phone number",
        )
        return self._check_gateway_status(data, "Phone number validation failed")

    async def validate_bank_account(
        self, account_number: str, amount: Decimal, bank_sort_code: str
    ) -> dict[str, Any]:
        """Resolve the holder name of a bank account."""
        logger.info(f"Validating bank account {mask_account(account_number)}")
        data = await self._request(
            "POST",
            f"{self.sandbox_url}{VALIDATE_BANK_ACCOUNT_PATH}",
            json={
                "accountNumber": account_number,
                "amount": decimal_to_json(amount),
                "bankSortCode": bank_sort_code,
            },
            fallback_message="Failed to validate bank account",
        )
        return self._check_gateway_status(data, "Bank account validation failed")

    async def verify_wallet_customer(self, phone_number: str) -> dict[str, Any]:
        """Resolve the wallet holder registered to a phone number."""
        logger.info(f"Verifying wallet customer {mask_phone(phone_number)}")
        data = await self._request(
            "POST",
            f"{self.wallet_url}{VERIFY_WALLET_CUSTOMER_PATH}",
            json={"phoneNumber": phone_number},
            fallback_message="Failed to validate wallet account",
        )
        if data.get("res") == GATEWAY_STATUS_FAILED or not data.get("customerDetails"):
            raise PaymentApiError(
                self._extract_message(data, "Wallet account validation failed")
            )
        return data

    async def send_mobile_money(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Execute a mobile money disbursement."""
        logger.info(
            f"Sending mobile money to {mask_phone(payload.get('phoneNumber'))}, "
            f"amount {payload.get('amount')}"
        )
        return await self._request(
            "POST",
            f"{self.sandbox_url}{SEND_MOBILE_MONEY_PATH}",
            json=payload,
            fallback_message="Failed to send mobile money",
        )

    async def bank_cash_deposit(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Execute a bank cash deposit."""
        logger.info(
            f"Depositing to bank account {mask_account(payload.get('accountNumber'))}, "
            f"amount {payload.get('amount')}"
        )
        return await self._request(
            "POST",
            f"{self.sandbox_url}{BANK_CASH_DEPOSIT_PATH}",
            json=payload,
            fallback_message="Failed to complete bank payment",
        )

    async def wallet_transfer(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Execute an internal wallet transfer."""
        logger.info(
            f"Transferring to wallet {mask_phone(payload.get('receiverPhone'))}, "
            f"amount {payload.get('amount')}"
        )
        return await self._request(
            "POST",
            f"{self.wallet_url}{WALLET_TRANSFER_PATH}",
            json=payload,
            fallback_message="Failed to complete wallet transfer",
        )
