"""
Application constants.

Centralized constants for the payment desk.
"""

# ========================================================================
# BULK PAYMENT POLLING
# ========================================================================

BULK_POLL_INTERVAL_SECONDS = 5.0  # Delay between two status ticks
BULK_POLL_INITIAL_DELAY_SECONDS = 2.0  # Delay before the first tick
BULK_POLL_MAX_ATTEMPTS = 60  # 60 ticks * 5s ~= 5 minutes

# ========================================================================
# BACKEND API
# ========================================================================

API_REQUEST_TIMEOUT_SECONDS = 60.0

# Bulk transaction endpoints (relative to backend URL)
BULK_VALIDATE_PATH = "/transactions/bulk/validate"
BULK_PROCESS_ASYNC_PATH = "/transactions/bulk/async"
BULK_LIST_PATH = "/transactions/bulk"
BULK_STATUS_PATH = "/transactions/bulk/{bulk_transaction_id}"
BULK_RETRY_PATH = "/transactions/bulk/{bulk_transaction_id}/retry"

# Single transaction endpoints (relative to sandbox / wallet URL)
VALIDATE_PHONE_PATH = "/abc/secure/mobile-money/validate-phone-number"
VALIDATE_BANK_ACCOUNT_PATH = "/abc/secure/bank/validate-account"
SEND_MOBILE_MONEY_PATH = "/abc/secure/merchant/mobile-money/post-disbursement-transaction"
BANK_CASH_DEPOSIT_PATH = "/abc/secure/merchant/bank/cash-deposit"
VERIFY_WALLET_CUSTOMER_PATH = "/subscriber/verify-customer-phone"
WALLET_TRANSFER_PATH = "/hapi/secure/customer-sending-money"

# Gateway status codes for single transactions
GATEWAY_STATUS_OK = 1
GATEWAY_STATUS_FAILED = 0

# ========================================================================
# IDENTIFIERS & DEFAULTS
# ========================================================================

ITEM_ID_PREFIX = "ITEM"
BULK_REFERENCE_PREFIX = "BULK"
DEFAULT_BULK_DESCRIPTION = "Bulk payment"
DEFAULT_NARRATION = "Payment"
DEFAULT_CURRENCY = "UGX"
DEFAULT_WALLET_TYPE = "BUSINESS"
DEFAULT_GEOGRAPHIC_REGION = "UG"

# ========================================================================
# MOBILE MONEY
# ========================================================================

COUNTRY_CALLING_CODE = "256"
MNO_PROVIDERS = ("MTN", "Airtel")
DEFAULT_MNO_PROVIDER = "MTN"

# ========================================================================
# LISTING
# ========================================================================

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
