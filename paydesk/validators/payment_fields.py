"""
Payment field validators.

Local checks run before an instruction enters the payment queue. They do
not replace the backend validation, they only reject obviously
incomplete instructions.

Each validator returns a tuple of (is_valid, parsed_value, error_message)
or (is_valid, error_message).
"""

import re
from decimal import Decimal, InvalidOperation

from paydesk.config.constants import (
    COUNTRY_CALLING_CODE,
    DEFAULT_MNO_PROVIDER,
    MNO_PROVIDERS,
)
from paydesk.models.payment_item import (
    BankRecipient,
    MobileMoneyRecipient,
    Recipient,
    WalletRecipient,
)

MAX_AMOUNT_DECIMALS = 2
# Largest digit count a JSON number carries exactly
MAX_AMOUNT_DIGITS = 15


def validate_amount(value: str | int | float | Decimal | None) -> tuple[bool, Decimal | None, str | None]:
    """
    Validate a payment amount.

    Args:
        value: Raw amount as typed or loaded

    Returns:
        Tuple of (is_valid, parsed_amount, error_message)

    Examples:
        >>> validate_amount("1500")
        (True, Decimal('1500'), None)
        >>> validate_amount("")
        (False, None, 'Amount is required')
        >>> validate_amount("-5")
        (False, None, 'Amount must be greater than zero')
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return False, None, "Amount is required"

    try:
        amount = Decimal(str(value).strip().replace(",", ""))
    except (InvalidOperation, ValueError):
        return False, None, "Amount must be a number"

    if not amount.is_finite():
        return False, None, "Amount must be a number"

    if amount <= 0:
        return False, None, "Amount must be greater than zero"

    exponent = amount.as_tuple().exponent
    if isinstance(exponent, int) and -exponent > MAX_AMOUNT_DECIMALS:
        return False, None, f"Amount cannot have more than {MAX_AMOUNT_DECIMALS} decimal places"

    if len(amount.normalize().as_tuple().digits) > MAX_AMOUNT_DIGITS:
        return False, None, "Amount is too large"

    return True, amount, None


def validate_recipient(recipient: Recipient) -> tuple[bool, str | None]:
    """
    Check the mandatory fields of a recipient for its mode.

    Args:
        recipient: Recipient variant

    Returns:
        Tuple of (is_valid, error_message)
    """
    if isinstance(recipient, MobileMoneyRecipient):
        if not recipient.phone_number.strip() or not recipient.mno_provider.strip():
            return False, "Phone number and network are required for mobile money"
        return True, None

    if isinstance(recipient, BankRecipient):
        if (
            not recipient.account_number.strip()
            or not recipient.bank_code.strip()
            or not recipient.account_name.strip()
        ):
            return False, "Account number, bank, and account name are required for bank transfer"
        return True, None

    if isinstance(recipient, WalletRecipient):
        if not recipient.recipient_phone.strip():
            return False, "Recipient phone is required for wallet transfer"
        return True, None

    raise TypeError(f"Unsupported recipient type: {type(recipient).__name__}")


def format_phone_number(phone: str) -> str:
    """
    Normalize a phone number to the international form without '+'.

    A leading 0 is replaced by the country code, a number without the
    country code gets it prepended.

    Examples:
        >>> format_phone_number("0771 234-567")
        '256771234567'
        >>> format_phone_number("+256771234567")
        '256771234567'
        >>> format_phone_number("771234567")
        '256771234567'
    """
    cleaned = re.sub(r"\D", "", phone or "")
    if cleaned.startswith("0"):
        return COUNTRY_CALLING_CODE + cleaned[1:]
    if not cleaned.startswith(COUNTRY_CALLING_CODE):
        return COUNTRY_CALLING_CODE + cleaned
    return cleaned


def normalize_mno_provider(provider: str | None) -> str:
    """
    Normalize a mobile network name to the spelling the gateway accepts.

    Unknown or empty providers fall back to the default network.

    Examples:
        >>> normalize_mno_provider("airtel")
        'Airtel'
        >>> normalize_mno_provider(" mtn ")
        'MTN'
        >>> normalize_mno_provider(None)
        'MTN'
    """
    if provider:
        normalized = provider.strip()
        for known in MNO_PROVIDERS:
            if normalized.upper() == known.upper():
                return known
    return DEFAULT_MNO_PROVIDER
