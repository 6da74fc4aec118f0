"""
Security utilities for masking sensitive data in logs.

Provides functions to safely mask recipient identifiers:
- Phone numbers
- Bank account numbers
- Access tokens
"""


def mask_phone(phone: str | None) -> str:
    """
    Mask phone number for logging: 2567...4567

    Args:
        phone: Phone number to mask

    Returns:
        Masked number showing first 4 and last 4 characters

    Examples:
        >>> mask_phone("256771234567")
        '2567...4567'
        >>> mask_phone(None)
        '***'
    """
    if not phone or len(phone) < 9:
        return "***"
    return f"{phone[:4]}...{phone[-4:]}"


def mask_account(account: str | None) -> str:
    """
    Mask bank account number, only the last 4 digits are kept.

    Examples:
        >>> mask_account("0123456789")
        '******6789'
        >>> mask_account("123")
        '***'
    """
    if not account or len(account) <= 4:
        return "***"
    return "*" * (len(account) - 4) + account[-4:]


def mask_sensitive(value: str | None, show_chars: int = 4) -> str:
    """
    Mask sensitive string (tokens, keys).

    Args:
        value: Sensitive value to mask
        show_chars: Number of characters to show at start and end

    Returns:
        Masked value or '***' if too short

    Examples:
        >>> mask_sensitive("my_secret_token_1234567890", show_chars=4)
        'my_s...7890'
        >>> mask_sensitive("short")
        '***'
    """
    if not value or len(value) <= show_chars * 2:
        return "***"
    return f"{value[:show_chars]}...{value[-show_chars:]}"
