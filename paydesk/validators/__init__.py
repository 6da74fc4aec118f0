"""
Validators.

Exports local payment field validators.
"""

from paydesk.validators.payment_fields import (
    format_phone_number,
    normalize_mno_provider,
    validate_amount,
    validate_recipient,
)

__all__ = [
    "format_phone_number",
    "normalize_mno_provider",
    "validate_amount",
    "validate_recipient",
]
