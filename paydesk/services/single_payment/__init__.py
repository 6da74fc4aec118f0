"""
Single Payment Service.

Module Structure:
- handlers.py: Per-mode validate / execute adapters
- flow.py: Validate-then-confirm state machine

Public Interface:
- SingleTransactionConfirmFlow: Main flow class
"""

from .flow import SingleTransactionConfirmFlow
from .handlers import (
    BankTransferHandler,
    MobileMoneyTransferHandler,
    TransferHandler,
    WalletTransferHandler,
    build_handlers,
)

__all__ = [
    "BankTransferHandler",
    "MobileMoneyTransferHandler",
    "SingleTransactionConfirmFlow",
    "TransferHandler",
    "WalletTransferHandler",
    "build_handlers",
]
