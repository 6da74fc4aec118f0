"""Pytest configuration and shared fixtures for all tests."""

import os
import sys
from pathlib import Path

# Minimal environment for tests, set before settings are imported
os.environ.setdefault("API_URL", "http://backend.test")
os.environ.setdefault("SANDBOX_URL", "http://gateway.test")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

# Add project root to PYTHONPATH
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest
from decimal import Decimal
from unittest.mock import AsyncMock

from paydesk.config.settings import Settings
from paydesk.models.payment_item import (
    BankRecipient,
    MobileMoneyRecipient,
    PaymentItem,
    WalletRecipient,
)
from paydesk.services.notification import RecordingNotifier
from paydesk.services.payment_queue import PaymentQueue


@pytest.fixture
def settings():
    """Settings with a known merchant and instant polling."""
    return Settings(
        _env_file=None,
        api_url="http://backend.test",
        sandbox_url="http://gateway.test",
        access_token="test-token",
        user_id="user-1",
        merchant_id="MERCHANT-1",
        merchant_name="Test Merchant",
        bulk_poll_interval_seconds=0,
        bulk_poll_initial_delay_seconds=0,
        bulk_poll_max_attempts=5,
    )


@pytest.fixture
def mock_api():
    """Mock PaymentApiClient."""
    api = AsyncMock()
    api.close = AsyncMock()
    return api


@pytest.fixture
def notifier():
    """Notifier that records every message."""
    return RecordingNotifier()


@pytest.fixture
def mno_recipient():
    return MobileMoneyRecipient(phone_number="256771234567", mno_provider="MTN")


@pytest.fixture
def bank_recipient():
    return BankRecipient(
        account_number="0123456789", bank_code="STANBIC", account_name="Acme Ltd"
    )


@pytest.fixture
def wallet_recipient():
    return WalletRecipient(recipient_phone="256701234567")


@pytest.fixture
def queue(mno_recipient, bank_recipient, wallet_recipient):
    """Queue with items A (mobile money), B (bank) and C (wallet)."""
    queue = PaymentQueue()
    queue.add_item(PaymentItem("A", mno_recipient, Decimal("5000"), "UGX"))
    queue.add_item(PaymentItem("B", bank_recipient, Decimal("120000"), "UGX"))
    queue.add_item(PaymentItem("C", wallet_recipient, Decimal("7500.50"), "UGX"))
    return queue
