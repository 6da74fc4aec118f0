"""
Services.

Bulk orchestration, recipient validation, the payment queue and the single
transfer flow.
"""

from paydesk.services.bulk_payment import BulkPaymentService, SubmissionOptions
from paydesk.services.notification import (
    Notification,
    NotificationLevel,
    Notifier,
    RecordingNotifier,
)
from paydesk.services.payment_queue import PaymentQueue
from paydesk.services.recipient_validator import RecipientValidator
from paydesk.services.single_payment import SingleTransactionConfirmFlow

__all__ = [
    "BulkPaymentService",
    "Notification",
    "NotificationLevel",
    "Notifier",
    "PaymentQueue",
    "RecipientValidator",
    "RecordingNotifier",
    "SingleTransactionConfirmFlow",
    "SubmissionOptions",
]
