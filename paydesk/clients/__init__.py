"""Backend clients."""

from paydesk.clients.payment_api import PaymentApiClient

__all__ = ["PaymentApiClient"]
