"""
Payment queue.

The single owned store of payment items, keyed by item id. The operator
may add, edit and remove items until the queue is handed to a bulk
submission; from then on only the orchestration core mutates it (by merging
validation and status results) until tracking ends.
"""

from collections.abc import Iterable, Iterator
from decimal import Decimal
from typing import Any

from loguru import logger

from paydesk.models.bulk_batch import ItemResult
from paydesk.models.payment_item import PaymentItem, PaymentStatus, Recipient
from paydesk.utils.exceptions import QueueError, ValidationError
from paydesk.utils.identifiers import ItemIdGenerator
from paydesk.validators.payment_fields import validate_amount, validate_recipient


class PaymentQueue:
    """Ordered store of payment items keyed by item id."""

    def __init__(self, id_generator: ItemIdGenerator | None = None) -> None:
        self._items: dict[str, PaymentItem] = {}
        # Ids ever handed out, removed ones included, so they are never reused
        self._issued_ids: set[str] = set()
        self._id_generator = id_generator or ItemIdGenerator()
        self._locked_by: str | None = None

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[PaymentItem]:
        return iter(list(self._items.values()))

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def __getitem__(self, item_id: str) -> PaymentItem:
        try:
            return self._items[item_id]
        except KeyError:
            raise QueueError(f"Unknown payment item {item_id}") from None

    @property
    def is_locked(self) -> bool:
        """True while a submitted batch owns the queue."""
        return self._locked_by is not None

    @property
    def locked_by(self) -> str | None:
        return self._locked_by

    def lock(self, bulk_transaction_id: str) -> None:
        """Hand the queue to a submitted batch."""
        self._locked_by = bulk_transaction_id

    def unlock(self) -> None:
        self._locked_by = None

    def _ensure_editable(self) -> None:
        if self._locked_by is not None:
            raise QueueError(
                f"Payments are being processed in bulk {self._locked_by}, "
                f"the list cannot be changed"
            )

    def get(self, item_id: str) -> PaymentItem | None:
        return self._items.get(item_id)

    def items(self) -> list[PaymentItem]:
        return list(self._items.values())

    def item_ids(self) -> list[str]:
        return list(self._items)

    def _claim_id(self, item_id: str | None) -> str:
        if item_id is None:
            item_id = self._id_generator.next_id()
            while item_id in self._issued_ids:
                item_id = self._id_generator.next_id()
        elif item_id in self._issued_ids:
            raise QueueError(f"Item id {item_id} has already been used")
        self._issued_ids.add(item_id)
        return item_id

    @staticmethod
    def _check_fields(recipient: Recipient, amount: Any) -> Decimal:
        is_valid, parsed, error = validate_amount(amount)
        if not is_valid:
            raise ValidationError(error)
        is_valid, error = validate_recipient(recipient)
        if not is_valid:
            raise ValidationError(error)
        return parsed

    def add(
        self,
        recipient: Recipient,
        amount: Decimal | str | int,
        currency: str,
        description: str | None = None,
        reference: str | None = None,
        metadata: dict[str, Any] | None = None,
        item_id: str | None = None,
    ) -> PaymentItem:
        """
        Add a new payment.

        Raises:
            ValidationError: If the amount or a mandatory recipient field is missing
            QueueError: If the queue is locked or the item id was already used
        """
        self._ensure_editable()
        parsed_amount = self._check_fields(recipient, amount)
        item = PaymentItem(
            item_id=self._claim_id(item_id),
            recipient=recipient,
            amount=parsed_amount,
            currency=currency,
            description=description or None,
            reference=reference or None,
            metadata=dict(metadata or {}),
        )
        self._items[item.item_id] = item
        logger.debug(f"Payment {item.item_id} added ({item.mode.value}, {item.amount} {item.currency})")
        return item

    def add_item(self, item: PaymentItem) -> PaymentItem:
        """Adopt an already built item, keeping its id."""
        self._ensure_editable()
        self._check_fields(item.recipient, item.amount)
        self._claim_id(item.item_id)
        self._items[item.item_id] = item
        return item

    def update(
        self,
        item_id: str,
        recipient: Recipient,
        amount: Decimal | str | int,
        currency: str,
        description: str | None = None,
        reference: str | None = None,
    ) -> PaymentItem:
        """
        Edit a payment in place.

        The item keeps its id; its status goes back to pending and it has
        to be validated again.
        """
        self._ensure_editable()
        item = self[item_id]
        if item.is_in_flight:
            raise QueueError(
                f"Payment {item_id} is being processed in bulk {item.submitted_in}"
            )
        parsed_amount = self._check_fields(recipient, amount)
        item.recipient = recipient
        item.amount = parsed_amount
        item.currency = currency
        item.description = description or None
        item.reference = reference or None
        item.reset()
        return item

    def remove(self, item_id: str) -> PaymentItem:
        """Remove a payment. Its id stays reserved."""
        self._ensure_editable()
        item = self[item_id]
        del self._items[item_id]
        return item

    def clear(self) -> None:
        self._ensure_editable()
        self._items.clear()

    def apply_results(
        self, results: Iterable[ItemResult], bulk_transaction_id: str | None = None
    ) -> int:
        """
        Merge backend item results by item id.

        Plain overwrite, so applying the same results twice leaves the
        queue unchanged.

        Args:
            results: Item results of one snapshot
            bulk_transaction_id: Bulk transaction that reported them

        Returns:
            Number of items updated
        """
        applied = 0
        for result in results:
            item = self._items.get(result.item_id)
            if item is None:
                logger.warning(f"Bulk result for unknown item {result.item_id} ignored")
                continue
            item.apply_result(result, bulk_transaction_id)
            applied += 1
        return applied

    def reset_items(self, item_ids: Iterable[str]) -> int:
        """Put the given items back to pending (used before a retry)."""
        reset = 0
        for item_id in item_ids:
            item = self._items.get(item_id)
            if item is not None:
                item.status = PaymentStatus.PENDING
                item.error = None
                item.settled_in = None
                reset += 1
        return reset

    def mark_submitted(self, item_ids: Iterable[str], bulk_transaction_id: str) -> None:
        """Record that the items are being processed in a bulk transaction."""
        for item_id in item_ids:
            item = self._items.get(item_id)
            if item is not None:
                item.mark_submitted(bulk_transaction_id)

    def release_batch(self, bulk_transaction_id: str) -> int:
        """
        Release the items of a bulk transaction that reached a final status.

        Returns:
            Number of items released
        """
        released = 0
        for item in self._items.values():
            if item.submitted_in == bulk_transaction_id:
                item.release()
                released += 1
        return released

    def in_flight(self) -> list[PaymentItem]:
        return [item for item in self._items.values() if item.is_in_flight]

    def count_by_status(self) -> dict[PaymentStatus, int]:
        counts = {status: 0 for status in PaymentStatus}
        for item in self._items.values():
            counts[item.status] += 1
        return counts
