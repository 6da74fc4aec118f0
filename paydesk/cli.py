"""
Operator command line for bulk payments.

Usage:
    paydesk validate payments.json
    paydesk submit payments.json --reference PAYROLL-2024-06 --sequential
    paydesk track BULK_ID --file payments.json
    paydesk list --page 2 --status FAILED
    paydesk retry BULK_ID ITEM-1 ITEM-2

payments.json is a JSON list of instructions in the backend's camelCase
shape, for example:

    [{"mode": "WALLET_TO_MNO", "phoneNumber": "256771234567",
      "mnoProvider": "MTN", "amount": 5000}]
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from loguru import logger

from paydesk.config.constants import DEFAULT_PAGE_SIZE
from paydesk.config.settings import Settings, get_settings
from paydesk.models.bulk_batch import BulkTransactionBatch
from paydesk.models.payment_item import PaymentItem
from paydesk.services.bulk_payment import (
    BulkPaymentService,
    BulkTracking,
    PollState,
    ProgressStats,
    SubmissionOptions,
)
from paydesk.services.payment_queue import PaymentQueue
from paydesk.utils.exceptions import PaymentDeskError
from paydesk.utils.identifiers import generate_item_id
from paydesk.utils.logging import setup_logging

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_TIMED_OUT = 3


def load_queue(path: str, settings: Settings) -> PaymentQueue:
    """
    Load a payment queue from a JSON instruction file.

    Raises:
        PaymentDeskError: If the file cannot be read or an instruction is invalid
    """
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise PaymentDeskError(f"Cannot read {path}: {e}") from e
    if not isinstance(raw, list):
        raise PaymentDeskError(f"{path} must contain a JSON list of payments")

    queue = PaymentQueue()
    for index, data in enumerate(raw, start=1):
        if not isinstance(data, dict):
            raise PaymentDeskError(f"Payment #{index} is not an object")
        try:
            item = PaymentItem.from_payload(
                data,
                item_id=data.get("itemId") or generate_item_id(),
                default_currency=settings.default_currency,
            )
        except ValueError as e:
            raise PaymentDeskError(f"Payment #{index}: {e}") from e
        queue.add_item(item)

    logger.info(f"Loaded {len(queue)} payment(s) from {path}")
    return queue


def print_progress(stats: ProgressStats, batch: BulkTransactionBatch) -> None:
    print(
        f"[{batch.status.value}] {stats.percentage:3d}% "
        f"{stats.successful} ok / {stats.failed} failed / {stats.pending} pending "
        f"of {stats.total}"
    )


def print_items(queue: PaymentQueue) -> None:
    for item in queue:
        line = f"  {item.item_id}  {item.mode.value:<16} {item.amount} {item.currency}  {item.status.value}"
        if item.error:
            line += f"  ({item.error})"
        print(line)


def tracking_exit_code(tracking: BulkTracking) -> int:
    if tracking.state is PollState.TIMED_OUT:
        print(f"Tracking timed out, resume with: paydesk track {tracking.bulk_transaction_id}")
        return EXIT_TIMED_OUT
    stats = tracking.stats
    return EXIT_OK if stats.failed == 0 else EXIT_FAILED


async def cmd_validate(args: argparse.Namespace, settings: Settings) -> int:
    service = BulkPaymentService(queue=load_queue(args.file, settings), settings=settings)
    try:
        summary = await service.validate()
    finally:
        await service.close()
    print_items(service.queue)
    return EXIT_OK if summary.all_valid else EXIT_FAILED


async def cmd_submit(args: argparse.Namespace, settings: Settings) -> int:
    service = BulkPaymentService(queue=load_queue(args.file, settings), settings=settings)
    try:
        if not args.skip_validation:
            summary = await service.validate()
            if not summary.all_valid and not args.force:
                print_items(service.queue)
                print("Some recipients are invalid, fix them or pass --force")
                return EXIT_FAILED

        unknown = [item_id for item_id in args.include if item_id not in service.queue]
        if unknown:
            raise PaymentDeskError(f"Unknown payment(s): {', '.join(unknown)}")
        service.queue.reset_items(args.include)
        rejected = [item.item_id for item in service.queue if item.is_rejected]
        if rejected:
            print(f"Left out after failed validation: {', '.join(rejected)}")

        tracking = await service.submit_and_track(
            options=SubmissionOptions(
                process_in_parallel=not args.sequential,
                stop_on_first_failure=args.stop_on_first_failure,
            ),
            description=args.description,
            reference=args.reference,
            on_progress=print_progress,
        )
    finally:
        await service.close()
    print(f"Bulk transaction: {tracking.bulk_transaction_id}")
    print_items(service.queue)
    return tracking_exit_code(tracking)


async def cmd_track(args: argparse.Namespace, settings: Settings) -> int:
    queue = load_queue(args.file, settings) if args.file else PaymentQueue()
    service = BulkPaymentService(queue=queue, settings=settings)
    try:
        tracking = await service.resume_tracking(
            args.bulk_id, total=args.total, on_progress=print_progress
        )
    finally:
        await service.close()
    if len(queue):
        print_items(queue)
    return tracking_exit_code(tracking)


async def cmd_retry(args: argparse.Namespace, settings: Settings) -> int:
    queue = load_queue(args.file, settings) if args.file else PaymentQueue()
    service = BulkPaymentService(queue=queue, settings=settings)
    try:
        tracking = await service.retry_failed(
            args.bulk_id, item_ids=args.item_ids or None, on_progress=print_progress
        )
    finally:
        await service.close()
    if len(queue):
        print_items(queue)
    return tracking_exit_code(tracking)


async def cmd_list(args: argparse.Namespace, settings: Settings) -> int:
    service = BulkPaymentService(settings=settings)
    try:
        page = await service.list_batches(page=args.page, limit=args.limit, status=args.status)
    finally:
        await service.close()

    for batch in page.bulk_transactions:
        print(
            f"{batch.bulk_transaction_id}  {batch.status.value:<16} "
            f"{batch.successful_transactions}/{batch.total_transactions} ok, "
            f"{batch.failed_transactions} failed"
        )
    print(f"Page {page.page} of {page.total_pages} ({page.total} bulk transactions)")
    return EXIT_OK


COMMANDS = {
    "validate": cmd_validate,
    "submit": cmd_submit,
    "track": cmd_track,
    "retry": cmd_retry,
    "list": cmd_list,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="paydesk",
        description="Validate, submit and track bulk payments",
    )
    parser.add_argument("--log-level", help="Override LOG_LEVEL")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("validate", help="Validate recipients of a payment file")
    p.add_argument("file", help="JSON list of payment instructions")

    p = sub.add_parser("submit", help="Submit a payment file and track it")
    p.add_argument("file", help="JSON list of payment instructions")
    p.add_argument("--reference", help="Bulk reference (generated when omitted)")
    p.add_argument("--description", help="Bulk description")
    p.add_argument(
        "--sequential",
        action="store_true",
        help="Ask the backend to process items one by one",
    )
    p.add_argument(
        "--stop-on-first-failure",
        action="store_true",
        help="Ask the backend to stop at the first failed item",
    )
    p.add_argument(
        "--skip-validation",
        action="store_true",
        help="Submit without validating recipients first",
    )
    p.add_argument(
        "--force",
        action="store_true",
        help="Submit the valid payments even if some recipients failed validation",
    )
    p.add_argument(
        "--include",
        action="append",
        default=[],
        metavar="ITEM_ID",
        help="Submit this payment even though it failed validation (repeatable)",
    )

    p = sub.add_parser("track", help="Resume tracking of a bulk transaction")
    p.add_argument("bulk_id", help="Bulk transaction id")
    p.add_argument("--file", help="Payment file of the batch, to show per-item results")
    p.add_argument("--total", type=int, help="Number of items in the batch")

    p = sub.add_parser("retry", help="Retry failed items of a bulk transaction")
    p.add_argument("bulk_id", help="Bulk transaction id")
    p.add_argument("item_ids", nargs="*", help="Items to retry (all failed when omitted)")
    p.add_argument("--file", help="Payment file of the batch, to show per-item results")

    p = sub.add_parser("list", help="List bulk transactions")
    p.add_argument("--page", type=int, default=1)
    p.add_argument("--limit", type=int, default=DEFAULT_PAGE_SIZE)
    p.add_argument("--status", help="Only bulk transactions with this status")

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    setup_logging(args.log_level or settings.log_level, settings.log_file)

    try:
        return asyncio.run(COMMANDS[args.command](args, settings))
    except PaymentDeskError as e:
        logger.error(e.message)
        return EXIT_FAILED
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
