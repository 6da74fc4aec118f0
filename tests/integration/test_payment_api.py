"""
Integration tests for the payment API client.

The client talks to an in-process aiohttp application that mimics the
payment backend and the disbursement gateways.
"""

import asyncio
from decimal import Decimal

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from paydesk.clients.payment_api import TIMEOUT_MESSAGE, PaymentApiClient
from paydesk.config.settings import Settings
from paydesk.models.bulk_batch import BatchStatus
from paydesk.models.payment_item import PaymentItem, PaymentStatus
from paydesk.services.bulk_payment import BulkPaymentService, PollState, StatusPoller
from paydesk.services.notification import NotificationLevel, RecordingNotifier
from paydesk.services.payment_queue import PaymentQueue
from paydesk.utils.exceptions import PaymentApiError


def build_backend() -> web.Application:
    """Fake backend recording every request it receives."""
    app = web.Application()
    app["requests"] = []
    app["status_polls"] = 0

    async def record(request: web.Request) -> dict | None:
        body = await request.json() if request.can_read_body else None
        app["requests"].append(
            {
                "method": request.method,
                "path": request.path,
                "query": dict(request.query),
                "json": body,
                "authorization": request.headers.get("Authorization"),
            }
        )
        return body

    async def validate(request):
        body = await record(request)
        results = [
            {"itemId": item["itemId"], "isValid": item["mode"] != "WALLET_TO_BANK",
             "error": None if item["mode"] != "WALLET_TO_BANK" else "invalid account"}
            for item in body["items"]
        ]
        valid = sum(r["isValid"] for r in results)
        return web.json_response(
            {"totalItems": len(results), "validItems": valid,
             "invalidItems": len(results) - valid, "results": results}
        )

    async def process_async(request):
        body = await record(request)
        if not body["transactions"]:
            return web.json_response({"message": ["transactions should not be empty"]}, status=400)
        return web.json_response(
            {"bulkTransactionId": "BULK-77", "status": "PENDING",
             "totalTransactions": len(body["transactions"])},
            status=201,
        )

    async def status(request):
        await record(request)
        app["status_polls"] += 1
        if request.match_info["bulk_id"] == "BROKEN":
            return web.json_response({"error": "Internal error"}, status=500)
        if request.match_info["bulk_id"] == "GARBAGE":
            return web.json_response(
                {"bulkTransactionId": "GARBAGE", "status": "PROCESSING", "totalTransactions": 1,
                 "transactionResults": ["garbage", {"itemId": "A", "status": "PENDING"}]}
            )
        if request.match_info["bulk_id"] == "MALFORMED":
            return web.json_response(
                {"bulkTransactionId": "MALFORMED", "status": "PROCESSING", "transactionResults": 5}
            )
        if app["status_polls"] == 1:
            return web.json_response(
                {"bulkTransactionId": request.match_info["bulk_id"], "status": "PROCESSING",
                 "totalItems": 2, "successfulItems": 1, "failedItems": 0, "pendingItems": 1,
                 "results": [{"itemId": "A", "status": "SUCCESS"}]}
            )
        return web.json_response(
            {"bulkTransactionId": request.match_info["bulk_id"], "status": "PARTIAL_SUCCESS",
             "totalTransactions": 2, "successfulTransactions": 1, "failedTransactions": 1,
             "pendingTransactions": 0,
             "transactionResults": [
                 {"itemId": "C", "status": "FAILED", "errorMessage": "Wallet not found"},
                 {"itemId": "A", "status": "SUCCESS"},
             ]}
        )

    async def retry(request):
        await record(request)
        return web.json_response({"status": "PROCESSING", "totalTransactions": 2})

    async def list_batches(request):
        await record(request)
        return web.json_response(
            {"bulkTransactions": [{"bulkTransactionId": "BULK-1", "status": "SUCCESS",
                                   "totalTransactions": 1, "successfulTransactions": 1}],
             "total": 1, "page": 1, "limit": 10, "totalPages": 1}
        )

    async def validate_phone(request):
        body = await record(request)
        if body["phoneNumber"] == "256700000000":
            return web.json_response({"status": 0, "message": "Number not registered"})
        return web.json_response({"status": 1, "data": {"name": "JOHN DOE"}, "txnReference": "V-1"})

    async def verify_wallet(request):
        await record(request)
        return web.json_response({"res": 0, "message": "Customer not found"})

    async def slow(request):
        await asyncio.sleep(0.5)
        return web.json_response({})

    async def not_json(request):
        return web.Response(text="Bad Gateway", status=502)

    app.router.add_post("/transactions/bulk/validate", validate)
    app.router.add_post("/transactions/bulk/async", process_async)
    app.router.add_get("/transactions/bulk", list_batches)
    app.router.add_get("/transactions/bulk/{bulk_id}", status)
    app.router.add_post("/transactions/bulk/{bulk_id}/retry", retry)
    app.router.add_post("/abc/secure/mobile-money/validate-phone-number", validate_phone)
    app.router.add_post("/subscriber/verify-customer-phone", verify_wallet)
    app.router.add_post("/abc/secure/bank/validate-account", slow)
    app.router.add_post("/abc/secure/merchant/bank/cash-deposit", not_json)
    return app


@pytest_asyncio.fixture
async def backend():
    server = TestServer(build_backend())
    await server.start_server()
    yield server
    await server.close()


@pytest.fixture
def server_settings(backend):
    base_url = f"http://{backend.host}:{backend.port}"
    return Settings(
        _env_file=None,
        api_url=base_url,
        sandbox_url=base_url,
        access_token="secret-token",
        user_id="user-1",
        merchant_id="MERCHANT-1",
        bulk_poll_interval_seconds=0,
        bulk_poll_initial_delay_seconds=0,
        bulk_poll_max_attempts=5,
        request_timeout_seconds=0.1,
    )


@pytest_asyncio.fixture
async def client(server_settings):
    async with PaymentApiClient(server_settings) as api:
        yield api


def requests_to(backend, path):
    return [r for r in backend.app["requests"] if r["path"] == path]


class TestBulkEndpoints:
    """Test bulk transaction calls."""

    @pytest.mark.asyncio
    async def test_validate_recipients(self, client, backend):
        summary = await client.validate_bulk_recipients(
            [{"itemId": "A", "mode": "WALLET_TO_MNO"}, {"itemId": "B", "mode": "WALLET_TO_BANK"}]
        )

        assert summary.total_items == 2
        assert summary.valid_items == 1
        assert summary.results[1].error == "invalid account"
        request = requests_to(backend, "/transactions/bulk/validate")[0]
        assert request["authorization"] == "Bearer secret-token"

    @pytest.mark.asyncio
    async def test_process_async(self, client, backend):
        batch = await client.process_bulk_async(
            {"userId": "user-1", "transactions": [{"itemId": "A"}], "reference": "REF-1"}
        )

        assert batch.bulk_transaction_id == "BULK-77"
        assert batch.status is BatchStatus.PENDING
        assert batch.pending_transactions == 1

    @pytest.mark.asyncio
    async def test_backend_message_is_surfaced(self, client):
        with pytest.raises(PaymentApiError) as exc_info:
            await client.process_bulk_async({"userId": "user-1", "transactions": []})

        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "transactions should not be empty"

    @pytest.mark.asyncio
    async def test_status_reads_legacy_fields(self, client):
        batch = await client.get_bulk_status("BULK-77", fallback_total=2)

        assert batch.status is BatchStatus.PROCESSING
        assert batch.successful_transactions == 1
        assert batch.transaction_results[0].status is PaymentStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_status_error(self, client):
        with pytest.raises(PaymentApiError, match="Internal error"):
            await client.get_bulk_status("BROKEN")

    @pytest.mark.asyncio
    async def test_status_skips_malformed_entries(self, client):
        batch = await client.get_bulk_status("GARBAGE")

        assert [r.item_id for r in batch.transaction_results] == ["A"]

    @pytest.mark.asyncio
    async def test_malformed_status_body(self, client):
        with pytest.raises(PaymentApiError, match="Invalid bulk transaction response"):
            await client.get_bulk_status("MALFORMED", fallback_total=1)

    @pytest.mark.asyncio
    async def test_retry(self, client, backend):
        batch = await client.retry_failed_transactions("BULK-77", ["C"])

        assert batch.bulk_transaction_id == "BULK-77"
        assert requests_to(backend, "/transactions/bulk/BULK-77/retry")[0]["json"] == {
            "itemIds": ["C"]
        }

    @pytest.mark.asyncio
    async def test_list(self, client, backend):
        page = await client.list_bulk_transactions(page=1, limit=10, user_id="user-1")

        assert page.bulk_transactions[0].bulk_transaction_id == "BULK-1"
        assert requests_to(backend, "/transactions/bulk")[0]["query"] == {
            "page": "1", "limit": "10", "userId": "user-1"
        }


class TestGatewayEndpoints:
    """Test single transfer gateway calls."""

    @pytest.mark.asyncio
    async def test_validate_phone(self, client):
        data = await client.validate_phone_number("256771234567", Decimal("5000"))

        assert data["data"]["name"] == "JOHN DOE"

    @pytest.mark.asyncio
    async def test_status_zero_is_an_error(self, client):
        with pytest.raises(PaymentApiError, match="Number not registered"):
            await client.validate_phone_number("256700000000", Decimal("5000"))

    @pytest.mark.asyncio
    async def test_unknown_wallet_customer(self, client):
        with pytest.raises(PaymentApiError, match="Customer not found"):
            await client.verify_wallet_customer("256701234567")

    @pytest.mark.asyncio
    async def test_timeout(self, client):
        with pytest.raises(PaymentApiError) as exc_info:
            await client.validate_bank_account("0123456789", Decimal("1"), "STANBIC")

        assert exc_info.value.message == TIMEOUT_MESSAGE

    @pytest.mark.asyncio
    async def test_non_json_error_body(self, client):
        with pytest.raises(PaymentApiError) as exc_info:
            await client.bank_cash_deposit({"accountNumber": "0123456789", "amount": 1})

        assert exc_info.value.status_code == 502
        assert exc_info.value.message == "Bad Gateway"


class TestBulkPaymentFlow:
    """Submit and track a batch against the fake backend."""

    @pytest.mark.asyncio
    async def test_malformed_status_counts_as_failed_poll(self, client, server_settings):
        notifier = RecordingNotifier()
        poller = StatusPoller(client, PaymentQueue(), notifier, server_settings)

        tracking = await poller.track("MALFORMED", total=1)

        assert tracking.state is PollState.TIMED_OUT
        assert tracking.attempts == 5
        assert "Invalid bulk transaction response" in tracking.last_error.message
        assert len(notifier.of_level(NotificationLevel.WARNING)) == 1

    @pytest.mark.asyncio
    async def test_submit_and_track(self, server_settings, backend, mno_recipient, wallet_recipient):
        queue = PaymentQueue()
        queue.add_item(PaymentItem("A", mno_recipient, Decimal("5000"), "UGX"))
        queue.add_item(PaymentItem("C", wallet_recipient, Decimal("2500"), "UGX"))
        notifier = RecordingNotifier()
        service = BulkPaymentService(queue=queue, notifier=notifier, settings=server_settings)

        try:
            tracking = await service.submit_and_track(reference="REF-9")
        finally:
            await service.close()

        assert tracking.state is PollState.DONE
        assert tracking.attempts == 2
        assert tracking.stats.percentage == 100
        assert queue["A"].status is PaymentStatus.SUCCESS
        assert queue["C"].status is PaymentStatus.FAILED
        assert queue["C"].error == "Wallet not found"
        assert notifier.notifications[-1].message == "1 succeeded, 1 failed"

        submitted = requests_to(backend, "/transactions/bulk/async")[0]["json"]
        assert submitted["reference"] == "REF-9"
        assert submitted["description"] == "Bulk payment"
        assert [t["walletType"] for t in submitted["transactions"]] == ["BUSINESS", "BUSINESS"]
