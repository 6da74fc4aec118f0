"""
Unit tests for bulk status polling.

Tests cover:
- Three-item scenario reaching PARTIAL_SUCCESS
- Stop on terminal status, COMPLETED is not terminal
- Poll timeout with exactly one notification
- Transient poll failures count toward the attempt limit
- At most one loop per bulk transaction
- Queue ownership while tracking
"""

import asyncio

import pytest

from paydesk.models.payment_item import PaymentStatus
from paydesk.services.bulk_payment.poller import PollState, StatusPoller
from paydesk.services.notification import NotificationLevel
from paydesk.utils.exceptions import PaymentApiError, PollError, TrackingConflictError


class TestPollScenario:
    """End-to-end polling of a three-item batch."""

    @pytest.mark.asyncio
    async def test_processing_then_partial_success(self, poller, mock_api, queue, notifier, make_batch):
        mock_api.get_bulk_status.side_effect = [
            make_batch("PROCESSING", successful=1, results=[("A", "SUCCESS")]),
            make_batch(
                "PARTIAL_SUCCESS",
                successful=2,
                failed=1,
                results=[("C", "SUCCESS"), ("A", "SUCCESS"), ("B", "FAILED", "invalid account")],
            ),
        ]

        tracking = await poller.track("BULK-1", total=3)

        assert tracking.state is PollState.DONE
        assert tracking.attempts == 2
        assert mock_api.get_bulk_status.await_count == 2
        assert queue["A"].status is PaymentStatus.SUCCESS
        assert queue["B"].status is PaymentStatus.FAILED
        assert queue["B"].error == "invalid account"
        assert queue["C"].status is PaymentStatus.SUCCESS
        assert tracking.stats.percentage == 100
        assert [s.percentage for s in tracking.history] == [0, 33, 100]
        assert notifier.notifications[-1].level is NotificationLevel.WARNING
        assert notifier.notifications[-1].message == "2 succeeded, 1 failed"
        assert notifier.notifications[-1].bulk_transaction_id == "BULK-1"

    @pytest.mark.asyncio
    async def test_counts_always_close(self, poller, mock_api, make_batch):
        mock_api.get_bulk_status.side_effect = [
            make_batch("PENDING"),
            make_batch("PROCESSING", successful=1, failed=1),
            make_batch("SUCCESS", successful=3),
        ]

        tracking = await poller.track("BULK-1", total=3)

        for stats in tracking.history:
            assert stats.successful + stats.failed + stats.pending == stats.total
            assert 0 <= stats.percentage <= 100
        percentages = [s.percentage for s in tracking.history]
        assert percentages == sorted(percentages)

    @pytest.mark.asyncio
    async def test_progress_callback(self, poller, mock_api, make_batch):
        mock_api.get_bulk_status.side_effect = [
            make_batch("PROCESSING", successful=1),
            make_batch("SUCCESS", successful=3),
        ]
        seen = []

        await poller.track("BULK-1", total=3, on_progress=lambda stats, batch: seen.append(
            (stats.percentage, batch.status.value)
        ))

        assert seen == [(33, "PROCESSING"), (100, "SUCCESS")]


class TestTermination:
    """Test when polling stops."""

    @pytest.mark.asyncio
    async def test_stops_on_first_terminal_status(self, poller, mock_api, notifier, make_batch):
        mock_api.get_bulk_status.return_value = make_batch("SUCCESS", successful=3)

        tracking = await poller.track("BULK-1", total=3)

        assert tracking.state is PollState.DONE
        assert mock_api.get_bulk_status.await_count == 1
        assert notifier.notifications[-1].message == "All 3 payments completed successfully!"

    @pytest.mark.asyncio
    async def test_failed_batch(self, poller, mock_api, notifier, make_batch):
        mock_api.get_bulk_status.return_value = make_batch("FAILED", failed=3)

        tracking = await poller.track("BULK-1", total=3)

        assert tracking.state is PollState.DONE
        assert notifier.notifications[-1].level is NotificationLevel.ERROR
        assert notifier.notifications[-1].message == "All 3 payments failed"

    @pytest.mark.asyncio
    async def test_completed_is_not_terminal(self, poller, mock_api, make_batch):
        mock_api.get_bulk_status.side_effect = [
            make_batch("COMPLETED", successful=3),
            make_batch("SUCCESS", successful=3),
        ]

        tracking = await poller.track("BULK-1", total=3)

        assert mock_api.get_bulk_status.await_count == 2
        assert tracking.last_batch.status.value == "SUCCESS"

    @pytest.mark.asyncio
    async def test_timeout_notifies_once(self, poller, mock_api, queue, notifier, make_batch):
        mock_api.get_bulk_status.return_value = make_batch("PROCESSING", successful=1,
                                                          results=[("A", "SUCCESS")])

        tracking = await poller.track("BULK-1", total=3)

        assert tracking.state is PollState.TIMED_OUT
        assert tracking.attempts == 5
        assert mock_api.get_bulk_status.await_count == 5
        warnings = notifier.of_level(NotificationLevel.WARNING)
        assert len(warnings) == 1
        assert warnings[0].message == "Status polling timeout. Check transaction status manually."
        assert tracking.timeout_error.attempts == 5
        # Last known statuses are kept, nothing is marked failed
        assert queue["A"].status is PaymentStatus.SUCCESS
        assert queue["B"].status is PaymentStatus.PENDING
        assert queue["C"].status is PaymentStatus.PENDING

    @pytest.mark.asyncio
    async def test_custom_attempt_limit(self, mock_api, queue, notifier, settings, make_batch):
        mock_api.get_bulk_status.return_value = make_batch("PROCESSING")
        poller = StatusPoller(mock_api, queue, notifier, settings, max_attempts=2)

        tracking = await poller.track("BULK-1", total=3)

        assert tracking.state is PollState.TIMED_OUT
        assert mock_api.get_bulk_status.await_count == 2


class TestTransientFailures:
    """Test failed ticks."""

    @pytest.mark.asyncio
    async def test_failed_ticks_are_skipped(self, poller, mock_api, make_batch):
        mock_api.get_bulk_status.side_effect = [
            PaymentApiError("Bad gateway", 502),
            TimeoutError(),
            make_batch("SUCCESS", successful=3),
        ]

        tracking = await poller.track("BULK-1", total=3)

        assert tracking.state is PollState.DONE
        assert tracking.attempts == 3
        assert tracking.last_error is None

    @pytest.mark.asyncio
    async def test_failures_exhaust_attempt_limit(self, poller, mock_api, notifier):
        mock_api.get_bulk_status.side_effect = PaymentApiError("Bad gateway", 502)

        tracking = await poller.track("BULK-1", total=3)

        assert tracking.state is PollState.TIMED_OUT
        assert mock_api.get_bulk_status.await_count == 5
        assert isinstance(tracking.last_error, PollError)
        assert tracking.last_error.message == "Bad gateway"
        assert len(notifier.of_level(NotificationLevel.WARNING)) == 1

    @pytest.mark.asyncio
    async def test_failed_tick_keeps_progress(self, poller, mock_api, make_batch):
        mock_api.get_bulk_status.side_effect = [
            make_batch("PROCESSING", successful=2),
            PaymentApiError("Bad gateway", 502),
            make_batch("SUCCESS", successful=3),
        ]
        seen = []

        await poller.track("BULK-1", total=3, on_progress=lambda stats, batch: seen.append(
            stats.percentage
        ))

        assert seen == [67, 100]

    @pytest.mark.asyncio
    async def test_unexpected_error_stops_loop(self, poller, mock_api, queue):
        mock_api.get_bulk_status.side_effect = KeyError("itemId")

        with pytest.raises(KeyError):
            await poller.track("BULK-1", total=3)

        assert poller.get_tracking("BULK-1").state is PollState.STOPPED
        assert not queue.is_locked


class TestSingleLoop:
    """Test at most one loop per bulk transaction."""

    @pytest.mark.asyncio
    async def test_second_loop_is_refused(self, poller, mock_api, make_batch):
        mock_api.get_bulk_status.return_value = make_batch("SUCCESS", successful=3)

        await poller.start("BULK-1", total=3)
        assert poller.is_tracking("BULK-1")
        with pytest.raises(TrackingConflictError):
            await poller.track("BULK-1", total=3)

        tracking = await poller.wait("BULK-1")
        assert tracking.state is PollState.DONE
        assert mock_api.get_bulk_status.await_count == 1

    @pytest.mark.asyncio
    async def test_new_loop_after_previous_ended(self, poller, mock_api, make_batch):
        mock_api.get_bulk_status.return_value = make_batch("PROCESSING")
        first = await poller.track("BULK-1", total=3)
        assert first.state is PollState.TIMED_OUT

        mock_api.get_bulk_status.return_value = make_batch("SUCCESS", successful=3)
        second = await poller.track("BULK-1", total=3)

        assert second.state is PollState.DONE
        assert second.attempts == 1

    @pytest.mark.asyncio
    async def test_ticks_are_sequential(self, mock_api, queue, notifier, settings, make_batch):
        active = 0
        overlap = []

        async def slow_status(bulk_id, fallback_total=None):
            nonlocal active
            active += 1
            overlap.append(active)
            await asyncio.sleep(0.01)
            active -= 1
            return make_batch("PROCESSING")

        mock_api.get_bulk_status.side_effect = slow_status
        poller = StatusPoller(mock_api, queue, notifier, settings, max_attempts=3)

        await poller.track("BULK-1", total=3)

        assert overlap == [1, 1, 1]


class TestQueueOwnership:
    """Test the queue is read-only while tracked."""

    @pytest.mark.asyncio
    async def test_queue_locked_during_tracking(self, poller, mock_api, queue, make_batch):
        mock_api.get_bulk_status.side_effect = [
            make_batch("PROCESSING"),
            make_batch("SUCCESS", successful=3),
        ]
        locked = []

        await poller.track("BULK-1", total=3, on_progress=lambda stats, batch: locked.append(
            queue.locked_by
        ))

        assert locked == ["BULK-1", "BULK-1"]
        assert not queue.is_locked

    @pytest.mark.asyncio
    async def test_shutdown_cancels_background_loops(self, mock_api, queue, notifier, settings, make_batch):
        mock_api.get_bulk_status.return_value = make_batch("PROCESSING")
        poller = StatusPoller(mock_api, queue, notifier, settings, interval=10, max_attempts=60)

        tracking = await poller.start("BULK-1", total=3)
        await asyncio.sleep(0.01)
        await poller.shutdown()

        assert tracking.state is PollState.STOPPED
        assert not queue.is_locked
        assert not notifier.of_level(NotificationLevel.WARNING)
