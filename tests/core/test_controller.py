"""Unit tests for DisconnectController."""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from disco.config.schema import Config, SchedulerConfig
from disco.core.controller import AppState, DisconnectController, build_controller
from disco.notifications.delivery import DeliveredNotification, RecordingDeliveryService
from disco.notifications.scheduler import BatchScheduler
from disco.session.state import Aftermath, Disconnecting, Idle, SessionStateMachine


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def delivery():
    return RecordingDeliveryService()


@pytest.fixture
def badge():
    return Mock()


def _make_controller(
    log_store, engine, clock, delivery, badge=None, batch_size=3, tick_interval_s=60
):
    scheduler = BatchScheduler(
        engine, delivery, config=SchedulerConfig(batch_size=batch_size), clock=clock
    )
    return DisconnectController(
        machine=SessionStateMachine(clock=clock),
        log_store=log_store,
        scheduler=scheduler,
        delivery=delivery,
        badge=badge,
        tick_interval_s=tick_interval_s,
    )


@pytest.fixture
def controller(log_store, fixed_copy_engine, clock, delivery, badge):
    return _make_controller(log_store, fixed_copy_engine, clock, delivery, badge)


# ============================================================================
# Start
# ============================================================================


class TestStartDisconnect:
    @pytest.mark.asyncio
    async def test_start_schedules_batch(self, controller, delivery, clock):
        session = await controller.start_disconnect()

        assert isinstance(controller.state.phase, Disconnecting)
        assert controller.state.phase.session == session
        assert session.started_at == clock()
        assert len(delivery.requests) == 3
        assert controller.ticker.running
        await controller.close()

    @pytest.mark.asyncio
    async def test_badges_continue_from_unread_count(self, controller, log_store, delivery):
        log_store.upsert_delivered("old1", "T", "B")
        log_store.upsert_delivered("old2", "T", "B")

        await controller.start_disconnect()

        assert [r.badge for r in delivery.requests] == [3, 4, 5]
        await controller.close()

    @pytest.mark.asyncio
    async def test_authorization_requested_once(self, log_store, fixed_copy_engine, clock):
        delivery = Mock()
        delivery.request_authorization = AsyncMock(return_value=True)
        delivery.schedule = AsyncMock()
        delivery.cancel_pending = AsyncMock()
        controller = _make_controller(log_store, fixed_copy_engine, clock, delivery)

        await controller.start_disconnect()
        await controller.stop_disconnect()
        controller.finish_aftermath()
        await controller.start_disconnect()

        delivery.request_authorization.assert_awaited_once()
        assert delivery.schedule.await_count == 6
        assert controller.authorized is True
        await controller.close()

    @pytest.mark.asyncio
    async def test_denied_authorization_still_schedules(
        self, log_store, fixed_copy_engine, clock
    ):
        delivery = RecordingDeliveryService(authorized=False)
        controller = _make_controller(log_store, fixed_copy_engine, clock, delivery)

        await controller.start_disconnect()

        assert controller.authorized is False
        assert len(delivery.requests) == 3
        assert log_store.entries == ()
        await controller.close()

    @pytest.mark.asyncio
    async def test_authorization_error_still_schedules(
        self, log_store, fixed_copy_engine, clock
    ):
        delivery = Mock()
        delivery.request_authorization = AsyncMock(side_effect=RuntimeError("no center"))
        delivery.schedule = AsyncMock()
        delivery.cancel_pending = AsyncMock()
        controller = _make_controller(log_store, fixed_copy_engine, clock, delivery)

        await controller.start_disconnect()

        assert controller.authorized is False
        assert delivery.schedule.await_count == 3
        assert isinstance(controller.state.phase, Disconnecting)
        await controller.close()

    @pytest.mark.asyncio
    async def test_schedule_failure_does_not_crash(self, log_store, fixed_copy_engine, clock):
        delivery = Mock()
        delivery.request_authorization = AsyncMock(return_value=True)
        delivery.schedule = AsyncMock(side_effect=RuntimeError("quota"))
        delivery.cancel_pending = AsyncMock()
        controller = _make_controller(log_store, fixed_copy_engine, clock, delivery)

        session = await controller.start_disconnect()

        assert session is not None
        assert isinstance(controller.state.phase, Disconnecting)
        await controller.close()

    @pytest.mark.asyncio
    async def test_start_while_disconnecting_is_noop(self, controller, delivery):
        first = await controller.start_disconnect()
        assert await controller.start_disconnect() is None

        assert controller.state.phase.session.id == first.id
        assert len(delivery.requests) == 3
        assert controller.ticker.running
        await controller.close()

    @pytest.mark.asyncio
    async def test_start_from_aftermath_is_noop(self, controller, delivery):
        await controller.start_disconnect()
        await controller.stop_disconnect()

        assert await controller.start_disconnect() is None
        assert isinstance(controller.state.phase, Aftermath)
        assert not controller.ticker.running

    @pytest.mark.asyncio
    async def test_new_session_keeps_unread(self, controller, log_store, badge):
        log_store.upsert_delivered("n1", "T", "B")
        log_store.upsert_delivered("n2", "T", "B")

        await controller.start_disconnect()
        await controller.stop_disconnect()
        controller.finish_aftermath()
        await controller.start_disconnect()

        assert log_store.unread_count() == 2
        assert len(log_store.entries) == 2
        assert controller.state.unread_count == 2
        badge.set_badge.assert_called_with(2)
        await controller.close()


# ============================================================================
# Stop / finish
# ============================================================================


class TestStopDisconnect:
    @pytest.mark.asyncio
    async def test_stop_cancels_batch_then_transitions(
        self, log_store, fixed_copy_engine, clock
    ):
        phases_at_cancel = []
        delivery = RecordingDeliveryService()
        controller = _make_controller(log_store, fixed_copy_engine, clock, delivery)

        original_cancel = delivery.cancel_pending

        async def cancel(ids):
            phases_at_cancel.append(controller.machine.phase)
            await original_cancel(ids)

        delivery.cancel_pending = cancel

        await controller.start_disconnect()
        clock.advance(125)
        summary = await controller.stop_disconnect()

        assert isinstance(phases_at_cancel[0], Disconnecting)
        assert delivery.cancelled == [{r.identifier for r in delivery.requests}]
        assert summary.total_seconds == 125
        assert controller.state.phase == Aftermath(summary)
        assert not controller.ticker.running

    @pytest.mark.asyncio
    async def test_stop_while_authorization_pending(self, controller, delivery):
        asked = asyncio.Event()
        answer = asyncio.Event()

        async def request_authorization():
            asked.set()
            await answer.wait()
            return True

        delivery.request_authorization = request_authorization

        start = asyncio.create_task(controller.start_disconnect())
        await asyncio.wait_for(asked.wait(), 1)

        summary = await asyncio.wait_for(controller.stop_disconnect(), 1)

        assert summary is not None
        assert isinstance(controller.state.phase, Aftermath)
        assert not controller.ticker.running

        # late answer must not schedule reminders for the ended session
        answer.set()
        await asyncio.wait_for(start, 1)
        assert delivery.requests == []
        assert controller.scheduler.pending_identifiers == set()

    @pytest.mark.asyncio
    async def test_late_authorization_leaves_next_session_alone(self, controller, delivery):
        asked = asyncio.Event()
        answer = asyncio.Event()

        async def request_authorization():
            asked.set()
            await answer.wait()
            return True

        delivery.request_authorization = request_authorization

        first = asyncio.create_task(controller.start_disconnect())
        await asyncio.wait_for(asked.wait(), 1)
        await controller.stop_disconnect()
        controller.finish_aftermath()

        second = await controller.start_disconnect()
        assert len(delivery.requests) == 3

        answer.set()
        await asyncio.wait_for(first, 1)

        assert len(delivery.requests) == 3
        assert controller.state.phase.session.id == second.id
        await controller.close()

    @pytest.mark.asyncio
    async def test_stop_on_idle_is_noop(self, controller, delivery):
        assert await controller.stop_disconnect() is None
        assert isinstance(controller.state.phase, Idle)
        assert delivery.cancelled == []

    @pytest.mark.asyncio
    async def test_cancel_failure_still_reaches_aftermath(
        self, log_store, fixed_copy_engine, clock
    ):
        delivery = Mock()
        delivery.request_authorization = AsyncMock(return_value=True)
        delivery.schedule = AsyncMock()
        delivery.cancel_pending = AsyncMock(side_effect=RuntimeError("offline"))
        controller = _make_controller(log_store, fixed_copy_engine, clock, delivery)

        await controller.start_disconnect()
        summary = await controller.stop_disconnect()

        assert summary is not None
        assert isinstance(controller.state.phase, Aftermath)
        assert controller.scheduler.pending_identifiers == set()

    @pytest.mark.asyncio
    async def test_finish_leaves_log_and_badge(self, controller, log_store, badge):
        log_store.upsert_delivered("n1", "T", "B")
        await controller.start_disconnect()
        await controller.stop_disconnect()
        badge.reset_mock()

        assert controller.finish_aftermath() is True

        assert isinstance(controller.state.phase, Idle)
        assert log_store.unread_count() == 1
        badge.set_badge.assert_not_called()

    def test_finish_outside_aftermath(self, controller):
        assert controller.finish_aftermath() is False


# ============================================================================
# Log / badge
# ============================================================================


class TestNotificationLog:
    def test_badge_pushed_at_construction(self, log_store, fixed_copy_engine, clock, delivery):
        log_store.upsert_delivered("n1", "T", "B")
        badge = Mock()
        _make_controller(log_store, fixed_copy_engine, clock, delivery, badge)
        badge.set_badge.assert_called_once_with(1)

    def test_badge_tracks_unread_after_every_mutation(self, controller, log_store, badge):
        controller.log_notification_attempt("a", "T", "B")
        controller.log_notification_delivered("a", "T", "B")
        controller.log_notification_delivered("b", "T", "B")
        controller.mark_notification_read("a")
        controller.mark_notification_read("a")
        controller.log_notification_delivered("a", "T", "B")

        pushed = [c.args[0] for c in badge.set_badge.call_args_list]
        assert pushed[-1] == log_store.unread_count() == 1
        assert controller.state.unread_count == 1
        assert pushed == [0, 1, 1, 2, 1, 1, 1]

    def test_badge_failure_is_swallowed(self, controller, log_store, badge):
        badge.set_badge.side_effect = RuntimeError("no badge")
        controller.log_notification_delivered("a", "T", "B")
        assert log_store.unread_count() == 1
        assert controller.state.unread_count == 1

    def test_presented_then_opened(self, controller, log_store):
        n = DeliveredNotification("n1", "T", "B")
        controller.on_notification_presented(n)
        assert log_store.get("n1").status == "delivered"
        assert log_store.get("n1").is_read is False

        controller.on_notification_opened(n)
        assert log_store.get("n1").is_read is True
        assert len(log_store.entries) == 1

    def test_opened_without_presentation(self, controller, log_store):
        controller.on_notification_opened(DeliveredNotification("n9", "T", "B"))
        entry = log_store.get("n9")
        assert entry.status == "delivered"
        assert entry.is_read is True

    @pytest.mark.asyncio
    async def test_sync_delivered_replays_idempotently(
        self, log_store, fixed_copy_engine, clock
    ):
        delivery = RecordingDeliveryService()
        controller = _make_controller(log_store, fixed_copy_engine, clock, delivery)
        await controller.start_disconnect()
        first = delivery.requests[0]

        delivered = [DeliveredNotification(first.identifier, first.title, first.body)]
        delivery.query_delivered = AsyncMock(return_value=delivered)

        assert await controller.sync_delivered_notifications() == 1
        controller.mark_notification_read(first.identifier)
        assert await controller.sync_delivered_notifications() == 1

        assert len(log_store.entries) == 1
        entry = log_store.entries[0]
        assert entry.status == "delivered"
        assert entry.is_read is True
        assert entry.copy_id == "e1"
        await controller.close()

    @pytest.mark.asyncio
    async def test_sync_query_failure(self, controller, delivery, log_store):
        delivery.query_delivered = AsyncMock(side_effect=RuntimeError("boom"))
        assert await controller.sync_delivered_notifications() == 0
        assert log_store.entries == ()


# ============================================================================
# Observers / tick
# ============================================================================


class TestObservers:
    @pytest.mark.asyncio
    async def test_snapshots_on_every_change(self, controller):
        states = []
        controller.subscribe(states.append)

        await controller.start_disconnect()
        controller.log_notification_delivered("n1", "T", "B")
        await controller.stop_disconnect()
        controller.finish_aftermath()

        assert all(isinstance(s, AppState) for s in states)
        assert isinstance(states[0].phase, Disconnecting)
        assert states[1].unread_count == 1
        assert isinstance(states[2].phase, Aftermath)
        assert isinstance(states[-1].phase, Idle)
        assert states[-1].notification_log[0].id == "n1"

    @pytest.mark.asyncio
    async def test_unsubscribe(self, controller):
        observer = Mock()
        unsubscribe = controller.subscribe(observer)
        unsubscribe()
        controller.log_notification_delivered("n1", "T", "B")
        observer.assert_not_called()

    def test_observer_error_is_swallowed(self, controller):
        controller.subscribe(Mock(side_effect=RuntimeError("ui gone")))
        controller.log_notification_delivered("n1", "T", "B")
        assert controller.state.unread_count == 1

    @pytest.mark.asyncio
    async def test_tick_publishes_elapsed(self, log_store, fixed_copy_engine, clock, delivery):
        controller = _make_controller(
            log_store, fixed_copy_engine, clock, delivery, tick_interval_s=0.01
        )
        await controller.start_disconnect()
        clock.advance(42)
        await asyncio.sleep(0.05)

        assert controller.state.phase.session.elapsed_seconds == 42
        await controller.stop_disconnect()
        assert not controller.ticker.running


# ============================================================================
# Wiring
# ============================================================================


class TestBuildController:
    @pytest.mark.asyncio
    async def test_build_from_config(self, tmp_path, clock):
        config = Config(data_dir=str(tmp_path), scheduler=SchedulerConfig(batch_size=2))
        delivery = RecordingDeliveryService()

        controller = build_controller(config, delivery, clock=clock)
        await controller.start_disconnect()
        controller.log_notification_delivered(delivery.requests[0].identifier, "T", "B")

        assert len(delivery.requests) == 2
        assert (tmp_path / "notification_log.json").exists()
        await controller.close()
