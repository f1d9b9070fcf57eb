"""Disconnect controller - the single writer that drives the app.

Composes the session state machine, the batch scheduler and the
notification log store:

1. start_disconnect(): session starts, ticker starts, authorization is
   requested once, a batch of reminders is scheduled.
2. Delivery observations (foreground callbacks, resume resync) are merged
   into the log store; every log change pushes the unread count to the
   badge display.
3. stop_disconnect(): ticker and batch are cancelled, session becomes an
   aftermath summary.

Observers receive an immutable ``AppState`` after every change.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable

from loguru import logger

from disco.config.schema import Config
from disco.copy.engine import CopyEngine
from disco.notifications.delivery import (
    BadgeDisplay,
    DeliveredNotification,
    DeliveryService,
    NullBadgeDisplay,
)
from disco.notifications.log_store import NotificationLogStore
from disco.notifications.scheduler import BatchScheduler
from disco.notifications.schema import NotificationLogEntry
from disco.notifications.storage import JsonLogStorageBackend
from disco.session.state import (
    AftermathSummary,
    DisconnectSession,
    Disconnecting,
    Idle,
    SessionPhase,
    SessionStateMachine,
)
from disco.session.ticker import DEFAULT_TICK_INTERVAL_S, TickService


@dataclass(frozen=True)
class AppState:
    """Snapshot published to the UI."""

    phase: SessionPhase
    notification_log: tuple[NotificationLogEntry, ...] = ()
    unread_count: int = 0

    @property
    def is_disconnecting(self) -> bool:
        return isinstance(self.phase, Disconnecting)


StateObserver = Callable[[AppState], None]


class DisconnectController:
    """Drives the session lifecycle and keeps the log, badge and UI in step."""

    def __init__(
        self,
        machine: SessionStateMachine,
        log_store: NotificationLogStore,
        scheduler: BatchScheduler,
        delivery: DeliveryService,
        badge: BadgeDisplay | None = None,
        tick_interval_s: float = DEFAULT_TICK_INTERVAL_S,
    ):
        self.machine = machine
        self.log_store = log_store
        self.scheduler = scheduler
        self.delivery = delivery
        self.badge = badge or NullBadgeDisplay()
        self.ticker = TickService(self._tick, interval_s=tick_interval_s)

        self._lock = asyncio.Lock()
        self._has_requested_authorization = False
        self._authorized: bool | None = None
        self._observers: list[StateObserver] = []
        self._state = self._snapshot()

        self._unsubscribe_log = self.log_store.subscribe(self._on_log_changed)
        self._push_badge()

    # ------------------------------------------------------------------
    # State / observers
    # ------------------------------------------------------------------

    @property
    def state(self) -> AppState:
        return self._state

    @property
    def authorized(self) -> bool | None:
        """Authorization outcome, or None if not requested yet."""
        return self._authorized

    def subscribe(self, observer: StateObserver) -> Callable[[], None]:
        """Register an observer. Returns a callable that unsubscribes it."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    async def start_disconnect(self) -> DisconnectSession | None:
        """Start a session and schedule its reminders. No-op unless idle.

        The authorization prompt is awaited outside the lock so a session
        can always be stopped while it is pending. Reminders are only
        scheduled if the same session is still running afterwards.
        """
        async with self._lock:
            if not isinstance(self.machine.phase, Idle):
                logger.warning("[Controller] start_disconnect ignored: session not idle")
                return None

            await self.ticker.stop()
            session = self.machine.start()
            if session is None:
                return None
            self._publish()
            self.ticker.start()

        await self._ensure_authorization()

        async with self._lock:
            if not self._is_current(session):
                logger.info(f"[Controller] Session {session.id} ended before scheduling")
                return session
            await self._schedule_batch(session)
        return session

    async def stop_disconnect(self) -> AftermathSummary | None:
        """End the session. The log and badge are left untouched."""
        async with self._lock:
            await self.ticker.stop()
            try:
                await self.scheduler.stop()
            except Exception:
                logger.exception("[Controller] Failed to cancel pending notifications")

            summary = self.machine.stop()
            if summary is not None:
                self._publish()
            return summary

    def finish_aftermath(self) -> bool:
        """Return home from the aftermath screen. Unread notifications persist."""
        finished = self.machine.finish()
        if finished:
            self._publish()
        return finished

    async def close(self) -> None:
        """Stop ticking and cancel the pending batch."""
        await self.ticker.stop()
        try:
            await self.scheduler.stop()
        except Exception:
            logger.exception("[Controller] Failed to cancel pending notifications on close")
        self._unsubscribe_log()

    # ------------------------------------------------------------------
    # Notification log
    # ------------------------------------------------------------------

    def log_notification_attempt(
        self, identifier: str, title: str, body: str, copy_id: str | None = None
    ) -> None:
        self.log_store.upsert_attempt(identifier, title, body, copy_id)

    def log_notification_delivered(
        self, identifier: str, title: str, body: str, copy_id: str | None = None
    ) -> None:
        self.log_store.upsert_delivered(identifier, title, body, copy_id)

    def mark_notification_read(self, identifier: str) -> None:
        self.log_store.mark_read(identifier)

    def on_notification_presented(self, delivered: DeliveredNotification) -> None:
        """A notification was delivered while we were running."""
        self.log_notification_delivered(
            delivered.identifier,
            delivered.title,
            delivered.body,
            self._copy_id_for(delivered.identifier),
        )

    def on_notification_opened(self, delivered: DeliveredNotification) -> None:
        """The user tapped a notification: delivered, and read."""
        self.on_notification_presented(delivered)
        self.mark_notification_read(delivered.identifier)

    async def sync_delivered_notifications(self) -> int:
        """Replay everything the delivery service reports as delivered.

        Call on resume/foreground. Safe to repeat: upserts are idempotent.
        Returns the number of notifications replayed.
        """
        try:
            delivered = await self.delivery.query_delivered()
        except Exception:
            logger.exception("[Controller] Failed to query delivered notifications")
            return 0

        for n in delivered:
            self.on_notification_presented(n)
        if delivered:
            logger.debug(f"[Controller] Synced {len(delivered)} delivered notifications")
        return len(delivered)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _tick(self) -> None:
        if self.machine.tick() is not None:
            self._publish()

    def _is_current(self, session: DisconnectSession) -> bool:
        phase = self.machine.phase
        return isinstance(phase, Disconnecting) and phase.session.id == session.id

    async def _ensure_authorization(self) -> None:
        if self._has_requested_authorization:
            return
        self._has_requested_authorization = True

        try:
            self._authorized = bool(await self.delivery.request_authorization())
        except Exception:
            logger.exception("[Controller] Notification authorization request failed")
            self._authorized = False

        if not self._authorized:
            logger.warning("[Controller] Notifications not authorized; scheduling anyway")

    async def _schedule_batch(self, session: DisconnectSession) -> None:
        try:
            await self.scheduler.start(
                session_started_at=session.started_at,
                starting_badge=self.log_store.unread_count(),
            )
        except Exception:
            logger.exception("[Controller] Failed to schedule notifications")

    def _copy_id_for(self, identifier: str) -> str | None:
        scheduled = self.scheduler.lookup(identifier)
        return scheduled.copy_id if scheduled else None

    def _on_log_changed(self, entries: tuple[NotificationLogEntry, ...]) -> None:
        self._push_badge()
        self._publish()

    def _push_badge(self) -> None:
        try:
            self.badge.set_badge(self.log_store.unread_count())
        except Exception:
            logger.exception("[Controller] Failed to update badge")

    def _snapshot(self) -> AppState:
        return AppState(
            phase=self.machine.phase,
            notification_log=self.log_store.entries,
            unread_count=self.log_store.unread_count(),
        )

    def _publish(self) -> None:
        self._state = self._snapshot()
        for observer in list(self._observers):
            try:
                observer(self._state)
            except Exception:
                logger.exception("[Controller] State observer failed")


def build_controller(
    config: Config,
    delivery: DeliveryService,
    badge: BadgeDisplay | None = None,
    copy_engine: CopyEngine | None = None,
    clock: Callable[[], datetime] = datetime.now,
    rng: random.Random | None = None,
) -> DisconnectController:
    """Wire a controller from configuration.

    Raises:
        CopyConfigError: the configured copy file cannot be loaded.
    """
    if copy_engine is None:
        copy_path = Path(config.copy_path) if config.copy_path else None
        copy_engine = CopyEngine.from_path(copy_path, rng=rng)

    log_store = NotificationLogStore(JsonLogStorageBackend(config.log_path), clock=clock)
    scheduler = BatchScheduler(copy_engine, delivery, config=config.scheduler, clock=clock)
    return DisconnectController(
        machine=SessionStateMachine(clock=clock),
        log_store=log_store,
        scheduler=scheduler,
        delivery=delivery,
        badge=badge,
        tick_interval_s=config.session.tick_interval_s,
    )
