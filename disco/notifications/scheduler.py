"""Batch notification scheduler.

Pre-schedules a whole batch of reminders up front, because the host may
suspend the process and it cannot keep scheduling one at a time. Each
request carries its final badge value for the same reason: nothing runs
at delivery time to increment a counter.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Callable

from loguru import logger

from disco.config.schema import SchedulerConfig

if TYPE_CHECKING:
    from disco.copy.engine import CopyEngine
    from disco.notifications.delivery import DeliveryService


@dataclass(frozen=True)
class ScheduledNotification:
    """One request issued for the current batch."""

    identifier: str
    fire_after_seconds: int
    title: str
    body: str
    copy_id: str
    badge: int


class BatchScheduler:
    """Issues and cancels batches of future notifications.

    Only the identifiers of the *current* batch are tracked. A new batch is
    never issued before the previous one has been cancelled.
    """

    def __init__(
        self,
        copy_engine: "CopyEngine",
        delivery: "DeliveryService",
        config: SchedulerConfig | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.copy_engine = copy_engine
        self.delivery = delivery
        self.config = config or SchedulerConfig()
        self._clock = clock
        self._pending: dict[str, ScheduledNotification] = {}

    @property
    def pending_identifiers(self) -> set[str]:
        return set(self._pending)

    def lookup(self, identifier: str) -> ScheduledNotification | None:
        """Return the current-batch request for ``identifier``, if any."""
        return self._pending.get(identifier)

    async def start(
        self, session_started_at: datetime, starting_badge: int
    ) -> list[ScheduledNotification]:
        """Cancel the current batch, then schedule a fresh one.

        Args:
            session_started_at: Start of the session the reminders are for.
            starting_badge: Unread count at scheduling time; the n-th
                request (1-based) carries ``starting_badge + n``.

        Returns:
            The requests issued, in fire order.
        """
        await self.stop()

        elapsed_now = max(0, int((self._clock() - session_started_at).total_seconds()))
        min_trigger = self.config.min_trigger_seconds
        cumulative_delay = 0
        batch: list[ScheduledNotification] = []

        for i in range(self.config.batch_size):
            projected_elapsed = elapsed_now + cumulative_delay
            next_delay = self.copy_engine.next_interval(projected_elapsed)
            cumulative_delay += max(min_trigger, next_delay)

            msg = self.copy_engine.make_message(elapsed_now + cumulative_delay)
            scheduled = ScheduledNotification(
                identifier=str(uuid.uuid4()),
                fire_after_seconds=cumulative_delay,
                title=msg.title,
                body=msg.body,
                copy_id=msg.copy_id,
                badge=starting_badge + i + 1,
            )

            await self.delivery.schedule(
                scheduled.identifier,
                scheduled.fire_after_seconds,
                scheduled.title,
                scheduled.body,
                scheduled.badge,
            )
            self._pending[scheduled.identifier] = scheduled
            batch.append(scheduled)

        if batch:
            logger.info(
                f"[Scheduler] Scheduled {len(batch)} notifications "
                f"(elapsed={elapsed_now}s, last in {cumulative_delay}s)"
            )
        return batch

    async def stop(self) -> None:
        """Cancel every pending request of the current batch. No-op if none."""
        if not self._pending:
            return

        identifiers = set(self._pending)
        try:
            await self.delivery.cancel_pending(identifiers)
            logger.info(f"[Scheduler] Cancelled {len(identifiers)} pending notifications")
        finally:
            self._pending.clear()
