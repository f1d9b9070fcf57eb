"""Delivery collaborator interfaces.

disco never displays notifications itself. It asks a ``DeliveryService``
to deliver them later (the host may suspend the process meanwhile) and
pushes the unread count to a ``BadgeDisplay``.

``LocalDeliveryService`` is an in-process implementation backed by asyncio
timers, used by the CLI. ``RecordingDeliveryService`` only records requests.
"""

from __future__ import annotations

import asyncio
import inspect
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from loguru import logger


@dataclass(frozen=True)
class DeliveredNotification:
    """A notification the delivery service reports as already delivered."""

    identifier: str
    title: str
    body: str
    badge: int | None = None
    delivered_at: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class DeliveryRequest:
    """A single schedule() call."""

    identifier: str
    fire_after_seconds: int
    title: str
    body: str
    badge: int


class DeliveryService(ABC):
    """External service that delivers notifications on our behalf."""

    @abstractmethod
    async def request_authorization(self) -> bool:
        """Ask the user for permission to deliver notifications."""

    @abstractmethod
    async def schedule(
        self,
        identifier: str,
        fire_after_seconds: int,
        title: str,
        body: str,
        badge: int,
    ) -> None:
        """Deliver a notification ``fire_after_seconds`` (>= 1) from now."""

    @abstractmethod
    async def cancel_pending(self, identifiers: set[str]) -> None:
        """Cancel not-yet-delivered requests. Best-effort."""

    @abstractmethod
    async def query_delivered(self) -> list[DeliveredNotification]:
        """List notifications delivered so far."""


class BadgeDisplay(ABC):
    """Shows the unread count (e.g. an app icon badge)."""

    @abstractmethod
    def set_badge(self, count: int) -> None: ...


class NullBadgeDisplay(BadgeDisplay):
    """Badge display that shows nothing."""

    def set_badge(self, count: int) -> None:
        pass


# ============================================================================
# Recording service (dry runs)
# ============================================================================


class RecordingDeliveryService(DeliveryService):
    """Records schedule/cancel calls without delivering anything."""

    def __init__(self, authorized: bool = True):
        self.authorized = authorized
        self.requests: list[DeliveryRequest] = []
        self.cancelled: list[set[str]] = []

    async def request_authorization(self) -> bool:
        return self.authorized

    async def schedule(
        self,
        identifier: str,
        fire_after_seconds: int,
        title: str,
        body: str,
        badge: int,
    ) -> None:
        self.requests.append(DeliveryRequest(identifier, fire_after_seconds, title, body, badge))

    async def cancel_pending(self, identifiers: set[str]) -> None:
        self.cancelled.append(set(identifiers))

    async def query_delivered(self) -> list[DeliveredNotification]:
        return []


# ============================================================================
# Local asyncio service
# ============================================================================


class LocalDeliveryService(DeliveryService, BadgeDisplay):
    """Delivers notifications in-process with one asyncio timer per request.

    ``on_deliver`` (sync or async) is called for every delivery, which is
    the equivalent of a foreground presentation callback.
    """

    def __init__(
        self,
        on_deliver: Callable[[DeliveredNotification], Any] | None = None,
        authorized: bool = True,
    ):
        self.on_deliver = on_deliver
        self.authorized = authorized
        self.badge = 0
        self._pending: dict[str, asyncio.Task] = {}
        self._delivered: list[DeliveredNotification] = []

    @property
    def pending_identifiers(self) -> set[str]:
        return set(self._pending)

    async def request_authorization(self) -> bool:
        logger.debug(f"[Delivery] Authorization {'granted' if self.authorized else 'denied'}")
        return self.authorized

    async def schedule(
        self,
        identifier: str,
        fire_after_seconds: int,
        title: str,
        body: str,
        badge: int,
    ) -> None:
        if fire_after_seconds < 1:
            raise ValueError(f"fire_after_seconds must be >= 1, got {fire_after_seconds}")
        if not self.authorized:
            logger.debug(f"[Delivery] Not authorized, dropping {identifier}")
            return

        previous = self._pending.pop(identifier, None)
        if previous:
            previous.cancel()

        self._pending[identifier] = asyncio.ensure_future(
            self._fire(identifier, fire_after_seconds, title, body, badge)
        )

    async def cancel_pending(self, identifiers: set[str]) -> None:
        cancelled = 0
        for identifier in identifiers:
            task = self._pending.pop(identifier, None)
            if task and not task.done():
                task.cancel()
                cancelled += 1
        logger.debug(f"[Delivery] Cancelled {cancelled}/{len(identifiers)} pending")

    async def query_delivered(self) -> list[DeliveredNotification]:
        return list(self._delivered)

    def set_badge(self, count: int) -> None:
        self.badge = count

    def close(self) -> None:
        """Cancel all pending timers."""
        for task in self._pending.values():
            task.cancel()
        self._pending.clear()

    async def _fire(
        self, identifier: str, delay: int, title: str, body: str, badge: int
    ) -> None:
        try:
            await asyncio.sleep(delay)
        except asyncio.CancelledError:
            return

        self._pending.pop(identifier, None)
        delivered = DeliveredNotification(identifier, title, body, badge)
        self._delivered.append(delivered)
        self.badge = badge
        logger.debug(f"[Delivery] Delivered {identifier}")
        if not self.on_deliver:
            return

        try:
            result = self.on_deliver(delivered)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception(f"[Delivery] Delivery callback failed for {identifier}")
