"""Tick service - periodic elapsed-time refresh while a session runs."""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Callable

from loguru import logger

DEFAULT_TICK_INTERVAL_S = 1.0


class TickService:
    """
    Cancellable repeating task that calls ``on_tick`` every ``interval_s``.

    Best-effort cadence: a slow callback or a suspended process simply
    delays the next tick. Only one loop runs at a time; ``stop()`` waits
    for the cancelled loop to finish before returning.
    """

    def __init__(
        self,
        on_tick: Callable[[], Any],
        interval_s: float = DEFAULT_TICK_INTERVAL_S,
    ):
        self.on_tick = on_tick
        self.interval_s = interval_s
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start ticking. Raises RuntimeError if already running."""
        if self.running:
            raise RuntimeError("TickService is already running; stop() it first")
        self._task = asyncio.create_task(self._run_loop())
        logger.debug(f"[Ticker] Started (every {self.interval_s}s)")

    async def stop(self) -> None:
        """Cancel the loop and wait until it has exited. No-op if not running."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            # Only the loop's own cancellation is expected here
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
        logger.debug("[Ticker] Stopped")

    async def _run_loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_s)
            try:
                result = self.on_tick()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"[Ticker] Tick error: {e}")
