"""Disconnect session state machine.

Phases::

    Idle --start()--> Disconnecting --stop()--> Aftermath --finish()--> Idle
                        |    ^
                        +----+ tick()

Any other call is a logged no-op. A running session is never silently
replaced by a fresh one.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Callable, Union

from loguru import logger


@dataclass(frozen=True)
class DisconnectSession:
    """A running disconnect session."""

    started_at: datetime
    elapsed_seconds: int = 0
    id: uuid.UUID = field(default_factory=uuid.uuid4)


@dataclass(frozen=True)
class AftermathSummary:
    """Read-only result of a finished session."""

    session_id: uuid.UUID
    started_at: datetime
    ended_at: datetime
    total_seconds: int


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Disconnecting:
    session: DisconnectSession


@dataclass(frozen=True)
class Aftermath:
    summary: AftermathSummary


SessionPhase = Union[Idle, Disconnecting, Aftermath]


def _seconds_between(start: datetime, end: datetime) -> int:
    return max(0, int((end - start).total_seconds()))


def phase_name(phase: SessionPhase) -> str:
    if isinstance(phase, Idle):
        return "idle"
    if isinstance(phase, Disconnecting):
        return "disconnecting"
    if isinstance(phase, Aftermath):
        return "aftermath"
    raise TypeError(f"Unknown session phase: {phase!r}")


class SessionStateMachine:
    """Owns the current ``SessionPhase``. Starts ``Idle``."""

    def __init__(
        self,
        clock: Callable[[], datetime] = datetime.now,
        initial: SessionPhase | None = None,
    ):
        self._clock = clock
        self._phase: SessionPhase = initial if initial is not None else Idle()

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def is_disconnecting(self) -> bool:
        return isinstance(self._phase, Disconnecting)

    @property
    def session(self) -> DisconnectSession | None:
        if isinstance(self._phase, Disconnecting):
            return self._phase.session
        return None

    def start(self) -> DisconnectSession | None:
        """Idle -> Disconnecting with a fresh session. Rejected in other phases."""
        if not isinstance(self._phase, Idle):
            logger.warning(f"[Session] start() ignored in phase {phase_name(self._phase)}")
            return None

        session = DisconnectSession(started_at=self._clock())
        self._phase = Disconnecting(session)
        logger.info(f"[Session] Started {session.id}")
        return session

    def tick(self) -> DisconnectSession | None:
        """Refresh elapsed time of the running session. No-op outside Disconnecting."""
        if not isinstance(self._phase, Disconnecting):
            return None

        session = self._phase.session
        elapsed = _seconds_between(session.started_at, self._clock())
        # Wall clock may step backwards; elapsed never does
        elapsed = max(elapsed, session.elapsed_seconds)
        if elapsed != session.elapsed_seconds:
            session = replace(session, elapsed_seconds=elapsed)
            self._phase = Disconnecting(session)
        return session

    def stop(self) -> AftermathSummary | None:
        """Disconnecting -> Aftermath. No-op in other phases.

        ``total_seconds`` is measured from the wall clock, not the last tick,
        so ticks missed while suspended do not shorten the session.
        """
        if not isinstance(self._phase, Disconnecting):
            logger.debug(f"[Session] stop() ignored in phase {phase_name(self._phase)}")
            return None

        session = self._phase.session
        ended_at = self._clock()
        summary = AftermathSummary(
            session_id=session.id,
            started_at=session.started_at,
            ended_at=ended_at,
            total_seconds=_seconds_between(session.started_at, ended_at),
        )
        self._phase = Aftermath(summary)
        logger.info(f"[Session] Stopped {session.id} after {summary.total_seconds}s")
        return summary

    def finish(self) -> bool:
        """Aftermath -> Idle. No-op in other phases."""
        if not isinstance(self._phase, Aftermath):
            logger.debug(f"[Session] finish() ignored in phase {phase_name(self._phase)}")
            return False

        self._phase = Idle()
        return True
