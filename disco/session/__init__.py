"""Disconnect session lifecycle."""

from disco.session.state import (
    Aftermath,
    AftermathSummary,
    DisconnectSession,
    Disconnecting,
    Idle,
    SessionPhase,
    SessionStateMachine,
    phase_name,
)
from disco.session.ticker import TickService

__all__ = [
    "Aftermath",
    "AftermathSummary",
    "DisconnectSession",
    "Disconnecting",
    "Idle",
    "SessionPhase",
    "SessionStateMachine",
    "TickService",
    "phase_name",
]
