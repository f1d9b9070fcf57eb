"""Unit tests for SessionStateMachine."""

import pytest

from disco.session.state import (
    Aftermath,
    Disconnecting,
    Idle,
    SessionStateMachine,
    phase_name,
)


@pytest.fixture
def machine(clock):
    return SessionStateMachine(clock=clock)


class TestTransitions:
    def test_initial_idle(self, machine):
        assert isinstance(machine.phase, Idle)
        assert machine.session is None

    def test_start(self, machine, clock):
        session = machine.start()

        assert isinstance(machine.phase, Disconnecting)
        assert machine.phase.session == session
        assert session.started_at == clock()
        assert session.elapsed_seconds == 0

    def test_stop_total_seconds(self, machine, clock):
        """Stopping 125s after start reports a 125s total."""
        session = machine.start()
        clock.advance(125)

        summary = machine.stop()

        assert isinstance(machine.phase, Aftermath)
        assert summary.total_seconds == 125
        assert summary.session_id == session.id
        assert summary.started_at == session.started_at
        assert summary.ended_at == clock()

    def test_total_seconds_from_wall_clock_not_last_tick(self, machine, clock):
        machine.start()
        clock.advance(10)
        machine.tick()
        clock.advance(500)  # suspended, no ticks

        assert machine.stop().total_seconds == 510

    def test_stop_on_idle_is_noop(self, machine):
        """Stopping while idle changes nothing."""
        assert machine.stop() is None
        assert isinstance(machine.phase, Idle)

    def test_finish(self, machine):
        machine.start()
        machine.stop()
        assert machine.finish() is True
        assert isinstance(machine.phase, Idle)

    def test_full_cycle_twice_gives_new_session(self, machine):
        first = machine.start()
        machine.stop()
        machine.finish()
        second = machine.start()
        assert second.id != first.id


class TestRejectedTransitions:
    def test_start_while_disconnecting(self, machine, clock):
        session = machine.start()
        clock.advance(30)
        machine.tick()

        assert machine.start() is None
        assert machine.session.id == session.id
        assert machine.session.elapsed_seconds == 30

    def test_start_from_aftermath(self, machine):
        machine.start()
        summary = machine.stop()
        assert machine.start() is None
        assert machine.phase == Aftermath(summary)

    def test_tick_outside_disconnecting(self, machine):
        assert machine.tick() is None
        assert isinstance(machine.phase, Idle)

        machine.start()
        machine.stop()
        phase = machine.phase
        assert machine.tick() is None
        assert machine.phase == phase

    def test_finish_outside_aftermath(self, machine):
        assert machine.finish() is False
        machine.start()
        assert machine.finish() is False
        assert isinstance(machine.phase, Disconnecting)

    def test_stop_twice(self, machine):
        machine.start()
        summary = machine.stop()
        assert machine.stop() is None
        assert machine.phase == Aftermath(summary)


class TestTick:
    def test_tick_updates_same_session(self, machine, clock):
        session = machine.start()
        clock.advance(3.7)

        ticked = machine.tick()

        assert ticked.id == session.id
        assert ticked.elapsed_seconds == 3
        assert machine.session.elapsed_seconds == 3

    def test_elapsed_never_decreases(self, machine, clock):
        machine.start()
        clock.advance(60)
        machine.tick()
        clock.advance(-30)  # wall clock stepped back

        assert machine.tick().elapsed_seconds == 60

    def test_clock_before_start_clamps_to_zero(self, machine, clock):
        machine.start()
        clock.advance(-10)
        assert machine.tick().elapsed_seconds == 0
        assert machine.stop().total_seconds == 0


def test_phase_name():
    assert phase_name(Idle()) == "idle"
    with pytest.raises(TypeError):
        phase_name("bogus")
