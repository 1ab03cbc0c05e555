"""Unit tests for AlertStateMachine."""

import pytest
from unittest.mock import Mock

from noisemeter.services.alert_machine import AlertState, AlertStateMachine


def feed(machine, levels, clock=None, step=0.0):
    fired = []
    for level in levels:
        fired.append(machine.evaluate(level))
        if clock is not None:
            clock.advance(step)
    return fired


@pytest.mark.unit
class TestAlertStateMachine:
    """Test cases for AlertStateMachine."""

    def test_initial_state(self):
        """Test a new machine is idle with no alerts."""
        machine = AlertStateMachine()

        assert machine.state is AlertState.IDLE
        assert machine.alert_count == 0
        assert machine.last_alert_time is None
        assert machine.threshold == 80.0
        assert machine.cooldown_seconds == 2.0

    def test_edge_triggered(self, fake_clock):
        """Test repeated levels above threshold fire only on the rising edge."""
        machine = AlertStateMachine(threshold=80.0, cooldown_seconds=0.0, clock=fake_clock)

        fired = feed(machine, [60, 85, 85, 85, 40, 85], fake_clock, step=0.05)

        assert fired == [False, True, False, False, False, True]
        assert machine.alert_count == 2

    def test_threshold_is_inclusive(self, fake_clock):
        """Test a level exactly at the threshold triggers."""
        machine = AlertStateMachine(threshold=80.0, clock=fake_clock)

        assert machine.evaluate(80.0) is True
        assert machine.is_triggered

    def test_cooldown_suppresses_fast_crossings(self, fake_clock):
        """Test crossings 1s apart fire once and a crossing 3s after the first fires again."""
        machine = AlertStateMachine(threshold=80.0, cooldown_seconds=2.0, clock=fake_clock)

        assert machine.evaluate(90) is True       # t = 0
        fake_clock.advance(0.5)
        assert machine.evaluate(50) is False
        fake_clock.advance(0.5)
        assert machine.evaluate(90) is False      # t = 1, suppressed
        assert machine.is_triggered               # still shown as triggered
        fake_clock.advance(1.0)
        assert machine.evaluate(50) is False
        fake_clock.advance(1.0)
        assert machine.evaluate(90) is True       # t = 3

        assert machine.alert_count == 2

    def test_suppressed_edge_does_not_refire_while_above(self, fake_clock):
        """Test staying above threshold after a suppressed edge never fires."""
        machine = AlertStateMachine(threshold=80.0, cooldown_seconds=2.0, clock=fake_clock)
        machine.evaluate(90)
        machine.evaluate(50)
        fake_clock.advance(1.0)
        machine.evaluate(90)

        fake_clock.advance(5.0)
        assert machine.evaluate(95) is False
        assert machine.alert_count == 1

    def test_disabled_tracks_state_without_firing(self, fake_clock):
        """Test disabled alerting still reports TRIGGERED but never counts."""
        callback = Mock()
        machine = AlertStateMachine(threshold=80.0, enabled=False, on_alert=callback, clock=fake_clock)

        assert machine.evaluate(90) is False
        assert machine.is_triggered
        assert machine.evaluate(40) is False
        assert not machine.is_triggered

        assert machine.alert_count == 0
        callback.assert_not_called()

    def test_enabling_while_above_waits_for_next_edge(self, fake_clock):
        """Test enabling alerts mid-excursion does not fire until the next crossing."""
        machine = AlertStateMachine(threshold=80.0, enabled=False, clock=fake_clock)
        machine.evaluate(90)

        machine.enabled = True
        assert machine.evaluate(90) is False
        machine.evaluate(40)
        assert machine.evaluate(90) is True

    def test_callback_receives_alert_details(self, fake_clock):
        """Test the notification callback gets level, count and time."""
        callback = Mock()
        machine = AlertStateMachine(threshold=70.0, on_alert=callback, clock=fake_clock)

        machine.evaluate(75.0)

        callback.assert_called_once_with(75.0, 1, fake_clock.now)
        assert machine.last_alert_time == fake_clock.now

    def test_falling_edge_is_silent(self, fake_clock):
        """Test dropping below threshold emits nothing."""
        callback = Mock()
        machine = AlertStateMachine(threshold=80.0, on_alert=callback, clock=fake_clock)
        machine.evaluate(90)
        callback.reset_mock()

        assert machine.evaluate(10) is False
        assert machine.state is AlertState.IDLE
        callback.assert_not_called()

    def test_reset(self, fake_clock):
        """Test reset clears state, count and cooldown."""
        machine = AlertStateMachine(threshold=80.0, clock=fake_clock)
        machine.evaluate(90)

        machine.reset()

        assert machine.state is AlertState.IDLE
        assert machine.alert_count == 0
        assert machine.last_alert_time is None
        assert machine.evaluate(90) is True

    def test_clear_trigger_keeps_count(self, fake_clock):
        """Test clear_trigger only drops the triggered flag."""
        machine = AlertStateMachine(threshold=80.0, clock=fake_clock)
        machine.evaluate(90)

        machine.clear_trigger()

        assert not machine.is_triggered
        assert machine.alert_count == 1
