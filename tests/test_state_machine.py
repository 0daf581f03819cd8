"""Regras puras de transição, sem banco."""
from datetime import datetime, timedelta, timezone

import pytest

from trackstar import state_machine
from trackstar.models import Device, DeviceState

T0 = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_device(state=DeviceState.IDLE, alarm=False, last_motion_at=None, owner_id=1):
    return Device(
        id="D1", secret="s1", state=state, alarm_active=alarm,
        last_motion_at=last_motion_at, owner_id=owner_id,
    )


@pytest.mark.unit
class TestMotion:

    def test_idle_motion_is_not_processed(self):
        device = make_device(DeviceState.IDLE)
        t = state_machine.on_motion(device, T0)
        assert t.processed is False
        assert t.reason == state_machine.NOT_WATCHING_REASON
        assert not t.create_event and not t.notify
        assert device.state == DeviceState.IDLE
        assert device.last_motion_at is None

    def test_watch_motion_opens_episode(self):
        device = make_device(DeviceState.WATCH)
        t = state_machine.on_motion(device, T0)
        assert t.processed and t.changed
        assert t.create_event and t.notify
        assert not t.purge_events
        assert device.state == DeviceState.THEFT_DETECTED
        assert device.last_motion_at == T0

    def test_watch_motion_keeps_alarm_value(self):
        device = make_device(DeviceState.WATCH, alarm=True)
        state_machine.on_motion(device, T0)
        assert device.alarm_active is True

    def test_repeat_motion_only_refreshes_timestamp(self):
        device = make_device(DeviceState.THEFT_DETECTED, last_motion_at=T0)
        later = T0 + timedelta(seconds=4)
        t = state_machine.on_motion(device, later)
        assert t.processed
        assert not t.changed
        assert not t.create_event and not t.notify
        assert device.last_motion_at == later


@pytest.mark.unit
class TestRecovery:

    def test_no_recovery_just_before_timeout(self):
        device = make_device(DeviceState.THEFT_DETECTED, alarm=True, last_motion_at=T0)
        t = state_machine.recover(device, T0 + timedelta(seconds=9.999))
        assert not t.changed
        assert device.state == DeviceState.THEFT_DETECTED
        assert device.alarm_active is True

    def test_exact_timeout_does_not_recover(self):
        device = make_device(DeviceState.THEFT_DETECTED, last_motion_at=T0)
        state_machine.recover(device, T0 + timedelta(seconds=10))
        assert device.state == DeviceState.THEFT_DETECTED

    def test_recovery_after_timeout_clears_alarm(self):
        device = make_device(DeviceState.THEFT_DETECTED, alarm=True, last_motion_at=T0)
        t = state_machine.recover(device, T0 + timedelta(seconds=10.001))
        assert t.from_state == DeviceState.THEFT_DETECTED
        assert t.to_state == DeviceState.WATCH
        assert not t.notify and not t.create_event and not t.purge_events
        assert device.alarm_active is False

    def test_recovery_ignores_other_states(self):
        for state in (DeviceState.IDLE, DeviceState.WATCH):
            device = make_device(state, alarm=True, last_motion_at=T0)
            t = state_machine.recover(device, T0 + timedelta(hours=1))
            assert not t.changed
            assert device.alarm_active is True

    def test_theft_without_motion_timestamp_never_recovers(self):
        device = make_device(DeviceState.THEFT_DETECTED, last_motion_at=None)
        assert not state_machine.is_expired(device, T0 + timedelta(days=1))

    def test_naive_timestamps_are_treated_as_utc(self):
        device = make_device(DeviceState.THEFT_DETECTED, last_motion_at=T0.replace(tzinfo=None))
        assert state_machine.is_expired(device, T0 + timedelta(seconds=11))
        assert not state_machine.is_expired(device, T0 + timedelta(seconds=5))


@pytest.mark.unit
class TestOwnerCommands:

    def test_idle_from_theft_purges_and_clears_alarm(self):
        device = make_device(DeviceState.THEFT_DETECTED, alarm=True, last_motion_at=T0)
        t = state_machine.set_state(device, DeviceState.IDLE)
        assert t.purge_events
        assert device.state == DeviceState.IDLE
        assert device.alarm_active is False

    def test_idle_on_idle_still_purges(self):
        device = make_device(DeviceState.IDLE, alarm=True)
        t = state_machine.set_state(device, DeviceState.IDLE)
        assert not t.changed
        assert t.purge_events
        assert device.alarm_active is False

    def test_watch_keeps_history(self):
        device = make_device(DeviceState.IDLE)
        t = state_machine.set_state(device, DeviceState.WATCH)
        assert not t.purge_events
        assert device.state == DeviceState.WATCH

    def test_owner_cannot_force_theft(self):
        with pytest.raises(ValueError):
            state_machine.set_state(make_device(), DeviceState.THEFT_DETECTED)

    def test_alarm_is_orthogonal_to_state(self):
        device = make_device(DeviceState.WATCH)
        t = state_machine.set_alarm(device, True)
        assert not t.changed
        assert device.state == DeviceState.WATCH
        assert device.alarm_active is True

    def test_release_forces_idle_and_drops_owner(self):
        device = make_device(DeviceState.THEFT_DETECTED, alarm=True, last_motion_at=T0)
        t = state_machine.release(device)
        assert t.purge_events
        assert device.owner_id is None
        assert device.state == DeviceState.IDLE
        assert device.alarm_active is False
