"""Arbitragem de movimento: relatórios do dispositivo e comandos do dono.

Cada operação é um único ``crud.update_device`` (transação por linha) que
aplica uma regra de ``state_machine``. A notificação é enviada só depois do
commit e o seu resultado nunca desfaz a transição.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from . import crud, errors, models, state_machine
from .models import DeviceState

logger = logging.getLogger(__name__)

# (push_token, device_id) -> enviado?
Dispatcher = Callable[[str, str], bool]


@dataclass
class MotionResult:
    processed: bool
    notification_sent: bool = False
    state: Optional[DeviceState] = None
    reason: Optional[str] = None


@dataclass
class PollResult:
    state: DeviceState
    alarm: bool


def report_motion(db: Session, device_id: str, now: datetime, dispatcher: Dispatcher) -> MotionResult:
    def _motion(device: models.Device) -> state_machine.Transition:
        transition = state_machine.on_motion(device, now)
        crud.apply_transition_effects(db, device, transition, now)
        return transition

    device, transition = crud.update_device(db, device_id, _motion)

    if not transition.processed:
        logger.debug("Motion from %s ignored in state %s", device_id, transition.from_state.value)
        return MotionResult(processed=False, reason=transition.reason)

    if transition.changed:
        logger.info("Device %s: %s -> %s", device_id, transition.from_state.value, transition.to_state.value)

    notification_sent = False
    if transition.notify:
        notification_sent = _dispatch(db, device, dispatcher)

    return MotionResult(processed=True, notification_sent=notification_sent, state=transition.to_state)


def _dispatch(db: Session, device: models.Device, dispatcher: Dispatcher) -> bool:
    owner = crud.get_user(db, device.owner_id) if device.owner_id is not None else None
    if owner is None or not owner.push_token:
        logger.info("No push token for owner of device %s", device.id)
        return False
    try:
        sent = bool(dispatcher(owner.push_token, device.id))
    except Exception:
        logger.exception("Motion alert dispatch failed for device %s", device.id)
        return False
    logger.info("Motion alert for device %s sent=%s", device.id, sent)
    return sent


def poll(db: Session, device_id: str, now: datetime) -> PollResult:
    device = crud.get_device(db, device_id)
    if device is None:
        raise errors.NotFound("Device not found")

    # Leitura simples quando não há recuperação a fazer
    if state_machine.is_expired(device, now):
        def _recover(d: models.Device) -> state_machine.Transition:
            return state_machine.recover(d, now)

        device, transition = crud.update_device(db, device_id, _recover)
        if transition.changed:
            logger.info("Device %s: no motion for %ss, %s -> %s", device_id,
                        state_machine.MOTION_TIMEOUT.total_seconds(),
                        transition.from_state.value, transition.to_state.value)

    return PollResult(state=device.state, alarm=device.alarm_active)


def set_state(db: Session, owner_id: int, target: DeviceState) -> models.Device:
    device = crud.require_owned_device(db, owner_id)

    def _set(d: models.Device) -> state_machine.Transition:
        transition = state_machine.set_state(d, target)
        crud.apply_transition_effects(db, d, transition, None)
        return transition

    device, transition = crud.update_device(db, device.id, _set)
    logger.info("Owner %s set device %s: %s -> %s", owner_id, device.id,
                transition.from_state.value, transition.to_state.value)
    return device


def set_alarm(db: Session, owner_id: int, active: bool) -> models.Device:
    device = crud.require_owned_device(db, owner_id)
    device, _ = crud.update_device(db, device.id, lambda d: state_machine.set_alarm(d, active))
    logger.info("Owner %s set alarm on device %s to %s", owner_id, device.id, active)
    return device
