"""Regras de transição do dispositivo (IDLE / WATCH / THEFT_DETECTED).

Funções puras sobre a linha ``Device``: alteram apenas atributos do objeto
e devolvem uma ``Transition`` descrevendo os efeitos colaterais que o
chamador deve executar (criar/apagar MotionEvents, enviar notificação).
Nenhuma função aqui toca no banco ou na rede.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from .config import MOTION_TIMEOUT_SECONDS
from .models import Device, DeviceState

MOTION_TIMEOUT = timedelta(seconds=MOTION_TIMEOUT_SECONDS)

NOT_WATCHING_REASON = "Device not in watch mode"


@dataclass
class Transition:
    from_state: DeviceState
    to_state: DeviceState
    processed: bool = True
    create_event: bool = False
    purge_events: bool = False
    notify: bool = False
    reason: Optional[str] = None

    @property
    def changed(self) -> bool:
        return self.from_state != self.to_state


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite devolve datetimes sem tzinfo
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def on_motion(device: Device, now: datetime) -> Transition:
    """Movimento reportado pelo dispositivo.

    Só WATCH -> THEFT_DETECTED cria evento e notifica; dentro de um episódio
    já aberto apenas renova ``last_motion_at``.
    """
    current = device.state
    if current not in (DeviceState.WATCH, DeviceState.THEFT_DETECTED):
        return Transition(current, current, processed=False, reason=NOT_WATCHING_REASON)

    device.state = DeviceState.THEFT_DETECTED
    device.last_motion_at = now
    new_episode = current == DeviceState.WATCH
    return Transition(
        current,
        DeviceState.THEFT_DETECTED,
        create_event=new_episode,
        notify=new_episode,
    )


def is_expired(device: Device, now: datetime, timeout: timedelta = MOTION_TIMEOUT) -> bool:
    if device.state != DeviceState.THEFT_DETECTED or device.last_motion_at is None:
        return False
    return as_utc(now) - as_utc(device.last_motion_at) > timeout


def recover(device: Device, now: datetime, timeout: timedelta = MOTION_TIMEOUT) -> Transition:
    """THEFT_DETECTED sem movimento há mais de ``timeout`` volta para WATCH."""
    current = device.state
    if not is_expired(device, now, timeout):
        return Transition(current, current)
    device.state = DeviceState.WATCH
    device.alarm_active = False
    return Transition(current, DeviceState.WATCH)


def set_state(device: Device, target: DeviceState) -> Transition:
    if target not in (DeviceState.IDLE, DeviceState.WATCH):
        raise ValueError(f"Owners cannot set state {target}")
    current = device.state
    device.state = target
    device.alarm_active = False
    # IDLE sempre limpa o histórico, mesmo se já estava IDLE
    return Transition(current, target, purge_events=target == DeviceState.IDLE)


def set_alarm(device: Device, active: bool) -> Transition:
    device.alarm_active = active
    return Transition(device.state, device.state)


def release(device: Device) -> Transition:
    """Desvincula o dono: força IDLE com alarme desligado."""
    transition = set_state(device, DeviceState.IDLE)
    device.owner_id = None
    return transition
