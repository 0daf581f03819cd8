# crud.py
import logging
from typing import Callable, List, Optional, Tuple, TypeVar

import bcrypt
from sqlalchemy import delete, select
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from . import errors, models, state_machine
from .config import DEVICE_AUTO_PROVISION, DEVICE_UPDATE_MAX_ATTEMPTS, EVENTS_LIMIT

logger = logging.getLogger(__name__)

T = TypeVar("T")


# --- User CRUD ---
def get_user(db: Session, user_id: int) -> Optional[models.User]:
    return db.get(models.User, user_id)

def get_user_by_email(db: Session, email: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.email == email).first()

def get_user_by_google_id(db: Session, google_id: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.google_id == google_id).first()

def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')

def verify_password(password: str, hashed_password: Optional[str]) -> bool:
    if not hashed_password:
        return False
    return bcrypt.checkpw(password.encode('utf-8'), hashed_password.encode('utf-8'))

def create_user(db: Session, email: str, password: Optional[str] = None, google_id: Optional[str] = None) -> models.User:
    # Hash da senha antes de armazenar
    hashed_password = hash_password(password) if password is not None else None
    db_user = models.User(email=email, hashed_password=hashed_password, google_id=google_id)
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user

def authenticate_user(db: Session, email: str, password: str) -> Optional[models.User]:
    user = get_user_by_email(db, email)
    if user is None or not verify_password(password, user.hashed_password):
        return None
    return user

def find_or_create_google_user(db: Session, google_id: str, email: str) -> models.User:
    user = get_user_by_google_id(db, google_id)
    if user:
        return user
    # O e-mail pode já existir (cadastro com senha): vincula a conta Google
    user = get_user_by_email(db, email)
    if user:
        user.google_id = google_id
        db.commit()
        db.refresh(user)
        return user
    return create_user(db, email=email, google_id=google_id)

def set_push_token(db: Session, user_id: int, push_token: str) -> models.User:
    user = get_user(db, user_id)
    if user is None:
        raise errors.NotFound("User not found")
    user.push_token = push_token
    db.commit()
    return user


# --- Device CRUD ---
def get_device(db: Session, device_id: str) -> Optional[models.Device]:
    return db.get(models.Device, device_id)

def get_device_by_owner(db: Session, owner_id: int) -> Optional[models.Device]:
    return db.query(models.Device).filter(models.Device.owner_id == owner_id).first()

def require_owned_device(db: Session, owner_id: int) -> models.Device:
    device = get_device_by_owner(db, owner_id)
    if device is None:
        raise errors.NotFound("No device paired")
    return device

def create_device(db: Session, device_id: str, secret: str) -> models.Device:
    db_device = models.Device(id=device_id, secret=secret)
    db.add(db_device)
    db.commit()
    db.refresh(db_device)
    return db_device


def update_device(
    db: Session,
    device_id: str,
    mutate: Callable[[models.Device], T],
    max_attempts: int = DEVICE_UPDATE_MAX_ATTEMPTS,
) -> Tuple[models.Device, T]:
    """Read-modify-write atômico de uma linha de dispositivo.

    ``mutate`` recebe o dispositivo recém-lido e pode alterar outras linhas
    pela mesma sessão; tudo é confirmado num único commit. Um conflito de
    versão (outra requisição gravou a linha antes) desfaz a transação e
    reexecuta ``mutate`` sobre uma leitura nova.
    """
    for attempt in range(1, max_attempts + 1):
        stmt = (
            select(models.Device)
            .where(models.Device.id == device_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        device = db.execute(stmt).scalar_one_or_none()
        if device is None:
            db.rollback()
            raise errors.NotFound("Device not found")
        try:
            result = mutate(device)
        except Exception:
            db.rollback()
            raise
        try:
            db.commit()
        except StaleDataError:
            db.rollback()
            logger.warning("Concurrent update on device %s, retrying (attempt %d/%d)", device_id, attempt, max_attempts)
            continue
        return device, result
    raise errors.Internal("Failed to update device")


def apply_transition_effects(db: Session, device: models.Device, transition: state_machine.Transition, now) -> None:
    """Executa, na transação corrente, os efeitos de banco de uma transição."""
    if transition.create_event:
        db.add(models.MotionEvent(device_id=device.id, timestamp=now))
    if transition.purge_events:
        purge_motion_events(db, device.id)


# --- Registry (claim / unclaim) ---
def claim_device(db: Session, owner_id: int, device_id: str, secret: str) -> models.Device:
    device = get_device(db, device_id)
    if device is None:
        if not DEVICE_AUTO_PROVISION:
            raise errors.NotFound("Device not found")
        # Nada é provisionado para quem já tem um dispositivo pareado
        if get_device_by_owner(db, owner_id) is not None:
            raise errors.Conflict("You already have a device paired. Unpair it first.")
        logger.info("Provisioning unknown device %s on claim", device_id)
        try:
            device = create_device(db, device_id, secret)
        except IntegrityError:
            db.rollback()
            raise errors.Conflict("Device already exists, claim it again with its secret")
    elif device.secret != secret:
        raise errors.Forbidden("Invalid device secret")
    elif device.owner_id is not None and device.owner_id != owner_id:
        raise errors.Conflict("Device already claimed by another user")

    existing = get_device_by_owner(db, owner_id)
    if existing is not None and existing.id != device_id:
        raise errors.Conflict("You already have a device paired. Unpair it first.")

    def _claim(d: models.Device) -> None:
        # A linha pode ter sido reivindicada entre a leitura acima e o lock
        if d.owner_id is not None and d.owner_id != owner_id:
            raise errors.Conflict("Device already claimed by another user")
        d.owner_id = owner_id

    try:
        device, _ = update_device(db, device_id, _claim)
    except IntegrityError:
        # owner_id é unique: outro dispositivo foi vinculado em paralelo
        db.rollback()
        raise errors.Conflict("You already have a device paired. Unpair it first.")
    logger.info("Device %s claimed by user %s", device_id, owner_id)
    return device


def unclaim_device(db: Session, owner_id: int) -> models.Device:
    device = require_owned_device(db, owner_id)

    def _release(d: models.Device) -> None:
        transition = state_machine.release(d)
        apply_transition_effects(db, d, transition, None)

    device, _ = update_device(db, device.id, _release)
    logger.info("Device %s unclaimed by user %s", device.id, owner_id)
    return device


# --- GPS ---
def record_gps(db: Session, device_id: str, latitude: float, longitude: float, now) -> models.Device:
    def _record(d: models.Device) -> None:
        d.last_latitude = latitude
        d.last_longitude = longitude
        d.last_gps_update = now

    device, _ = update_device(db, device_id, _record)
    return device


# --- MotionEvent CRUD ---
def get_motion_events(db: Session, device_id: str, limit: int = EVENTS_LIMIT) -> List[models.MotionEvent]:
    return (
        db.query(models.MotionEvent)
        .filter(models.MotionEvent.device_id == device_id)
        .order_by(models.MotionEvent.timestamp.desc(), models.MotionEvent.id.desc())
        .limit(limit)
        .all()
    )

def count_motion_events(db: Session, device_id: str) -> int:
    return db.query(models.MotionEvent).filter(models.MotionEvent.device_id == device_id).count()

def purge_motion_events(db: Session, device_id: str) -> None:
    db.execute(delete(models.MotionEvent).where(models.MotionEvent.device_id == device_id))
