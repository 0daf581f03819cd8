"""Autenticação do dono (JWT bearer) e do dispositivo (ID + segredo)."""
import hmac
import logging
from datetime import datetime, timedelta, timezone

from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from . import crud, errors
from .config import ACCESS_TOKEN_EXPIRE_DAYS, JWT_ALGORITHM, JWT_SECRET
from .database import get_db

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(user_id: int, email: str) -> str:
    expire = datetime.now(timezone.utc) + timedelta(days=ACCESS_TOKEN_EXPIRE_DAYS)
    payload = {"sub": str(user_id), "email": email, "exp": expire}
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def verify_owner_token(token: str) -> int:
    """Devolve o ID do dono ou levanta Forbidden."""
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
        return int(payload["sub"])
    except (JWTError, KeyError, ValueError):
        raise errors.Forbidden("Invalid or expired token")


def get_current_owner_id(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> int:
    if credentials is None or not credentials.credentials:
        raise errors.Unauthenticated("Access token required")
    return verify_owner_token(credentials.credentials)


def get_authenticated_device_id(
    x_device_id: str = Header(None),
    x_device_secret: str = Header(None),
    db: Session = Depends(get_db),
) -> str:
    if not x_device_id or not x_device_secret:
        raise errors.Unauthenticated("Device credentials required")

    device = crud.get_device(db, x_device_id)
    if device is None:
        raise errors.NotFound("Device not found")
    if not hmac.compare_digest(device.secret.encode("utf-8"), x_device_secret.encode("utf-8")):
        logger.warning("Rejected credentials for device %s", x_device_id)
        raise errors.Forbidden("Invalid device credentials")
    return device.id
