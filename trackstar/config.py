# config.py
import logging
import os

from dotenv import load_dotenv

load_dotenv() # Carrega variáveis de ambiente do .env

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# --- Database ---
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./trackstar.db")
DEVICE_UPDATE_MAX_ATTEMPTS = int(os.getenv("DEVICE_UPDATE_MAX_ATTEMPTS", "5"))

# --- Auth ---
_DEV_JWT_SECRET = "dev-only-insecure-jwt-secret"
JWT_SECRET = os.getenv("JWT_SECRET") or _DEV_JWT_SECRET
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_DAYS = int(os.getenv("ACCESS_TOKEN_EXPIRE_DAYS", "30"))

# Qualquer um que conheça um ID novo pode provisioná-lo; desligar quando os dispositivos vierem pré-cadastrados.
DEVICE_AUTO_PROVISION = _env_bool("DEVICE_AUTO_PROVISION", True)

# --- State machine ---
MOTION_TIMEOUT_SECONDS = float(os.getenv("MOTION_TIMEOUT_SECONDS", "10"))
EVENTS_LIMIT = int(os.getenv("EVENTS_LIMIT", "50"))

# --- Push (Expo) ---
EXPO_HOST = os.getenv("EXPO_HOST", "https://exp.host")
PUSH_TIMEOUT_SECONDS = float(os.getenv("PUSH_TIMEOUT_SECONDS", "5"))
PUSH_MAX_ATTEMPTS = int(os.getenv("PUSH_MAX_ATTEMPTS", "2"))

# --- Server ---
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
PORT = int(os.getenv("PORT", "3000"))


def configure_logging(level: str = LOG_LEVEL) -> None:
    """Configura o logger raiz uma única vez para o serviço."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    if JWT_SECRET == _DEV_JWT_SECRET:
        logger.warning("JWT_SECRET not set, using the insecure development key")
