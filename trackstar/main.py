# main.py
import logging
from datetime import datetime

from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from . import arbitration, crud, errors, schemas
from .config import configure_logging
from .database import get_db, init_db
from .models import DeviceState
from .push_service import send_motion_alert
from .security import create_access_token, get_authenticated_device_id, get_current_owner_id
from .state_machine import as_utc, utcnow

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Trackstar API",
    description="API para dispositivos de rastreamento: modo vigia, detecção de furto e alertas push.",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"], allow_credentials=True, allow_methods=["*"], allow_headers=["*"],
)


# --- Dependências substituíveis nos testes ---
def get_now() -> datetime:
    return utcnow()

def get_dispatcher() -> arbitration.Dispatcher:
    return send_motion_alert


# --- Tratamento de erros ---
@app.exception_handler(errors.TrackstarError)
async def trackstar_error_handler(request: Request, exc: errors.TrackstarError):
    if isinstance(exc, errors.Internal):
        logger.error("Internal error on %s %s: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid input", "details": jsonable_encoder(exc.errors())},
    )

@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# --- Eventos de Ciclo de Vida do FastAPI ---
@app.on_event("startup")
def startup_event():
    """Executado quando a aplicação FastAPI inicia."""
    configure_logging()
    init_db()
    logger.info("Trackstar API started")


def _summary(device) -> schemas.DeviceSummary:
    return schemas.DeviceSummary(id=device.id, state=device.state, alarm_active=device.alarm_active)


@app.get("/health", summary="Health check")
def health():
    return {"status": "ok", "timestamp": utcnow().isoformat()}


# --- Auth Endpoints ---
@app.post("/api/auth/signup", response_model=schemas.TokenResponse, status_code=201, summary="Cria uma conta")
def signup(payload: schemas.SignupRequest, db: Session = Depends(get_db)):
    if crud.get_user_by_email(db, email=payload.email):
        raise errors.Conflict("Email already registered")
    user = crud.create_user(db, email=payload.email, password=payload.password)
    return schemas.TokenResponse(token=create_access_token(user.id, user.email), user=schemas.UserOut(id=user.id, email=user.email))

@app.post("/api/auth/login", response_model=schemas.TokenResponse, summary="Login com e-mail e senha")
def login(payload: schemas.LoginRequest, db: Session = Depends(get_db)):
    user = crud.authenticate_user(db, payload.email, payload.password)
    if user is None:
        raise errors.Unauthenticated("Invalid credentials")
    return schemas.TokenResponse(token=create_access_token(user.id, user.email), user=schemas.UserOut(id=user.id, email=user.email))

@app.post("/api/auth/google", response_model=schemas.TokenResponse, summary="Login com conta Google")
def google_auth(payload: schemas.GoogleAuthRequest, db: Session = Depends(get_db)):
    user = crud.find_or_create_google_user(db, payload.google_id, payload.email)
    return schemas.TokenResponse(token=create_access_token(user.id, user.email), user=schemas.UserOut(id=user.id, email=user.email))

@app.post("/api/auth/push-token", response_model=schemas.SuccessResponse, summary="Salva o token Expo do usuário")
def save_push_token(payload: schemas.PushTokenRequest, owner_id: int = Depends(get_current_owner_id), db: Session = Depends(get_db)):
    crud.set_push_token(db, owner_id, payload.push_token)
    return schemas.SuccessResponse()

@app.get("/api/auth/me", response_model=schemas.MeResponse, summary="Usuário atual")
def read_me(owner_id: int = Depends(get_current_owner_id), db: Session = Depends(get_db)):
    user = crud.get_user(db, owner_id)
    if user is None:
        raise errors.NotFound("User not found")
    return schemas.MeResponse(user=schemas.UserDetail(id=user.id, email=user.email, created_at=as_utc(user.created_at)))


# --- Owner (app) Endpoints ---
@app.post("/api/device/claim", response_model=schemas.DeviceResponse, summary="Pareia um dispositivo (dados do QR code)")
def claim_device(payload: schemas.ClaimRequest, owner_id: int = Depends(get_current_owner_id), db: Session = Depends(get_db)):
    device = crud.claim_device(db, owner_id, payload.device_id, payload.secret)
    return schemas.DeviceResponse(device=_summary(device))

@app.delete("/api/device/unclaim", response_model=schemas.SuccessResponse, summary="Desfaz o pareamento")
def unclaim_device(owner_id: int = Depends(get_current_owner_id), db: Session = Depends(get_db)):
    crud.unclaim_device(db, owner_id)
    return schemas.SuccessResponse()

@app.get("/api/device/status", response_model=schemas.StatusResponse, summary="Estado do dispositivo do usuário")
def device_status(owner_id: int = Depends(get_current_owner_id), db: Session = Depends(get_db)):
    device = crud.get_device_by_owner(db, owner_id)
    if device is None:
        return schemas.StatusResponse(device=None)
    return schemas.StatusResponse(device=schemas.DeviceStatus(
        id=device.id,
        state=device.state,
        alarm_active=device.alarm_active,
        last_motion_at=as_utc(device.last_motion_at),
        last_latitude=device.last_latitude,
        last_longitude=device.last_longitude,
        last_gps_update=as_utc(device.last_gps_update),
    ))

@app.post("/api/device/state", response_model=schemas.DeviceResponse, summary="Define o estado (IDLE ou WATCH)")
def set_device_state(payload: schemas.StateRequest, owner_id: int = Depends(get_current_owner_id), db: Session = Depends(get_db)):
    device = arbitration.set_state(db, owner_id, DeviceState(payload.state))
    return schemas.DeviceResponse(device=_summary(device))

@app.post("/api/device/alarm", response_model=schemas.DeviceResponse, summary="Liga/desliga o alarme")
def set_device_alarm(payload: schemas.AlarmRequest, owner_id: int = Depends(get_current_owner_id), db: Session = Depends(get_db)):
    device = arbitration.set_alarm(db, owner_id, payload.active)
    return schemas.DeviceResponse(device=_summary(device))

@app.get("/api/device/events", response_model=schemas.EventsResponse, summary="Eventos de movimento da sessão atual")
def read_motion_events(owner_id: int = Depends(get_current_owner_id), db: Session = Depends(get_db)):
    device = crud.require_owned_device(db, owner_id)
    events = crud.get_motion_events(db, device.id)
    return schemas.EventsResponse(events=[
        schemas.MotionEventOut(id=e.id, device_id=e.device_id, timestamp=as_utc(e.timestamp)) for e in events
    ])

@app.get("/api/device/gps", response_model=schemas.GpsLocation, summary="Última posição GPS")
def read_gps(owner_id: int = Depends(get_current_owner_id), db: Session = Depends(get_db)):
    device = crud.require_owned_device(db, owner_id)
    if device.last_latitude is None or device.last_longitude is None:
        raise errors.NotFound("No GPS location available")
    return schemas.GpsLocation(
        latitude=device.last_latitude,
        longitude=device.last_longitude,
        last_gps_update=as_utc(device.last_gps_update),
    )


# --- ESP32 (device) Endpoints ---
@app.get("/api/esp32/poll", response_model=schemas.PollResponse, summary="Dispositivo consulta estado e comandos")
def poll(
    device_id: str = Depends(get_authenticated_device_id),
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
):
    result = arbitration.poll(db, device_id, now)
    return schemas.PollResponse(state=result.state, alarm=result.alarm)

@app.post(
    "/api/esp32/motion",
    response_model=schemas.MotionResponse,
    response_model_exclude_none=True,
    summary="Dispositivo reporta movimento",
)
def report_motion(
    device_id: str = Depends(get_authenticated_device_id),
    now: datetime = Depends(get_now),
    dispatcher: arbitration.Dispatcher = Depends(get_dispatcher),
    db: Session = Depends(get_db),
):
    result = arbitration.report_motion(db, device_id, now, dispatcher)
    if not result.processed:
        return schemas.MotionResponse(processed=False, reason=result.reason)
    return schemas.MotionResponse(processed=True, notification_sent=result.notification_sent, state=result.state)

@app.post("/api/esp32/gps", response_model=schemas.SuccessResponse, summary="Dispositivo reporta posição GPS")
def report_gps(
    payload: schemas.GpsReport,
    device_id: str = Depends(get_authenticated_device_id),
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
):
    crud.record_gps(db, device_id, payload.latitude, payload.longitude, now)
    return schemas.SuccessResponse()


def run():
    import uvicorn

    from .config import PORT

    configure_logging()
    uvicorn.run(app, host="0.0.0.0", port=PORT)


if __name__ == "__main__":
    run()
