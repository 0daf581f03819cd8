from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, StrictBool, StrictFloat
from pydantic.alias_generators import to_camel

from .models import DeviceState


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# --- User Schemas ---
class SignupRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6) # Será hashed no backend

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class GoogleAuthRequest(CamelModel):
    google_id: str
    email: EmailStr

class PushTokenRequest(CamelModel):
    push_token: str

class UserOut(CamelModel):
    id: int
    email: EmailStr

class UserDetail(UserOut):
    created_at: Optional[datetime] = None

class TokenResponse(BaseModel):
    token: str
    user: UserOut

class MeResponse(BaseModel):
    user: UserDetail


# --- Device Schemas ---
class ClaimRequest(CamelModel):
    device_id: str
    secret: str

class StateRequest(BaseModel):
    state: Literal["IDLE", "WATCH"]

class AlarmRequest(BaseModel):
    active: StrictBool

class GpsReport(BaseModel):
    latitude: StrictFloat
    longitude: StrictFloat

class DeviceSummary(CamelModel):
    id: str
    state: DeviceState
    alarm_active: bool

class DeviceStatus(DeviceSummary):
    last_motion_at: Optional[datetime] = None
    last_latitude: Optional[float] = None
    last_longitude: Optional[float] = None
    last_gps_update: Optional[datetime] = None

class DeviceResponse(BaseModel):
    device: DeviceSummary

class StatusResponse(BaseModel):
    device: Optional[DeviceStatus] = None

class GpsLocation(CamelModel):
    latitude: float
    longitude: float
    last_gps_update: Optional[datetime] = None


# --- MotionEvent Schemas ---
class MotionEventOut(CamelModel):
    id: int
    device_id: str
    timestamp: datetime

class EventsResponse(BaseModel):
    events: List[MotionEventOut]


# --- ESP32 Schemas ---
class PollResponse(BaseModel):
    state: DeviceState
    alarm: bool

class MotionResponse(CamelModel):
    processed: bool
    notification_sent: Optional[bool] = None
    state: Optional[DeviceState] = None
    reason: Optional[str] = None

class SuccessResponse(BaseModel):
    success: bool = True
