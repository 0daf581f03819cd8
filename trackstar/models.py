# models.py
import enum

from sqlalchemy import Boolean, Column, DateTime, Enum, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class DeviceState(str, enum.Enum):
    IDLE = "IDLE"
    WATCH = "WATCH"
    THEFT_DETECTED = "THEFT_DETECTED"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=True) # Vazio para contas federadas (Google)
    google_id = Column(String, unique=True, nullable=True)
    push_token = Column(String, nullable=True) # Token Expo, definido após o login
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    device = relationship("Device", back_populates="owner", uselist=False)


class Device(Base):
    __tablename__ = "devices"

    id = Column(String, primary_key=True, index=True) # ID gravado no firmware
    secret = Column(String, nullable=False)
    state = Column(Enum(DeviceState), default=DeviceState.IDLE, nullable=False)
    alarm_active = Column(Boolean, default=False, nullable=False)
    last_motion_at = Column(DateTime(timezone=True), nullable=True)
    # unique: um usuário tem no máximo um dispositivo
    owner_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=True)
    last_latitude = Column(Float, nullable=True)
    last_longitude = Column(Float, nullable=True)
    last_gps_update = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    version_id = Column(Integer, nullable=False)

    owner = relationship("User", back_populates="device")
    motion_events = relationship("MotionEvent", back_populates="device")

    # Compare-and-swap otimista: UPDATE ... WHERE version_id = <lido>
    __mapper_args__ = {"version_id_col": version_id}


class MotionEvent(Base):
    __tablename__ = "motion_events"

    id = Column(Integer, primary_key=True, index=True)
    device_id = Column(String, ForeignKey("devices.id"), index=True, nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)

    device = relationship("Device", back_populates="motion_events")
