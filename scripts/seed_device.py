"""Cria (ou mantém) um dispositivo de teste para desenvolvimento.

Uso: python scripts/seed_device.py [DEVICE_ID] [SECRET]
"""
import sys

from trackstar import crud
from trackstar.database import SessionLocal, init_db

DEFAULT_DEVICE_ID = "TEST-DEVICE-001"
DEFAULT_SECRET = "test-secret-123"


def seed(device_id: str = DEFAULT_DEVICE_ID, secret: str = DEFAULT_SECRET):
    init_db()
    db = SessionLocal()
    try:
        device = crud.get_device(db, device_id)
        if device is None:
            device = crud.create_device(db, device_id, secret)
        return device.id, device.secret
    finally:
        db.close()


def main():
    device_id = sys.argv[1] if len(sys.argv) > 1 else DEFAULT_DEVICE_ID
    secret = sys.argv[2] if len(sys.argv) > 2 else DEFAULT_SECRET
    device_id, secret = seed(device_id, secret)

    print(f"Dispositivo de teste: {device_id}")
    print("\nQR Code URL:")
    print(f"https://pair.trackstar/dev?d={device_id}&s={secret}")
    print("\nTeste com curl:")
    print(f'curl -H "x-device-id: {device_id}" -H "x-device-secret: {secret}" http://localhost:3000/api/esp32/poll')


if __name__ == "__main__":
    main()
