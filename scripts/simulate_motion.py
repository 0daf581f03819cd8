"""Simula um ESP32: consulta o estado, reporta movimento e segue consultando.

Variáveis: API_URL, DEVICE_ID, DEVICE_SECRET.
"""
import os
import time

import httpx

API_URL = os.getenv("API_URL", "http://localhost:3000")
DEVICE_ID = os.getenv("DEVICE_ID", "TEST-DEVICE-001")
DEVICE_SECRET = os.getenv("DEVICE_SECRET", "test-secret-123")
POLL_INTERVAL_SECONDS = 2


def _headers():
    return {"x-device-id": DEVICE_ID, "x-device-secret": DEVICE_SECRET}


def poll(client: httpx.Client) -> dict:
    data = client.get("/api/esp32/poll", headers=_headers()).json()
    print("[POLL]", data)
    return data


def report_motion(client: httpx.Client) -> dict:
    data = client.post("/api/esp32/motion", headers=_headers()).json()
    print("[MOTION]", data)
    return data


def main():
    print("=== Trackstar Device Simulator ===")
    print(f"Device: {DEVICE_ID}")
    print(f"API: {API_URL}\n")

    with httpx.Client(base_url=API_URL, timeout=10) as client:
        print("1. Consulta inicial...")
        state = poll(client)
        if state.get("state") == "IDLE":
            print("\nDispositivo em IDLE. Ative o modo WATCH no app primeiro e rode de novo.\n")
            return

        print("\n2. Dispositivo em WATCH. Simulando movimento...")
        report_motion(client)

        print("\n3. Consultando o novo estado...")
        poll(client)

        print("\n4. Verifique a notificação \"Motion Detected!\" no celular.\n")
        print(f"5. Consultando a cada {POLL_INTERVAL_SECONDS}s (Ctrl+C para sair)...\n")
        try:
            while True:
                time.sleep(POLL_INTERVAL_SECONDS)
                poll(client)
        except KeyboardInterrupt:
            pass


if __name__ == "__main__":
    main()
