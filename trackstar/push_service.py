import logging
import re
from typing import Any, Dict, Optional

import requests
from exponent_server_sdk import (
    DeviceNotRegisteredError,
    PushClient,
    PushMessage,
    PushServerError,
    PushTicketError,
)

from .config import EXPO_HOST, PUSH_MAX_ATTEMPTS, PUSH_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

# Mesmas regras do Expo.isExpoPushToken: token entre colchetes ou UUID
_EXPO_TOKEN_RE = re.compile(r"^Expo(nent)?PushToken\[.*\]$")
_UUID_TOKEN_RE = re.compile(r"^[a-z\d]{8}-[a-z\d]{4}-[a-z\d]{4}-[a-z\d]{4}-[a-z\d]{12}$", re.IGNORECASE)

MOTION_ALERT_TITLE = "⚠️ Motion Detected!"
MOTION_ALERT_BODY = "Your bike is being moved. Tap to check."


def is_expo_push_token(token: Optional[str]) -> bool:
    if not isinstance(token, str) or not token:
        return False
    return bool(_EXPO_TOKEN_RE.match(token) or _UUID_TOKEN_RE.match(token))


def _mask(token: str) -> str:
    return token[:22] + "…" if len(token) > 22 else token


def send_push_notification(
    push_token: str,
    title: str,
    body: str,
    data: Optional[Dict[str, Any]] = None,
    client: Optional[PushClient] = None,
) -> bool:
    """Envia uma notificação Expo. Nunca levanta exceção: devolve True/False."""
    if not is_expo_push_token(push_token):
        logger.error("Invalid Expo push token: %s", push_token)
        return False

    message = PushMessage(
        to=push_token,
        sound="default",
        title=title,
        body=body,
        data=data or {},
        priority="high",
    )

    push_client = client or PushClient(host=EXPO_HOST, timeout=PUSH_TIMEOUT_SECONDS)
    try:
        for attempt in range(1, PUSH_MAX_ATTEMPTS + 1):
            try:
                ticket = push_client.publish(message)
            except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
                # Só erros de transporte são repetidos; tickets com erro não
                logger.warning("Push transport error (attempt %d/%d): %s", attempt, PUSH_MAX_ATTEMPTS, e)
                continue
            except PushServerError as e:
                logger.error("Push service rejected the request: %s", e.errors or e.message)
                return False
            except requests.exceptions.HTTPError as e:
                logger.error("Push service answered %s", e.response.status_code if e.response is not None else "?")
                return False

            try:
                ticket.validate_response()
            except DeviceNotRegisteredError:
                logger.error("Push token no longer registered: %s", _mask(push_token))
                return False
            except PushTicketError as e:
                logger.error("Push notification error: %s", e.message)
                if e.push_response.details:
                    logger.error("Error details: %s", e.push_response.details.get("error"))
                return False
            logger.info("Push notification sent to %s", _mask(push_token))
            return True
        return False
    except Exception:
        logger.exception("Failed to send push notification")
        return False


def send_motion_alert(push_token: str, device_id: str, client: Optional[PushClient] = None) -> bool:
    return send_push_notification(
        push_token,
        title=MOTION_ALERT_TITLE,
        body=MOTION_ALERT_BODY,
        data={"type": "motion", "deviceId": device_id},
        client=client,
    )
