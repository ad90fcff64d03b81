"""
Outbound patient messaging and voice calls.

Both are remote functions owned by the messaging provider integration; this
module only posts the payload and reports failures.
"""

import logging

import requests

from core.config import get_settings
from core.errors import MessagingError, ValidationError

logger = logging.getLogger(__name__)


def _post(url: str | None, payload: dict, action: str) -> dict:
    settings = get_settings()
    if not url:
        raise MessagingError(f"{action} is not configured.")

    headers = {"Content-Type": "application/json"}
    if settings.whatsapp_function_key:
        headers["Authorization"] = f"Bearer {settings.whatsapp_function_key}"

    try:
        resp = requests.post(url, json=payload, headers=headers, timeout=settings.request_timeout)
    except requests.RequestException as exc:
        logger.error("%s failed: %s", action, exc)
        raise MessagingError(f"{action} failed: {exc}") from exc

    if not resp.ok:
        logger.error("%s returned HTTP %s: %s", action, resp.status_code, resp.text[:200])
        raise MessagingError(f"{action} failed with HTTP {resp.status_code}.")

    try:
        return resp.json()
    except ValueError:
        return {}


def send_whatsapp(phone: str, message: str | None = None, *, template_name: str | None = None,
                  parameters: list[dict] | None = None, patient_name: str | None = None) -> dict:
    """Send a session message, or a template message when ``template_name`` is given."""
    if not (phone or "").strip():
        raise ValidationError("Missing phone.")
    if not template_name and not (message or "").strip():
        raise ValidationError("Missing message.")

    payload = {"phone": phone.strip()}
    if template_name:
        payload["template_name"] = template_name
        payload["parameters"] = parameters or []
    else:
        payload["message"] = message
    if patient_name:
        payload["patient_name"] = patient_name

    result = _post(get_settings().whatsapp_function_url, payload, "WhatsApp message")
    logger.info("WhatsApp message sent to %s", payload["phone"])
    return result


def trigger_voice_call(appointment_id: int) -> dict:
    result = _post(get_settings().voice_call_function_url, {"appointment_id": appointment_id}, "Voice call")
    logger.info("Voice call triggered for appointment %s", appointment_id)
    return result
