from unittest.mock import MagicMock, patch

import pytest
import requests

from core.config import get_settings
from core.errors import MessagingError, ValidationError
from services.messaging_service import send_whatsapp, trigger_voice_call


@pytest.fixture
def configured(settings_env):
    settings_env.setenv("WHATSAPP_FUNCTION_URL", "https://functions.example.com/whatsapp")
    settings_env.setenv("WHATSAPP_FUNCTION_KEY", "secret")
    settings_env.setenv("VAPI_CALL_FUNCTION_URL", "https://functions.example.com/call")
    get_settings.cache_clear()


def _response(ok=True, status=200, body=None):
    resp = MagicMock()
    resp.ok = ok
    resp.status_code = status
    resp.text = "error"
    resp.json.return_value = body or {"success": True}
    return resp


def test_send_session_message(configured):
    with patch("services.messaging_service.requests.post", return_value=_response()) as post:
        result = send_whatsapp(" +971501234567 ", "See you tomorrow", patient_name="Mariam")

    assert result == {"success": True}
    args, kwargs = post.call_args
    assert args[0] == "https://functions.example.com/whatsapp"
    assert kwargs["json"] == {"phone": "+971501234567", "message": "See you tomorrow", "patient_name": "Mariam"}
    assert kwargs["headers"]["Authorization"] == "Bearer secret"
    assert kwargs["timeout"] == 10


def test_send_template_message(configured):
    with patch("services.messaging_service.requests.post", return_value=_response()) as post:
        send_whatsapp("+971501234567", template_name="reminder", parameters=[{"type": "text", "text": "5 March"}])

    payload = post.call_args.kwargs["json"]
    assert payload["template_name"] == "reminder"
    assert "message" not in payload


def test_missing_message_rejected(configured):
    with pytest.raises(ValidationError):
        send_whatsapp("+971501234567", "  ")


def test_http_error_raises(configured):
    with patch("services.messaging_service.requests.post", return_value=_response(ok=False, status=502)):
        with pytest.raises(MessagingError):
            trigger_voice_call(7)


def test_network_error_raises(configured):
    with patch("services.messaging_service.requests.post", side_effect=requests.ConnectionError("down")):
        with pytest.raises(MessagingError):
            send_whatsapp("+971501234567", "hi")


def test_unconfigured_function_raises(settings_env):
    settings_env.delenv("VAPI_CALL_FUNCTION_URL", raising=False)
    get_settings.cache_clear()
    with pytest.raises(MessagingError):
        trigger_voice_call(7)
