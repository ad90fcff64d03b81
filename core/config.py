import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

from core.database import BASE_DIR


# Load .env so settings are available when running via Streamlit
load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    clinic_name: str
    clinic_subtitle: str
    vat_rate: float
    payment_mismatch_tolerance: float
    upload_dir: str
    log_level: str
    deduct_stock_on_use: bool
    whatsapp_function_url: str | None
    whatsapp_function_key: str | None
    voice_call_function_url: str | None
    request_timeout: float
    arabic_font_path: str
    clinic_timezone: str


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Read clinic settings from the environment (cached)."""
    return Settings(
        clinic_name=os.getenv("CLINIC_NAME", "COSMIQUE"),
        clinic_subtitle=os.getenv("CLINIC_SUBTITLE", "Aesthetics and Dermatology Clinic"),
        vat_rate=float(os.getenv("CLINIC_VAT_RATE", "0.05")),
        payment_mismatch_tolerance=float(os.getenv("CLINIC_PAYMENT_MISMATCH_TOLERANCE", "10")),
        upload_dir=os.getenv("CLINIC_UPLOAD_DIR", os.path.join(BASE_DIR, "data", "uploads")),
        log_level=os.getenv("CLINIC_LOG_LEVEL", "INFO").upper(),
        deduct_stock_on_use=_env_bool("CLINIC_DEDUCT_STOCK_ON_USE"),
        whatsapp_function_url=os.getenv("WHATSAPP_FUNCTION_URL"),
        whatsapp_function_key=os.getenv("WHATSAPP_FUNCTION_KEY"),
        voice_call_function_url=os.getenv("VAPI_CALL_FUNCTION_URL"),
        request_timeout=float(os.getenv("CLINIC_REQUEST_TIMEOUT", "10")),
        arabic_font_path=os.getenv(
            "CLINIC_ARABIC_FONT_PATH", os.path.join(BASE_DIR, "assets", "fonts", "Amiri-Regular.ttf")
        ),
        clinic_timezone=os.getenv("CLINIC_TIMEZONE", "Asia/Dubai"),
    )
