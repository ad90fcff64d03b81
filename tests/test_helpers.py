from datetime import date, datetime, timezone
from io import BytesIO

import numpy as np
from PIL import Image

from core.auth import hash_password, verify_password
from core.config import get_settings
from core.helpers import canvas_to_png
from core.time_utils import day_bounds, format_long_date, to_local


def test_blank_canvas_is_no_signature():
    assert canvas_to_png(None) is None
    assert canvas_to_png(np.zeros((40, 100, 4), dtype="uint8")) is None


def test_canvas_strokes_become_png_on_white():
    pixels = np.zeros((40, 100, 4), dtype="uint8")
    pixels[10:20, 10:60] = (0, 0, 0, 255)

    png = canvas_to_png(pixels)

    img = Image.open(BytesIO(png))
    assert img.mode == "RGB"
    assert img.size == (100, 40)
    assert img.getpixel((0, 0)) == (255, 255, 255)
    assert img.getpixel((20, 15)) == (0, 0, 0)


def test_password_hashing_round_trip():
    hashed = hash_password("secret1")
    assert verify_password("secret1", hashed)
    assert not verify_password("secret2", hashed)
    assert not verify_password("secret1", "not-a-bcrypt-hash")


def test_day_bounds_and_long_date():
    start, end = day_bounds(date(2026, 3, 5))
    assert (end - start).days == 1
    assert start.tzinfo is not None
    assert format_long_date(date(2026, 3, 5)) == "5 March 2026"


def test_day_bounds_start_at_clinic_midnight(settings_env):
    settings_env.setenv("CLINIC_TIMEZONE", "Asia/Dubai")
    get_settings.cache_clear()

    start, end = day_bounds(date(2026, 3, 5))

    assert start == datetime(2026, 3, 4, 20, 0, tzinfo=timezone.utc)
    assert end == datetime(2026, 3, 5, 20, 0, tzinfo=timezone.utc)
    assert to_local(datetime(2026, 3, 5, 6, 0)).strftime("%H:%M") == "10:00"
