import os


def _bool(name: str, default: str) -> bool:
    return bool(int(os.environ.get(name, default)))


def _optional_float(name: str):
    value = os.environ.get(name)
    return float(value) if value not in (None, "") else None


class Config:
    """Settings shared by every environment; modules below override what differs."""

    SECRET_KEY = os.environ.get("SECRET_KEY") or "school-attendance-dev"

    # Backend
    API_BASE_URL = os.environ.get("API_BASE_URL", "http://localhost:3000/api")
    API_TIMEOUT_SECONDS = float(os.environ.get("API_TIMEOUT_SECONDS", "15"))

    # Persisted session (token + user)
    SESSION_FILE = os.environ.get("SESSION_FILE", ".session.json")

    # Fetching and live timer
    POLL_INTERVAL_SECONDS = float(os.environ.get("POLL_INTERVAL_SECONDS", "30"))
    FETCH_RETRIES = int(os.environ.get("FETCH_RETRIES", "2"))
    TICK_SECONDS = float(os.environ.get("TICK_SECONDS", "1"))

    # Device context
    LOCATION_TIMEOUT_SECONDS = float(os.environ.get("LOCATION_TIMEOUT_SECONDS", "15"))
    DEVICE_LATITUDE = _optional_float("DEVICE_LATITUDE")
    DEVICE_LONGITUDE = _optional_float("DEVICE_LONGITUDE")
    DEVICE_ACCURACY = _optional_float("DEVICE_ACCURACY")
    APP_VERSION = os.environ.get("APP_VERSION", "1.0.0")

    LOG_JSON = _bool("LOG_JSON", "0")
