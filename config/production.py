import os

from .config import Config

SECRET_KEY = os.getenv("SECRET_KEY", "please-set-SECRET_KEY")

API_BASE_URL = Config.API_BASE_URL
API_TIMEOUT_SECONDS = Config.API_TIMEOUT_SECONDS
SESSION_FILE = os.getenv("SESSION_FILE", "/var/lib/school-attendance/session.json")

POLL_INTERVAL_SECONDS = Config.POLL_INTERVAL_SECONDS
FETCH_RETRIES = Config.FETCH_RETRIES
TICK_SECONDS = Config.TICK_SECONDS

LOCATION_TIMEOUT_SECONDS = Config.LOCATION_TIMEOUT_SECONDS
DEVICE_LATITUDE = Config.DEVICE_LATITUDE
DEVICE_LONGITUDE = Config.DEVICE_LONGITUDE
DEVICE_ACCURACY = Config.DEVICE_ACCURACY
APP_VERSION = Config.APP_VERSION

DEBUG = False
# Structured logs for log shippers
LOG_JSON = bool(int(os.getenv("LOG_JSON", "1")))
