SECRET_KEY = "test-secret"

API_BASE_URL = "http://backend.test/api"
API_TIMEOUT_SECONDS = 1.0
SESSION_FILE = "test-session.json"

POLL_INTERVAL_SECONDS = 30.0
FETCH_RETRIES = 0
TICK_SECONDS = 1.0

LOCATION_TIMEOUT_SECONDS = 1.0
DEVICE_LATITUDE = 10.7769
DEVICE_LONGITUDE = 106.7009
DEVICE_ACCURACY = 5.0
APP_VERSION = "1.0.0-test"

DEBUG = False
TESTING = True
LOG_JSON = False
