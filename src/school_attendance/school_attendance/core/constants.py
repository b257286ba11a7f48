"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

ATTENDANCE_QUERY = "self-attendance-status"
LEAVE_REQUESTS_QUERY = "leave-requests"

DEFAULT_POLL_INTERVAL_SECONDS = 30
DEFAULT_FETCH_RETRIES = 2
DEFAULT_RETRY_BASE_SECONDS = 1.0
DEFAULT_RETRY_MAX_SECONDS = 30.0
DEFAULT_TICK_SECONDS = 1.0
DEFAULT_LOCATION_TIMEOUT_SECONDS = 15
DEFAULT_API_TIMEOUT_SECONDS = 15

LEAVE_REASON_MIN_LENGTH = 10
REGULARIZATION_REASON_MIN_LENGTH = 15

PULSE_REST_SCALE = 1.0
PULSE_PEAK_SCALE = 1.2

SESSION_TOKEN_KEY = "token"
SESSION_USER_KEY = "user"
SESSION_CHECK_PATH = "/auth/session"
