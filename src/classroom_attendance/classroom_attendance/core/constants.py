"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

EARTH_RADIUS_METERS = 6_371_000.0

DEFAULT_WINDOW_MINUTES = 5
MIN_WINDOW_MINUTES = 1
MAX_WINDOW_MINUTES = 30

DEFAULT_GEOFENCE_RADIUS_METERS = 100
MIN_GEOFENCE_RADIUS_METERS = 10
MAX_GEOFENCE_RADIUS_METERS = 1000

BIOMETRIC_MATCH_THRESHOLD = 0.85

OTP_DIGITS = 6
DEFAULT_OTP_STEP_SECONDS = 30

DEFAULT_IDENTITY_TIMEOUT_SECONDS = 2.0

DEFAULT_CHECKIN_MAX_ATTEMPTS = 5
DEFAULT_CHECKIN_WINDOW_SECONDS = 15 * 60
DEFAULT_RATE_LIMIT_MAX_USERS = 10_000

DEFAULT_HISTORY_LIMIT = 30
