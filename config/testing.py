import os

SECRET_KEY = "test-secret"

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "classroom_attendance_test"),
    "connection_timeout": 2,
    "pool_size": 0,
}

OTP_SECRET = "test-otp-secret"
OTP_STEP_SECONDS = 30
IDENTITY_TIMEOUT_SECONDS = 1.0

CHECKIN_RATE_LIMIT = {"max_attempts": 5, "window_seconds": 900, "max_users": 1000}

LOG_LEVEL = "WARNING"
DEBUG = False
TESTING = True

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))
