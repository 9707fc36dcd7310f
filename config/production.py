import os

SECRET_KEY = os.getenv("SECRET_KEY", "please-set-SECRET_KEY")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "classroom_attendance"),
    "connection_timeout": int(os.getenv("DB_TIMEOUT", "3")),
    "pool_size": int(os.getenv("DB_POOL_SIZE", "10")),
}

OTP_SECRET = os.getenv("OTP_SECRET", "please-set-OTP_SECRET")
OTP_STEP_SECONDS = int(os.getenv("OTP_STEP_SECONDS", "30"))
IDENTITY_TIMEOUT_SECONDS = float(os.getenv("IDENTITY_TIMEOUT_SECONDS", "2"))

CHECKIN_RATE_LIMIT = {
    "max_attempts": int(os.getenv("CHECKIN_MAX_ATTEMPTS", "5")),
    "window_seconds": int(os.getenv("CHECKIN_WINDOW_SECONDS", "900")),
    "max_users": int(os.getenv("CHECKIN_MAX_USERS", "10000")),
}

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
DEBUG = False

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))
