import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to the app as studyseat.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "studyseat.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Create tables on startup instead of running migrations (tests, quick demos)
    AUTO_CREATE_TABLES = os.getenv("AUTO_CREATE_TABLES", "false").lower() == "true"

    # Session cookie name for our auth token
    AUTH_COOKIE_NAME = "studyseat_session"

    # 8 hours session lifetime
    SESSION_LIFETIME_SECONDS = 8 * 60 * 60

    # Idle timeout: 20 minutes
    IDLE_TIMEOUT_SECONDS = 20 * 60

    # Session/cookie security defaults
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = False  # set True when using HTTPS

    # bcrypt cost for new passwords
    BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

    # School calendar: every "today" is taken in this timezone
    APP_TIMEZONE = os.getenv("APP_TIMEZONE", "Asia/Seoul")

    # Booking window policy
    BOOKING_MIN_NOTICE_DAYS = int(os.getenv("BOOKING_MIN_NOTICE_DAYS", "2"))
    STAFF_MIN_NOTICE_DAYS = int(os.getenv("STAFF_MIN_NOTICE_DAYS", "0"))
    QUARTER_OPEN_LEAD_DAYS = int(os.getenv("QUARTER_OPEN_LEAD_DAYS", "7"))

    # Sub-zone label for seats drawn without one
    DEFAULT_SECTION = os.getenv("DEFAULT_SECTION", "General")

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Basic app settings
    DEBUG = False


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    AUTO_CREATE_TABLES = True
    BCRYPT_ROUNDS = 4
    LOG_LEVEL = "WARNING"
