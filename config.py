import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


class Config:
    # Environment: "production" shortens token lifetime
    ENVIRONMENT = os.getenv("ENVIRONMENT", "development").lower()

    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")
    JWT_SECRET = os.getenv("JWT_SECRET", SECRET_KEY)
    JWT_ALGORITHM = "HS256"

    # SQLite database file stored next to app.py as clinique.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "clinique.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Access token lifetime: 1 hour in production, 7 days otherwise
    ACCESS_TOKEN_TTL_SECONDS = int(os.getenv(
        "ACCESS_TOKEN_TTL_SECONDS",
        str(60 * 60 if ENVIRONMENT == "production" else 7 * 24 * 60 * 60),
    ))

    # Self-registration
    PASSWORD_MIN_LENGTH = int(os.getenv("PASSWORD_MIN_LENGTH", "8"))

    # bcrypt cost factor (never below 10)
    BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

    # Device-switch cooldown
    COOLDOWN_POLICY = os.getenv("COOLDOWN_POLICY", "exponential")  # exponential | levels
    COOLDOWN_THRESHOLD = int(os.getenv("COOLDOWN_THRESHOLD", "5"))
    COOLDOWN_BASE_MINUTES = int(os.getenv("COOLDOWN_BASE_MINUTES", "15"))
    COOLDOWN_MAX_MINUTES = int(os.getenv("COOLDOWN_MAX_MINUTES", "240"))
    SWITCH_WINDOW_HOURS = int(os.getenv("SWITCH_WINDOW_HOURS", "24"))

    # A valid session idle for this long may be taken over by another device
    SESSION_STALE_HOURS = int(os.getenv("SESSION_STALE_HOURS", "24"))

    # Housekeeping
    STALE_CLEANUP_MINUTES = int(os.getenv("STALE_CLEANUP_MINUTES", "30"))
    SESSION_RETENTION_DAYS = int(os.getenv("SESSION_RETENTION_DAYS", "30"))
    ATTEMPT_RETENTION_DAYS = int(os.getenv("ATTEMPT_RETENTION_DAYS", "30"))

    # Keep-alive ping: one successful touch per interval per session
    SESSION_PING_INTERVAL_SECONDS = int(os.getenv("SESSION_PING_INTERVAL_SECONDS", "240"))

    # Simple IP rate limit for login endpoint
    LOGIN_RATE_WINDOW_SECONDS = 15 * 60     # window size
    LOGIN_RATE_MAX_REQUESTS = 30            # max login requests per IP per window

    # Invalidate sessions left valid by a previous process
    RESET_SESSIONS_ON_STARTUP = _env_bool("RESET_SESSIONS_ON_STARTUP", "true")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Basic app settings
    DEBUG = False


class TestingConfig(Config):
    TESTING = True
    ENVIRONMENT = "test"
    SECRET_KEY = "test-secret"
    JWT_SECRET = "test-jwt-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    ACCESS_TOKEN_TTL_SECONDS = 60 * 60
    BCRYPT_ROUNDS = 10
    COOLDOWN_POLICY = "exponential"
    COOLDOWN_THRESHOLD = 5
    COOLDOWN_BASE_MINUTES = 15
    COOLDOWN_MAX_MINUTES = 240
    SESSION_STALE_HOURS = 24
    LOGIN_RATE_MAX_REQUESTS = 1000
    RESET_SESSIONS_ON_STARTUP = False
