import os
from datetime import timedelta


def _to_bool(val, default=False):
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "on"}


def _to_int(val, default):
    try:
        return int(val) if val is not None else default
    except ValueError:
        return default


class Config:
    APP_ENV = os.getenv("APP_ENV", "development")

    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///cms_auth.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Session tokens
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
    JWT_ALGORITHM = "HS256"
    JWT_TOKEN_LOCATION = ["cookies", "headers"]
    JWT_ACCESS_COOKIE_NAME = "jwtToken"
    JWT_ACCESS_COOKIE_PATH = "/"
    JWT_COOKIE_SAMESITE = "Strict"
    JWT_COOKIE_SECURE = APP_ENV == "production"
    JWT_COOKIE_CSRF_PROTECT = False
    SESSION_TOKEN_TTL_DAYS = _to_int(os.getenv("SESSION_TOKEN_TTL_DAYS"), 5)
    SESSION_COOKIE_MAX_AGE_DAYS = _to_int(os.getenv("SESSION_COOKIE_MAX_AGE_DAYS"), 10)
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(days=SESSION_TOKEN_TTL_DAYS)

    # OTP challenges
    OTP_LENGTH = _to_int(os.getenv("OTP_LENGTH"), 6)
    OTP_TTL_SECONDS = _to_int(os.getenv("OTP_TTL_SECONDS"), 300)

    # Salted hashing
    PASSWORD_HASH_METHOD = os.getenv("PASSWORD_HASH_METHOD", "pbkdf2:sha256:600000")
    PASSWORD_SALT_LENGTH = _to_int(os.getenv("PASSWORD_SALT_LENGTH"), 16)

    # Mail
    MAIL_SERVER = os.getenv("MAIL_SERVER", "smtp.gmail.com")
    MAIL_PORT = _to_int(os.getenv("MAIL_PORT"), 587)
    MAIL_USE_TLS = _to_bool(os.getenv("MAIL_USE_TLS"), True)
    MAIL_USE_SSL = _to_bool(os.getenv("MAIL_USE_SSL"), False)
    MAIL_USERNAME = os.getenv("EMAIL_USER")
    MAIL_PASSWORD = os.getenv("EMAIL_PASS")
    MAIL_SENDER_NAME = os.getenv("MAIL_SENDER_NAME", "Qubefyn Support")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT = os.getenv("LOG_FORMAT", "plain")
