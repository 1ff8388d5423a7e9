"""
Application settings.

Values are read from environment variables prefixed with ``TRANQUILITY_``
(or from a local ``.env`` file).
"""
import logging

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_NAME: str = "Tranquility Inn API"

    # Database
    DATABASE_URL: str = "sqlite:///./tranquility.db"

    # JWT / auth
    SECRET_KEY: str = "CHANGE_THIS_SECRET_IN_REAL_PROJECT"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7
    COOKIE_NAME: str = "tranquility_token"
    COOKIE_SECURE: bool = False
    PASSWORD_RESET_EXPIRE_MINUTES: int = 15
    PASSWORD_RESET_MAX_ATTEMPTS: int = 5

    # Rate limiting
    RATE_LIMIT: str = "100/minute"
    AUTH_RATE_LIMIT: str = "10/minute"
    RATE_LIMIT_ENABLED: bool = True

    # Circuit breaker around the booking write path
    BREAKER_FAIL_MAX: int = 3
    BREAKER_RESET_TIMEOUT: int = 60

    # Pagination
    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 100

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", env_prefix="TRANQUILITY_", extra="ignore")


settings = Settings()


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
