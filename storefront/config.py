"""Centralized application configuration for all environments."""
from __future__ import annotations

import os
from datetime import date
from pathlib import Path
from typing import Any, Final

from dotenv import load_dotenv

BASE_DIR: Final[Path] = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"

# Load environment variables once, prioritizing runtime env over file values
load_dotenv(dotenv_path=ENV_PATH, override=False)


def _str_to_bool(value: str | bool | None, default: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _str_to_date(value: str | None, default: date) -> date:
    if not value:
        return default
    return date.fromisoformat(value.strip())


def _determine_database_url() -> str:
    """
    Return a connection string using the following precedence:
    1. Explicit DATABASE_URL
    2. Individual DB_* components (for PostgreSQL)
    3. Local SQLite fallback (for onboarding / tests)
    """
    explicit_url = os.getenv("DATABASE_URL")
    if explicit_url:
        return explicit_url

    username = os.getenv("DB_USERNAME")
    password = os.getenv("DB_PASSWORD")
    host = os.getenv("DB_HOST")
    port = os.getenv("DB_PORT")
    name = os.getenv("DB_NAME")

    if all([username, password, host, port, name]):
        driver = os.getenv("DB_DRIVER", "postgresql+psycopg2")
        return f"{driver}://{username}:{password}@{host}:{port}/{name}"

    # SQLite dev fallback stored under /db/app.db to keep repo tidy
    fallback_path = BASE_DIR / "db" / "app.db"
    fallback_path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{fallback_path.as_posix()}"


class Config:
    """Default runtime configuration shared across Flask, services, and scripts."""

    APP_NAME: Final[str] = os.getenv("APP_NAME", "Rosti Storefront")
    APP_ENV: Final[str] = os.getenv("APP_ENV", "development")

    SECRET_KEY: Final[str] = os.getenv("SECRET_KEY", "change-me-in-prod")
    DEBUG: Final[bool] = _str_to_bool(os.getenv("FLASK_DEBUG"), default=APP_ENV == "development")
    TESTING: Final[bool] = _str_to_bool(os.getenv("FLASK_TESTING"), default=False)

    # Flask run configuration (used by run.py)
    FLASK_RUN_HOST: Final[str] = os.getenv("FLASK_RUN_HOST", "0.0.0.0")
    FLASK_RUN_PORT: Final[int] = int(os.getenv("FLASK_RUN_PORT", "5000"))
    PUBLIC_BASE_URL: Final[str] = os.getenv("PUBLIC_BASE_URL", "http://localhost:5000").rstrip("/")

    # Database
    DATABASE_URL: Final[str] = _determine_database_url()
    SQL_ECHO: Final[bool] = _str_to_bool(os.getenv("SQL_ECHO"), default=False)
    DB_POOL_SIZE: Final[int] = int(os.getenv("DB_POOL_SIZE", "10"))
    DB_MAX_OVERFLOW: Final[int] = int(os.getenv("DB_MAX_OVERFLOW", "20"))

    # Subscription pricing (HUF)
    UNIT_PRICE_HUF: Final[int] = int(os.getenv("UNIT_PRICE_HUF", "1490"))
    SHIPPING_FEE_HIGH_HUF: Final[int] = int(os.getenv("SHIPPING_FEE_HIGH_HUF", "5700"))
    SHIPPING_FEE_LOW_HUF: Final[int] = int(os.getenv("SHIPPING_FEE_LOW_HUF", "3700"))
    SHIPPING_HIGH_MAX_QUANTITY: Final[int] = int(os.getenv("SHIPPING_HIGH_MAX_QUANTITY", "25"))
    FREE_SHIPPING_THRESHOLD: Final[int] = int(os.getenv("FREE_SHIPPING_THRESHOLD", "50"))
    MIN_ORDER_QUANTITY: Final[int] = int(os.getenv("MIN_ORDER_QUANTITY", "1"))
    MAX_ORDER_QUANTITY: Final[int] = int(os.getenv("MAX_ORDER_QUANTITY", "300"))

    # Delivery schedule
    SCHEDULE_START_DATE: Final[date] = _str_to_date(os.getenv("SCHEDULE_START_DATE"), date(2026, 1, 19))
    SCHEDULE_HORIZON_WEEKS: Final[int] = int(os.getenv("SCHEDULE_HORIZON_WEEKS", "12"))

    # Classic cart delivery
    DELIVERY_FEE_HUF: Final[int] = int(os.getenv("DELIVERY_FEE_HUF", "1500"))
    FREE_DELIVERY_THRESHOLD_HUF: Final[int] = int(os.getenv("FREE_DELIVERY_THRESHOLD_HUF", "15000"))

    # Barion gateway
    BARION_BASE_URL: Final[str] = os.getenv("BARION_BASE_URL", "https://api.test.barion.com").rstrip("/")
    BARION_POSKEY: Final[str] = os.getenv("BARION_POSKEY", "")
    BARION_ENV: Final[str] = os.getenv("BARION_ENV", "test")
    BARION_PAYEE: Final[str] = os.getenv("BARION_PAYEE", "")
    BARION_TIMEOUT_SECONDS: Final[float] = float(os.getenv("BARION_TIMEOUT_SECONDS", "15"))
    _funding_sources = [
        source.strip()
        for source in os.getenv("BARION_FUNDING_SOURCES", "All").split(",")
        if source.strip()
    ]
    BARION_FUNDING_SOURCES: Final[tuple[str, ...]] = tuple(_funding_sources) or ("All",)

    # Stripe gateway
    STRIPE_SECRET_KEY: Final[str] = os.getenv("STRIPE_SECRET_KEY", "")
    STRIPE_WEBHOOK_SECRET: Final[str] = os.getenv("STRIPE_WEBHOOK_SECRET", "")

    # Bank transfer / instant payment QR
    BANK_RECIPIENT_NAME: Final[str] = os.getenv("BANK_RECIPIENT_NAME", "Kedvezményezett Kft.")
    BANK_IBAN: Final[str] = os.getenv("BANK_IBAN", "HU93116000060000000012345676")
    BANK_BIC: Final[str] = os.getenv("BANK_BIC", "")
    BANK_PAYMENT_VALID_HOURS: Final[int] = int(os.getenv("BANK_PAYMENT_VALID_HOURS", "24"))

    # Observability
    STRUCTURED_LOGS_ENABLED: Final[bool] = _str_to_bool(os.getenv("STRUCTURED_LOGS_ENABLED"), default=True)
    LOG_LEVEL: Final[str] = os.getenv("LOG_LEVEL", "INFO")
    REQUEST_ID_HEADER: Final[str] = os.getenv("REQUEST_ID_HEADER", "X-Request-ID")

    DEFAULT_TIMEZONE: Final[str] = os.getenv("DEFAULT_TIMEZONE", "Europe/Budapest")
    SUPER_ADMIN_TOKEN: Final[str] = os.getenv("SUPER_ADMIN_TOKEN", "ROSTI_SUPERADMIN_TOKEN_change_me")
    SUPER_ADMIN_EMAIL: Final[str] = os.getenv("SUPER_ADMIN_EMAIL", "admin@webshop.com")

    @classmethod
    def configure_app(cls, app: Any) -> None:
        """Apply core configuration to a Flask app instance."""
        app.config["SECRET_KEY"] = cls.SECRET_KEY
        app.config["ENV"] = cls.APP_ENV
        app.config["DEBUG"] = cls.DEBUG
        app.config["TESTING"] = cls.TESTING
        app.config["SQLALCHEMY_DATABASE_URI"] = cls.DATABASE_URL
        app.config["SQLALCHEMY_ECHO"] = cls.SQL_ECHO
        app.config["PUBLIC_BASE_URL"] = cls.PUBLIC_BASE_URL
        app.config["STRUCTURED_LOGS_ENABLED"] = cls.STRUCTURED_LOGS_ENABLED
        app.config["STRIPE_SECRET_KEY"] = cls.STRIPE_SECRET_KEY
        app.config["STRIPE_WEBHOOK_SECRET"] = cls.STRIPE_WEBHOOK_SECRET
        # Tests swap in a stub exposing start_payment / get_payment_state.
        app.config.setdefault("BARION_CLIENT", None)
        app.config["JSON_AS_ASCII"] = False
