from __future__ import annotations

from typing import Dict

from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from storefront.config import Config
from storefront.database import engine


def check_database_health() -> Dict[str, str]:
    """Attempt a lightweight DB query to ensure connectivity."""
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        return {"status": "UP"}
    except OperationalError as exc:
        return {"status": "DOWN", "detail": str(exc)}


def check_payment_gateways() -> Dict[str, Dict[str, str]]:
    """Report which hosted gateways have credentials; no network calls are made."""
    return {
        "barion": {
            "status": "CONFIGURED" if Config.BARION_POSKEY else "NOT_CONFIGURED",
            "environment": Config.BARION_ENV,
        },
        "stripe": {
            "status": "CONFIGURED" if Config.STRIPE_SECRET_KEY else "NOT_CONFIGURED",
            "webhook": "CONFIGURED" if Config.STRIPE_WEBHOOK_SECRET else "NOT_CONFIGURED",
        },
    }
