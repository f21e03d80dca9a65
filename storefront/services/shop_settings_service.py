from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from storefront.models import ShopSetting

DEFAULT_SHOP_SETTINGS = (
    ("promo_bar_enabled", "true", "Promóciós sáv megjelenítése"),
    ("promo_bar_text", "Ingyenes szállítás 50 palacktól!", "Promóciós sáv szövege"),
    ("stripe_payment_enabled", "true", "Kártyás fizetés (Stripe)"),
    ("bank_transfer_enabled", "true", "Banki átutalás"),
    ("cash_payment_enabled", "true", "Készpénzes fizetés"),
)


class ShopSettingsService:
    """Key/value storefront switches edited from the admin panel."""

    def __init__(self, db_session: Session) -> None:
        self.db = db_session
        self.logger = logging.getLogger(__name__)

    def list_settings(self) -> List[ShopSetting]:
        return self.db.query(ShopSetting).order_by(ShopSetting.key.asc()).all()

    def public_settings(self) -> Dict[str, str]:
        return {setting.key: setting.value for setting in self.list_settings()}

    def set_setting(self, key: Any, value: Any, label: str | None = None) -> ShopSetting:
        if not key or value is None:
            raise ValueError("Missing key or value")
        if isinstance(value, bool):
            value = "true" if value else "false"

        setting = self.db.get(ShopSetting, str(key))
        if setting is None:
            setting = ShopSetting(key=str(key), value=str(value), label=label)
            self.db.add(setting)
        else:
            setting.value = str(value)
            setting.updated_at = datetime.now(timezone.utc)
            if label:
                setting.label = label
        self.db.commit()
        self.logger.info("Shop setting %s set to %r", key, setting.value)
        return setting

    def ensure_defaults(self) -> int:
        created = 0
        for key, value, label in DEFAULT_SHOP_SETTINGS:
            if self.db.get(ShopSetting, key) is None:
                self.db.add(ShopSetting(key=key, value=value, label=label))
                created += 1
        self.db.commit()
        return created
