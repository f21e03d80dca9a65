"""Demo data for local development: two accounts, a few products and the shop switches."""
from __future__ import annotations

import logging
from typing import Dict

from sqlalchemy.orm import Session
from werkzeug.security import generate_password_hash

from storefront.models import DeliverySettings, Product, User
from storefront.services.delivery_service import DEFAULT_DELIVERY_DAYS, DeliverySettingsService
from storefront.services.shop_settings_service import ShopSettingsService

logger = logging.getLogger(__name__)

DEMO_ACCOUNTS = (
    ("admin@webshop.com", "admin123", "admin"),
    ("customer@example.com", "customer123", "customer"),
)

SAMPLE_PRODUCTS = (
    {
        "sku": "ROSTI-NARANCS-250",
        "name": "Rosti narancslé 250 ml",
        "description": "Hidegen préselt narancslé, hozzáadott cukor nélkül.",
        "image_url": "/images/narancs.jpg",
        "base_price_huf": 1490,
        "on_sale": True,
        "sale_price_huf": 1290,
        "discount_threshold": 3,
        "discount_percentage": 15,
    },
    {
        "sku": "ROSTI-ALMA-250",
        "name": "Rosti almalé 250 ml",
        "description": "Magyar almából préselt, szűretlen almalé.",
        "image_url": "/images/alma.jpg",
        "base_price_huf": 1290,
        "on_sale": False,
        "sale_price_huf": None,
        "discount_threshold": 2,
        "discount_percentage": 10,
    },
    {
        "sku": "ROSTI-ZOLD-250",
        "name": "Rosti zöld mix 250 ml",
        "description": "Alma, uborka, spenót és citrom friss keveréke.",
        "image_url": "/images/zold.jpg",
        "base_price_huf": 1590,
        "on_sale": True,
        "sale_price_huf": 1390,
        "discount_threshold": 5,
        "discount_percentage": 20,
    },
)


def seed_database(db: Session) -> Dict[str, int]:
    """Insert whatever demo rows are missing; running it twice changes nothing."""
    created = {"users": 0, "products": 0, "shop_settings": 0, "delivery_settings": 0}

    for email, password, role in DEMO_ACCOUNTS:
        if db.query(User).filter_by(email=email).first() is None:
            db.add(User(email=email, passwordHash=generate_password_hash(password), role=role))
            created["users"] += 1

    for values in SAMPLE_PRODUCTS:
        if db.query(Product).filter_by(sku=values["sku"]).first() is None:
            db.add(Product(images=[values["image_url"]], **values))
            created["products"] += 1
    db.commit()

    created["shop_settings"] = ShopSettingsService(db).ensure_defaults()

    if db.query(DeliverySettings.id).first() is None:
        DeliverySettingsService(db).update(list(DEFAULT_DELIVERY_DAYS), 4, 24)
        created["delivery_settings"] = 1

    logger.info("Seed finished", extra={"created": created})
    return created
