from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

import bleach
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.models import Product
from storefront.observability import increment_counter

MAX_PRODUCT_IMAGES = 5

# JSON key -> model column
UPDATABLE_FIELDS = {
    "name": "name",
    "description": "description",
    "basePriceHuf": "base_price_huf",
    "onSale": "on_sale",
    "salePriceHuf": "sale_price_huf",
    "discountThreshold": "discount_threshold",
    "discountPercentage": "discount_percentage",
    "images": "images",
    "imageUrl": "image_url",
}


def _is_whole_number(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def sanitize_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return bleach.clean(str(value), tags=[], strip=True).strip()


def validate_product_payload(data: Any, partial: bool = False) -> Dict[str, Any]:
    """
    Check an admin product payload and return the cleaned values keyed by column name.

    With ``partial`` only the fields present are checked and unknown keys are dropped.
    """
    if not isinstance(data, dict):
        raise ValueError("Invalid product data")

    cleaned: Dict[str, Any] = {}
    if not partial:
        for required in ("sku", "name", "basePriceHuf"):
            if data.get(required) in (None, ""):
                raise ValueError(f"Invalid product data: {required} is required")
        cleaned["sku"] = sanitize_text(data["sku"])

    for key, column in UPDATABLE_FIELDS.items():
        if key not in data:
            continue
        value = data[key]
        if key == "name":
            value = sanitize_text(value)
            if not value:
                raise ValueError("Invalid product data: name must not be empty")
        elif key == "description":
            value = sanitize_text(value) or None
        elif key == "basePriceHuf":
            if not _is_whole_number(value) or value <= 0:
                raise ValueError("Invalid product data: basePriceHuf must be a positive whole number")
        elif key == "salePriceHuf":
            if value is not None and (not _is_whole_number(value) or value <= 0):
                raise ValueError("Invalid product data: salePriceHuf must be a positive whole number")
        elif key == "onSale":
            value = bool(value)
        elif key == "discountThreshold":
            if not _is_whole_number(value) or value < 1:
                raise ValueError("Invalid product data: discountThreshold must be at least 1")
        elif key == "discountPercentage":
            if not _is_whole_number(value) or not 0 <= value <= 100:
                raise ValueError("Invalid product data: discountPercentage must be between 0 and 100")
        elif key == "images":
            if value is not None:
                if not isinstance(value, list) or not all(isinstance(url, str) for url in value):
                    raise ValueError("Invalid product data: images must be a list of URLs")
                if len(value) > MAX_PRODUCT_IMAGES:
                    raise ValueError(f"Invalid product data: at most {MAX_PRODUCT_IMAGES} images are allowed")
        elif key == "imageUrl":
            value = value or None
        cleaned[column] = value

    if cleaned.get("on_sale") is False:
        cleaned["sale_price_huf"] = None
    return cleaned


class CatalogService:
    def __init__(self, db_session: Session) -> None:
        self.db = db_session
        self.logger = logging.getLogger(__name__)

    def list_products(self) -> List[Product]:
        return self.db.query(Product).order_by(Product.name.asc()).all()

    def get_product(self, product_id: int) -> Optional[Product]:
        return self.db.get(Product, product_id)

    def create_product(self, data: Any) -> Tuple[bool, str, Optional[Product]]:
        values = validate_product_payload(data)
        values.setdefault("discount_threshold", 1)
        values.setdefault("discount_percentage", 0)
        values.setdefault("on_sale", False)

        if self.db.query(Product.productID).filter(Product.sku == values["sku"]).first():
            return False, "A product with this SKU already exists", None

        product = Product(**values)
        self.db.add(product)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            return False, "A product with this SKU already exists", None
        self.db.refresh(product)

        increment_counter("catalog_changes_total", labels={"action": "create"})
        self.logger.info("Product created", extra={"product_id": product.productID})
        return True, "Product created", product

    def update_product(self, product_id: int, data: Any) -> Tuple[bool, str, Optional[Product]]:
        values = validate_product_payload(data, partial=True)
        product = self.get_product(product_id)
        if product is None:
            return False, "Product not found", None
        for column, value in values.items():
            setattr(product, column, value)
        self.db.commit()

        increment_counter("catalog_changes_total", labels={"action": "update"})
        self.logger.info("Product updated", extra={"product_id": product_id})
        return True, "Product updated", product

    def delete_product(self, product_id: int) -> Tuple[bool, str]:
        product = self.get_product(product_id)
        if product is None:
            return False, "Product not found"
        self.db.delete(product)
        self.db.commit()
        increment_counter("catalog_changes_total", labels={"action": "delete"})
        self.logger.info("Product deleted", extra={"product_id": product_id})
        return True, "Product deleted"
