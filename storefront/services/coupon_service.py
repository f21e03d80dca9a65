from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from storefront.observability import increment_counter
from storefront.services.pricing_service import COUPON_SHIPPING_FEE, shipping_fee_for_quantity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Coupon:
    code: str
    kind: str
    description: str
    shipping_discount: int = COUPON_SHIPPING_FEE
    unit_price_discount: Optional[int] = None
    customer_type_required: Optional[str] = None
    max_quantity: Optional[int] = None


COUPONS: Dict[str, Coupon] = {
    "teszt114db": Coupon(
        code="teszt114db",
        kind="standard_partner",
        description="Standard partner kedvezmény",
    ),
    "mastercard1234": Coupon(
        code="mastercard1234",
        kind="standard_partner",
        description="Mastercard partner kedvezmény",
    ),
    "private1234": Coupon(
        code="private1234",
        kind="private_special",
        description="Magánszemély különleges kedvezmény",
        unit_price_discount=240,
        customer_type_required="private",
        max_quantity=20,
    ),
}


@dataclass
class CouponValidation:
    valid: bool
    message: str
    discount: Optional[Dict[str, Any]] = field(default=None)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"valid": self.valid, "message": self.message}
        if self.discount is not None:
            payload["discount"] = self.discount
        return payload


def _rejected(code: str, message: str) -> CouponValidation:
    increment_counter("coupon_rejections_total", labels={"code": code or "<empty>"})
    logger.info("Coupon rejected", extra={"coupon": code, "reason": message})
    return CouponValidation(valid=False, message=message)


def validate_coupon(code: Optional[str], customer_type: Optional[str], quantity: Optional[int]) -> CouponValidation:
    """Check a partner code against the customer type and bottle count."""
    if not code or not customer_type or not quantity:
        raise ValueError("Missing required fields")
    try:
        quantity = int(quantity)
    except (TypeError, ValueError):
        raise ValueError("Quantity must be a whole number")

    trimmed = code.strip()
    coupon = COUPONS.get(trimmed)
    if coupon is None:
        return _rejected(trimmed, "Érvénytelen partnerkód.")

    if coupon.kind == "private_special":
        if customer_type != coupon.customer_type_required:
            return _rejected(trimmed, "Ez a kód csak magánszemélyeknek érvényes.")
        if coupon.max_quantity is not None and quantity > coupon.max_quantity:
            return _rejected(trimmed, "Ez a kód maximum 20 palack esetén érvényes.")

    base_shipping = shipping_fee_for_quantity(quantity)
    total_savings = 0
    if coupon.unit_price_discount:
        total_savings += coupon.unit_price_discount * quantity
    if coupon.shipping_discount and base_shipping > coupon.shipping_discount:
        total_savings += base_shipping - coupon.shipping_discount

    increment_counter("coupon_validations_total", labels={"code": trimmed})
    return CouponValidation(
        valid=True,
        message="Partnerkód sikeresen érvényesítve!",
        discount={
            "unitPriceDiscount": coupon.unit_price_discount,
            "shippingDiscount": coupon.shipping_discount,
            "totalSavings": total_savings,
        },
    )
