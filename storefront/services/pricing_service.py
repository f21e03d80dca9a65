from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Dict, Iterable, Optional

from storefront.config import Config
from storefront.services.delivery_service import calculate_delivery_fee

PRIVATE_COUPON_UNIT_PRICE = 1250
COUPON_SHIPPING_FEE = 1700
NBSP = "\u00a0"


@dataclass(frozen=True)
class SubscriptionPricing:
    unit_price: int
    shipping_fee: int
    subtotal_per_delivery: int
    total_shipping_fee: int
    subtotal: int
    discount_amount: int
    total_amount: int

    @property
    def per_delivery_total(self) -> int:
        return self.subtotal_per_delivery + self.shipping_fee

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["per_delivery_total"] = self.per_delivery_total
        return payload


@dataclass(frozen=True)
class CartTotals:
    subtotal: int
    discount: int
    delivery_fee: int
    total: int


def shipping_fee_for_quantity(quantity: int) -> int:
    """Per-delivery shipping fee tier for a bottle count."""
    if quantity <= Config.SHIPPING_HIGH_MAX_QUANTITY:
        return Config.SHIPPING_FEE_HIGH_HUF
    if quantity < Config.FREE_SHIPPING_THRESHOLD:
        return Config.SHIPPING_FEE_LOW_HUF
    return 0


def _normalize_code(coupon: Optional[str]) -> str:
    return (coupon or "").strip()


def calculate_subscription_pricing(
    quantity: int,
    schedule_length: int,
    coupon: Optional[str] = None,
    customer_type: str = "private",
) -> SubscriptionPricing:
    """
    Price a subscription order.

    Every delivery carries the same bottle count, so the per-delivery subtotal and
    shipping fee are multiplied by the number of scheduled deliveries.
    """
    if quantity < 1:
        raise ValueError("Quantity must be at least 1")
    if schedule_length < 1:
        raise ValueError("At least one delivery date is required")

    base_unit_price = Config.UNIT_PRICE_HUF
    base_shipping = shipping_fee_for_quantity(quantity)
    unit_price = base_unit_price
    shipping_fee = base_shipping

    code = _normalize_code(coupon)
    if code == "private1234" and customer_type == "private" and quantity <= 20:
        unit_price = PRIVATE_COUPON_UNIT_PRICE
        shipping_fee = COUPON_SHIPPING_FEE
    elif code in ("teszt114db", "mastercard1234"):
        shipping_fee = min(base_shipping, COUPON_SHIPPING_FEE)

    subtotal_per_delivery = unit_price * quantity
    subtotal = subtotal_per_delivery * schedule_length
    total_shipping_fee = shipping_fee * schedule_length
    total_amount = subtotal + total_shipping_fee

    undiscounted = (base_unit_price * quantity + base_shipping) * schedule_length
    return SubscriptionPricing(
        unit_price=unit_price,
        shipping_fee=shipping_fee,
        subtotal_per_delivery=subtotal_per_delivery,
        total_shipping_fee=total_shipping_fee,
        subtotal=subtotal,
        discount_amount=undiscounted - total_amount,
        total_amount=total_amount,
    )


def calculate_quantity_discount(quantity: int, unit_price: int, threshold: int, percentage: int) -> int:
    if quantity < threshold or percentage <= 0:
        return 0
    return int(round(unit_price * quantity * percentage / 100))


def calculate_cart_totals(
    lines: Iterable[Dict[str, int]],
    delivery_option_id: Optional[str] = None,
    free_threshold: Optional[int] = None,
) -> CartTotals:
    """
    Sum cart lines of ``{"unit_price", "quantity", "threshold", "percentage"}``.
    The delivery fee depends on the discounted subtotal.
    """
    subtotal = 0
    discount = 0
    for line in lines:
        unit_price = int(line["unit_price"])
        quantity = int(line["quantity"])
        subtotal += unit_price * quantity
        discount += calculate_quantity_discount(
            quantity,
            unit_price,
            int(line.get("threshold") or 5),
            int(line.get("percentage") or 0),
        )
    discounted = subtotal - discount
    threshold = Config.FREE_DELIVERY_THRESHOLD_HUF if free_threshold is None else free_threshold
    delivery_fee = calculate_delivery_fee(discounted, delivery_option_id or "own-delivery", threshold)
    return CartTotals(subtotal=subtotal, discount=discount, delivery_fee=delivery_fee, total=discounted + delivery_fee)


def _group_thousands(amount: int, separator: str) -> str:
    sign = "-" if amount < 0 else ""
    return sign + f"{abs(amount):,}".replace(",", separator)


def format_currency(amount: float) -> str:
    """Hungarian currency format, e.g. ``5 700 Ft`` with non-breaking spaces."""
    return f"{_group_thousands(int(round(amount)), NBSP)}{NBSP}Ft"


def format_price(amount: float) -> str:
    return f"{_group_thousands(int(round(amount)), ',')} Ft"
