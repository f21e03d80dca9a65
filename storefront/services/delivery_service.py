from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import asdict, dataclass
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from flask import render_template
from sqlalchemy.orm import Session, joinedload

from storefront.models import (
    DeliverySettings,
    DeliveryStatus,
    OrderDelivery,
    SubscriptionOrder,
    SubscriptionStatus,
)
from storefront.observability import increment_counter
from storefront.services.address_validation import delivery_contact, format_short_address

DEFAULT_DELIVERY_FEE = 1500
DEFAULT_DELIVERY_DAYS = ("monday", "wednesday")
VALID_DELIVERY_DAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

_HU_MONTHS = (
    "január", "február", "március", "április", "május", "június",
    "július", "augusztus", "szeptember", "október", "november", "december",
)
_HU_WEEKDAYS = ("hétfő", "kedd", "szerda", "csütörtök", "péntek", "szombat", "vasárnap")


@dataclass(frozen=True)
class DeliveryOption:
    id: str
    name: str
    description: str
    provider: str
    type: str
    price: int
    estimated_days: str
    enabled: bool = True
    logo: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["estimatedDays"] = payload.pop("estimated_days")
        return payload


@dataclass(frozen=True)
class PickupPoint:
    id: str
    name: str
    address: str
    city: str
    postal_code: str
    opening_hours: str
    provider: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "city": self.city,
            "postalCode": self.postal_code,
            "openingHours": self.opening_hours,
            "provider": self.provider,
        }


DELIVERY_OPTIONS: Tuple[DeliveryOption, ...] = (
    DeliveryOption("own-delivery", "Saját kézbesítés", "Saját futárszolgálattal házhoz szállítás",
                   "own", "home_delivery", 1500, "1-2 munkanap"),
    DeliveryOption("foxpost-pickup", "Foxpost csomagautomata", "Átvétel Foxpost csomagautomatából",
                   "foxpost", "pickup_point", 890, "1-3 munkanap", logo="https://foxpost.hu/images/logo.png"),
    DeliveryOption("foxpost-home", "Foxpost házhoz szállítás", "Foxpost futár házhoz szállítás",
                   "foxpost", "home_delivery", 1690, "1-3 munkanap", logo="https://foxpost.hu/images/logo.png"),
    DeliveryOption("posta-pickup", "Posta pont átvétel", "Átvétel postahivatalban vagy posta ponton",
                   "posta", "pickup_point", 1200, "2-4 munkanap",
                   logo="https://www.posta.hu/static/images/posta_logo.png"),
    DeliveryOption("posta-home", "Posta házhoz szállítás", "Magyar Posta házhoz szállítás",
                   "posta", "home_delivery", 1890, "2-4 munkanap",
                   logo="https://www.posta.hu/static/images/posta_logo.png"),
    DeliveryOption("packeta-pickup", "Packeta Z-BOX", "Átvétel Packeta Z-BOX csomagautomatából",
                   "packeta", "pickup_point", 990, "1-3 munkanap",
                   logo="https://www.zasilkovna.cz/images/page/logo.svg"),
    DeliveryOption("packeta-home", "Packeta házhoz szállítás", "Packeta futár házhoz szállítás",
                   "packeta", "home_delivery", 1590, "1-3 munkanap",
                   logo="https://www.zasilkovna.cz/images/page/logo.svg"),
)

PICKUP_POINTS: Tuple[PickupPoint, ...] = (
    PickupPoint("foxpost-1", "Foxpost - Westend City Center", "Váci út 1-3", "Budapest", "1062",
                "H-V: 10:00-22:00, Sz-V: 10:00-22:00", "foxpost"),
    PickupPoint("foxpost-2", "Foxpost - Árkád Budapest", "Örs vezér tere 25/A", "Budapest", "1148",
                "H-V: 10:00-21:00, Sz-V: 10:00-21:00", "foxpost"),
    PickupPoint("posta-1", "Budapest 62 Postahivatal", "Váci út 47", "Budapest", "1134",
                "H-P: 8:00-18:00, Sz: 8:00-12:00", "posta"),
    PickupPoint("posta-2", "Budapest 13 Postahivatal", "Szent István körút 22", "Budapest", "1137",
                "H-P: 8:00-19:00, Sz: 8:00-13:00", "posta"),
    PickupPoint("packeta-1", "Packeta Z-BOX - Tesco Hypermarket", "Pesti út 237", "Budapest", "1173",
                "24/7", "packeta"),
    PickupPoint("packeta-2", "Packeta Z-BOX - ALDI", "Váci út 178", "Budapest", "1138", "24/7", "packeta"),
)


def get_delivery_option(option_id: str) -> Optional[DeliveryOption]:
    for option in DELIVERY_OPTIONS:
        if option.id == option_id:
            return option
    return None


def available_delivery_options() -> List[DeliveryOption]:
    return [option for option in DELIVERY_OPTIONS if option.enabled]


def calculate_delivery_fee(subtotal: int, option_id: str, free_threshold: int = 15000) -> int:
    if option_id == "own-delivery" and subtotal >= free_threshold:
        return 0
    option = get_delivery_option(option_id)
    if option is None or not option.enabled:
        return DEFAULT_DELIVERY_FEE
    return option.price


def get_pickup_points(provider: Optional[str] = None, city: Optional[str] = None) -> List[PickupPoint]:
    points = list(PICKUP_POINTS)
    if provider:
        points = [point for point in points if point.provider == provider]
    if city:
        needle = city.lower()
        points = [point for point in points if needle in point.city.lower()]
    return points


def format_hu_long_date(day: date) -> str:
    """``2026. január 19., hétfő``"""
    return f"{day.year}. {_HU_MONTHS[day.month - 1]} {day.day}., {_HU_WEEKDAYS[day.weekday()]}"


class DeliverySettingsService:
    """Active weekday calendar used by the classic cart date picker."""

    def __init__(self, db_session: Session) -> None:
        self.db = db_session
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def _serialize(settings: Optional[DeliverySettings]) -> Dict[str, Any]:
        if settings is None:
            return {
                "deliveryDays": list(DEFAULT_DELIVERY_DAYS),
                "weeksInAdvance": 4,
                "cutoffHours": 24,
                "isActive": True,
            }
        return {
            "deliveryDays": list(settings.delivery_days or []),
            "weeksInAdvance": settings.weeks_in_advance,
            "cutoffHours": settings.cutoff_hours,
            "isActive": bool(settings.is_active),
        }

    def get_active(self) -> Dict[str, Any]:
        settings = (
            self.db.query(DeliverySettings)
            .filter(DeliverySettings.is_active.is_(True))
            .order_by(DeliverySettings.id.desc())
            .first()
        )
        return self._serialize(settings)

    def update(self, days: Any, weeks_in_advance: Any = None, cutoff_hours: Any = None) -> Dict[str, Any]:
        if not isinstance(days, list) or not days:
            raise ValueError("Delivery days must be a non-empty array")
        unknown = [day for day in days if day not in VALID_DELIVERY_DAYS]
        if unknown:
            raise ValueError(f"Unknown delivery days: {', '.join(map(str, unknown))}")
        try:
            weeks = int(weeks_in_advance or 4)
            cutoff = int(cutoff_hours or 24)
        except (TypeError, ValueError):
            raise ValueError("weeksInAdvance and cutoffHours must be whole numbers")
        if weeks < 1 or cutoff < 0:
            raise ValueError("weeksInAdvance must be positive and cutoffHours non-negative")

        self.db.query(DeliverySettings).update({DeliverySettings.is_active: False}, synchronize_session=False)
        settings = DeliverySettings(
            delivery_days=list(days),
            weeks_in_advance=weeks,
            cutoff_hours=cutoff,
            is_active=True,
            updated_at=datetime.now(timezone.utc),
        )
        self.db.add(settings)
        self.db.commit()
        self.logger.info("Delivery settings updated: %s", ", ".join(days))
        return self._serialize(settings)


class DeliveryService:
    """Upcoming subscription deliveries and the printable courier list."""

    def __init__(self, db_session: Session) -> None:
        self.db = db_session
        self.logger = logging.getLogger(__name__)

    def _base_query(self):
        return (
            self.db.query(OrderDelivery)
            .join(SubscriptionOrder, OrderDelivery.orderID == SubscriptionOrder.id)
            .options(joinedload(OrderDelivery.order).joinedload(SubscriptionOrder.user))
            .filter(SubscriptionOrder.status == SubscriptionStatus.CONFIRMED)
            .filter(OrderDelivery.status != DeliveryStatus.CANCELLED)
        )

    def deliveries_on(self, day: date) -> List[OrderDelivery]:
        return (
            self._base_query()
            .filter(OrderDelivery.delivery_date == day)
            .order_by(OrderDelivery.id.asc())
            .all()
        )

    def upcoming_deliveries(self, today: Optional[date] = None) -> "OrderedDict[str, List[Dict[str, Any]]]":
        today = today or date.today()
        deliveries = (
            self._base_query()
            .filter(OrderDelivery.delivery_date >= today)
            .order_by(OrderDelivery.delivery_date.asc(), OrderDelivery.id.asc())
            .all()
        )
        grouped: "OrderedDict[str, List[Dict[str, Any]]]" = OrderedDict()
        for delivery in deliveries:
            grouped.setdefault(delivery.delivery_date.isoformat(), []).append(self.delivery_row(delivery))
        return grouped

    @staticmethod
    def delivery_row(delivery: OrderDelivery) -> Dict[str, Any]:
        order = delivery.order
        billing = order.billing_data or {}
        address = billing.get("shippingAddress") or billing.get("billingAddress")
        payload = delivery.to_dict()
        payload.update(
            {
                "orderNumber": order.order_number,
                "customerEmail": order.user.email if order.user else None,
                "address": format_short_address(address) or "No address available",
                "contact": delivery_contact(billing),
            }
        )
        return payload

    def render_delivery_list(self, day: date, deliveries: Optional[Sequence[OrderDelivery]] = None) -> str:
        deliveries = list(deliveries) if deliveries is not None else self.deliveries_on(day)
        rows = [self.delivery_row(delivery) for delivery in deliveries]
        increment_counter("delivery_lists_rendered_total")
        self.logger.info("Delivery list rendered for %s (%d deliveries)", day.isoformat(), len(rows))
        return render_template(
            "delivery_list.html",
            title="ROSTI - Delivery List",
            date_label=format_hu_long_date(day),
            deliveries=rows,
            total_bottles=sum(row["quantity"] for row in rows),
            generated_at=datetime.now().strftime("%Y. %m. %d. %H:%M:%S"),
        )
