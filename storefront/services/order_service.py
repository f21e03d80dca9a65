from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session, joinedload

from storefront.config import Config
from storefront.models import (
    PaymentGroupStatus,
    PaymentPlan,
    SubscriptionOrder,
    SubscriptionPaymentMethod,
    SubscriptionStatus,
    UserBillingData,
)
from storefront.observability import increment_counter, record_event
from storefront.services.billing_service import build_payment_groups
from storefront.services.pricing_service import SubscriptionPricing, calculate_subscription_pricing
from storefront.services.schedule_service import build_delivery_packages, validate_schedule


@dataclass
class SubscriptionOrderState:
    """The subscription checkout form as posted by the storefront."""

    quantity: int
    schedule: List[int]
    payment_plan: PaymentPlan
    payment_method: SubscriptionPaymentMethod
    billing_data: Dict[str, Any]
    applied_coupon: Optional[str] = None
    is_custom_quantity: bool = False
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def customer_type(self) -> str:
        return self.billing_data.get("type") or "private"

    @classmethod
    def from_payload(cls, payload: Any, start: Optional[date] = None) -> "SubscriptionOrderState":
        if not isinstance(payload, dict):
            raise ValueError("Order state is required")

        quantity = payload.get("quantity")
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise ValueError("Quantity must be a whole number")
        if not Config.MIN_ORDER_QUANTITY <= quantity <= Config.MAX_ORDER_QUANTITY:
            raise ValueError(
                f"Quantity must be between {Config.MIN_ORDER_QUANTITY} and {Config.MAX_ORDER_QUANTITY}"
            )

        schedule = validate_schedule(payload.get("schedule") or [], start)

        try:
            payment_plan = PaymentPlan(payload.get("paymentPlan"))
        except ValueError:
            raise ValueError("Invalid payment plan")
        try:
            payment_method = SubscriptionPaymentMethod(payload.get("paymentMethod"))
        except ValueError:
            raise ValueError("Invalid payment method")

        billing_data = payload.get("billingData")
        if not isinstance(billing_data, dict) or billing_data.get("type") not in ("business", "private"):
            raise ValueError("Billing data with a business or private type is required")

        coupon = payload.get("appliedCoupon")
        return cls(
            quantity=quantity,
            schedule=schedule,
            payment_plan=payment_plan,
            payment_method=payment_method,
            billing_data=billing_data,
            applied_coupon=coupon.strip() if isinstance(coupon, str) and coupon.strip() else None,
            is_custom_quantity=bool(payload.get("isCustomQuantity")),
            raw=payload,
        )

    def price(self) -> SubscriptionPricing:
        return calculate_subscription_pricing(
            self.quantity, len(self.schedule), self.applied_coupon, self.customer_type
        )

    def to_json(self) -> str:
        return json.dumps(
            {
                "quantity": self.quantity,
                "schedule": self.schedule,
                "paymentPlan": self.payment_plan.value,
                "paymentMethod": self.payment_method.value,
                "appliedCoupon": self.applied_coupon,
                "billingData": self.billing_data,
            },
            ensure_ascii=False,
        )


def generate_order_number(now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    millis = str(int(now.timestamp() * 1000))
    return f"ROSTI-{now:%Y%m%d}-{millis[-4:]}"


class OrderService:
    def __init__(self, db_session: Session) -> None:
        self.db = db_session
        self.logger = logging.getLogger(__name__)

    def _unique_order_number(self, now: Optional[datetime] = None) -> str:
        candidate = generate_order_number(now)
        attempts = 0
        while self.db.query(SubscriptionOrder.id).filter(SubscriptionOrder.order_number == candidate).first():
            attempts += 1
            if attempts > 20:
                raise RuntimeError("Could not allocate a unique order number")
            time.sleep(0.001)
            candidate = generate_order_number(datetime.fromtimestamp(time.time()))
        return candidate

    def create_subscription_order(
        self,
        user_id: int,
        order_state: SubscriptionOrderState,
        status: SubscriptionStatus = SubscriptionStatus.CONFIRMED,
        payment_status: str = "pending",
        notes: Optional[str] = None,
        today: Optional[date] = None,
        commit: bool = True,
    ) -> SubscriptionOrder:
        """
        Price and persist a subscription order with its payment groups and delivery packages.

        ``payment_status`` of ``"paid"`` marks every generated payment group as settled.
        """
        pricing = order_state.price()
        now = datetime.now(timezone.utc)

        order = SubscriptionOrder(
            userID=user_id,
            order_number=self._unique_order_number(),
            quantity=order_state.quantity,
            unit_price=pricing.unit_price,
            shipping_fee=pricing.shipping_fee,
            total_amount=pricing.total_amount,
            delivery_schedule=list(order_state.schedule),
            delivery_dates_count=len(order_state.schedule),
            payment_plan=order_state.payment_plan,
            payment_method=order_state.payment_method,
            applied_coupon=order_state.applied_coupon,
            discount_amount=pricing.discount_amount,
            billing_data=order_state.billing_data,
            status=status,
            notes=notes,
            confirmed_at=now if status == SubscriptionStatus.CONFIRMED else None,
        )

        groups = build_payment_groups(order_state.payment_plan, pricing.total_amount, order_state.schedule, today=today)
        for group in groups:
            if payment_status == "paid":
                group.status = PaymentGroupStatus.PAID
                group.paid_at = now
            order.payment_groups.append(group)
        build_delivery_packages(order, order_state.schedule)

        self.db.add(order)
        if not commit:
            self.db.flush()
            return order

        self.db.commit()
        self.db.refresh(order)
        self.record_created(order)
        return order

    def record_created(self, order: SubscriptionOrder) -> None:
        """Count a committed order; callers that defer the commit call this themselves."""
        increment_counter(
            "subscription_orders_created_total",
            labels={"plan": order.payment_plan.value, "status": order.status.value},
        )
        record_event(
            "subscription_order_created",
            {"order_id": order.id, "order_number": order.order_number, "total": order.total_amount},
        )
        self.logger.info(
            "Subscription order created",
            extra={"order_id": order.id, "order_number": order.order_number, "status": order.status.value},
        )

    @staticmethod
    def summarize(order: SubscriptionOrder) -> Dict[str, Any]:
        return {
            "id": order.id,
            "orderNumber": order.order_number,
            "totalAmount": order.total_amount,
            "paymentGroups": len(order.payment_groups),
            "deliveryPackages": len(order.deliveries),
            "status": order.status.value,
        }

    def get_order_for_user(self, order_id: int, user_id: int) -> Tuple[bool, str, Optional[SubscriptionOrder]]:
        order = self.db.query(SubscriptionOrder).filter(SubscriptionOrder.id == order_id).first()
        if order is None:
            return False, "Order not found", None
        if order.userID != user_id:
            return False, "Access denied", None
        return True, "ok", order

    def order_details(self, order_id: int) -> Optional[SubscriptionOrder]:
        return (
            self.db.query(SubscriptionOrder)
            .options(
                joinedload(SubscriptionOrder.user),
                joinedload(SubscriptionOrder.payment_groups),
                joinedload(SubscriptionOrder.deliveries),
            )
            .filter(SubscriptionOrder.id == order_id)
            .first()
        )

    def list_subscription_orders(self, status: Optional[str] = None) -> List[SubscriptionOrder]:
        query = self.db.query(SubscriptionOrder).options(joinedload(SubscriptionOrder.user))
        if status:
            try:
                query = query.filter(SubscriptionOrder.status == SubscriptionStatus(status))
            except ValueError:
                raise ValueError("Unknown order status")
        return query.order_by(SubscriptionOrder.created_at.desc()).all()

    def save_billing_data(self, user_id: int, data: Any) -> None:
        if not data:
            raise ValueError("Missing billing data")
        record = self.db.query(UserBillingData).filter(UserBillingData.userID == user_id).first()
        serialized = json.dumps(data, ensure_ascii=False)
        if record is None:
            self.db.add(UserBillingData(userID=user_id, data=serialized))
        else:
            record.data = serialized
            record.updated_at = datetime.now(timezone.utc)
        self.db.commit()

    def get_billing_data(self, user_id: int) -> Optional[Dict[str, Any]]:
        record = self.db.query(UserBillingData).filter(UserBillingData.userID == user_id).first()
        if record is None:
            return None
        return json.loads(record.data)
