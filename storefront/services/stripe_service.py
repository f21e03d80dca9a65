from __future__ import annotations

import dataclasses
import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import stripe
from sqlalchemy.orm import Session

from storefront.config import Config
from storefront.models import (
    PaymentGroupStatus,
    PaymentPlan,
    SubscriptionOrder,
    SubscriptionPaymentMethod,
    SubscriptionStatus,
    User,
)
from storefront.observability import increment_counter, record_event
from storefront.services.billing_service import format_hu_numeric_date
from storefront.services.order_service import OrderService, SubscriptionOrderState
from storefront.services.pricing_service import SubscriptionPricing
from storefront.services.schedule_service import schedule_dates

FULFILMENT_EVENTS = ("checkout.session.completed", "checkout.session.async_payment_succeeded")
STRIPE_GROUP_DESCRIPTION = "Teljes összeg kártyás fizetése (Stripe)"


def _field(obj: Any, key: str, default: Any = None) -> Any:
    """Read a key from a Stripe object or a plain dict."""
    if obj is None:
        return default
    try:
        value = obj[key]
    except (KeyError, TypeError):
        return default
    return default if value is None else value


def build_line_items(
    order_state: SubscriptionOrderState,
    pricing: SubscriptionPricing,
    start: Optional[date] = None,
) -> List[Dict[str, Any]]:
    deliveries = len(order_state.schedule)
    dates = schedule_dates(order_state.schedule, start)
    first, last = format_hu_numeric_date(dates[0]), format_hu_numeric_date(dates[-1])

    line_items: List[Dict[str, Any]] = [
        {
            "price_data": {
                "currency": "huf",
                "product_data": {
                    "name": "Rosti friss préselt gyümölcslé",
                    "description": f"{order_state.quantity} palack × {deliveries} szállítás ({first} – {last})",
                },
                "unit_amount": pricing.subtotal_per_delivery,
            },
            "quantity": deliveries,
        }
    ]
    if pricing.shipping_fee > 0:
        line_items.append(
            {
                "price_data": {
                    "currency": "huf",
                    "product_data": {
                        "name": "Szállítási díj",
                        "description": f"{deliveries} alkalomra",
                    },
                    "unit_amount": pricing.shipping_fee,
                },
                "quantity": deliveries,
            }
        )
    return line_items


class StripeService:
    """
    Stripe Checkout for subscription orders.

    The order is stored as ``pending_payment`` before the hosted session is opened; the
    webhook and the success-page verification both confirm it through ``fulfil_order``.
    """

    def __init__(
        self,
        db_session: Session,
        api_key: Optional[str] = None,
        webhook_secret: Optional[str] = None,
    ) -> None:
        self.db = db_session
        self.api_key = api_key if api_key is not None else Config.STRIPE_SECRET_KEY
        self.webhook_secret = webhook_secret if webhook_secret is not None else Config.STRIPE_WEBHOOK_SECRET
        self.orders = OrderService(db_session)
        self.logger = logging.getLogger(__name__)

    def _configure(self) -> None:
        stripe.api_key = self.api_key

    def create_checkout_session(
        self,
        user: User,
        order_state: SubscriptionOrderState,
        origin: Optional[str] = None,
    ) -> Tuple[bool, str, Dict[str, Any]]:
        if not self.api_key:
            return False, "Stripe is not configured", {}
        self._configure()

        card_state = dataclasses.replace(
            order_state,
            payment_plan=PaymentPlan.FULL,
            payment_method=SubscriptionPaymentMethod.CARD,
        )
        order = self.orders.create_subscription_order(
            user.userID,
            card_state,
            status=SubscriptionStatus.PENDING_PAYMENT,
            commit=False,
        )
        for group in order.payment_groups:
            group.description = STRIPE_GROUP_DESCRIPTION

        origin = (origin or Config.PUBLIC_BASE_URL).rstrip("/")
        try:
            session = stripe.checkout.Session.create(
                payment_method_types=["card"],
                line_items=build_line_items(card_state, card_state.price()),
                mode="payment",
                success_url=f"{origin}/modern-shop/payment-success?session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=f"{origin}/modern-shop?screen=summary",
                customer_email=user.email or None,
                metadata={
                    "userId": str(user.userID),
                    "orderId": str(order.id),
                    "orderStateJson": card_state.to_json(),
                },
                locale="hu",
            )
        except stripe.StripeError:
            self.db.rollback()
            increment_counter("stripe_sessions_total", labels={"result": "error"})
            self.logger.exception("Stripe checkout session creation failed")
            raise

        session_id = _field(session, "id")
        order.notes = f"Stripe session: {session_id}"
        self.db.commit()
        self.orders.record_created(order)

        increment_counter("stripe_sessions_total", labels={"result": "created"})
        self.logger.info(
            "Stripe checkout session created",
            extra={"order_id": order.id, "order_number": order.order_number, "payment_id": session_id},
        )
        return True, "Checkout session created", {
            "sessionId": session_id,
            "url": _field(session, "url"),
            "orderId": order.id,
            "orderNumber": order.order_number,
        }

    def fulfil_order(
        self,
        order_id: Any,
        session_id: Optional[str],
        payment_intent: Optional[str],
    ) -> Optional[SubscriptionOrder]:
        """Confirm a pending order and mark its payment groups paid; confirmed orders are left as is."""
        try:
            order_pk = int(order_id)
        except (TypeError, ValueError):
            self.logger.error("Stripe session without a usable orderId", extra={"payment_id": session_id})
            return None

        order = self.db.query(SubscriptionOrder).filter(SubscriptionOrder.id == order_pk).first()
        if order is None:
            self.logger.error("Stripe session refers to an unknown order", extra={"order_id": order_pk})
            return None
        if order.status == SubscriptionStatus.CONFIRMED:
            increment_counter("stripe_fulfilments_total", labels={"result": "already_confirmed"})
            return order

        now = datetime.now(timezone.utc)
        order.status = SubscriptionStatus.CONFIRMED
        order.confirmed_at = now
        order.notes = f"Stripe session: {session_id}, Payment intent: {payment_intent}"
        for group in order.payment_groups:
            group.status = PaymentGroupStatus.PAID
            group.paid_at = now
        self.db.commit()

        increment_counter("stripe_fulfilments_total", labels={"result": "confirmed"})
        record_event(
            "order_status_changed",
            {"order_id": order.id, "from": SubscriptionStatus.PENDING_PAYMENT.value, "to": "confirmed", "source": "stripe"},
        )
        self.logger.info("Subscription order paid via Stripe", extra={"order_id": order.id, "payment_id": session_id})
        return order

    def _fulfil_session(self, session: Any) -> Optional[SubscriptionOrder]:
        metadata = _field(session, "metadata", {})
        return self.fulfil_order(
            _field(metadata, "orderId"),
            _field(session, "id"),
            _field(session, "payment_intent"),
        )

    def handle_webhook(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        if not signature:
            raise ValueError("Missing signature")
        try:
            event = stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except (ValueError, stripe.SignatureVerificationError) as exc:
            increment_counter("stripe_webhooks_total", labels={"result": "invalid_signature"})
            self.logger.warning("Stripe webhook rejected: %s", exc)
            raise ValueError("Invalid signature") from exc

        event_type = _field(event, "type")
        session = _field(_field(event, "data", {}), "object", {})
        fulfilled = False
        if event_type == "checkout.session.completed":
            if _field(session, "payment_status") == "paid":
                fulfilled = self._fulfil_session(session) is not None
        elif event_type == "checkout.session.async_payment_succeeded":
            fulfilled = self._fulfil_session(session) is not None

        increment_counter(
            "stripe_webhooks_total",
            labels={"type": event_type if event_type in FULFILMENT_EVENTS else "ignored"},
        )
        return {"received": True, "type": event_type, "fulfilled": fulfilled}

    def verify_payment(self, user_id: int, session_id: Optional[str]) -> Tuple[bool, str, Dict[str, Any]]:
        if not session_id:
            raise ValueError("Missing session_id")
        self._configure()
        session = stripe.checkout.Session.retrieve(session_id)

        payment_status = _field(session, "payment_status")
        if payment_status != "paid":
            return False, "Payment not yet completed", {"paymentStatus": payment_status}

        metadata = _field(session, "metadata", {})
        if str(_field(metadata, "userId", "")) != str(user_id):
            return False, "Access denied", {}

        order = self._fulfil_session(session)
        if order is None:
            return False, "Order not found", {}
        return True, "Payment confirmed", {"orderNumber": order.order_number, "status": order.status.value}


__all__ = ["StripeService", "build_line_items", "FULFILMENT_EVENTS"]
