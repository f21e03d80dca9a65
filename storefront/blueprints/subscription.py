from __future__ import annotations

import logging

from flask import Blueprint, current_app, jsonify, request, session

from storefront.blueprints.access import current_user, require_login
from storefront.config import Config
from storefront.database import get_db
from storefront.services.address_validation import validate_billing_data
from storefront.services.coupon_service import validate_coupon
from storefront.services.order_service import OrderService, SubscriptionOrderState
from storefront.services.pricing_service import calculate_subscription_pricing, format_currency
from storefront.services.schedule_service import (
    HUNGARIAN_HOLIDAYS_2026,
    date_from_index,
    format_hu_date_with_day,
    selectable_indices,
    validate_schedule,
)
from storefront.services.stripe_service import StripeService

subscription_bp = Blueprint("subscription", __name__)
logger = logging.getLogger(__name__)

ORDER_FAILED_MESSAGE = "Hiba történt a rendelés létrehozása során."
SESSION_FAILED_MESSAGE = "Hiba történt a fizetési munkamenet létrehozása során."


def _stripe_service() -> StripeService:
    return StripeService(
        get_db(),
        api_key=current_app.config.get("STRIPE_SECRET_KEY"),
        webhook_secret=current_app.config.get("STRIPE_WEBHOOK_SECRET"),
    )


def _order_state_from_request():
    payload = request.get_json(silent=True) or {}
    order_state = SubscriptionOrderState.from_payload(payload.get("orderState"))
    errors = validate_billing_data(order_state.billing_data)
    if errors:
        raise ValueError("; ".join(errors))
    return order_state


@subscription_bp.route("/api/modern-shop/schedule", methods=["GET"])
def schedule_options():
    start = Config.SCHEDULE_START_DATE
    options = []
    for index in sorted(selectable_indices(start), key=lambda value: date_from_index(start, value)):
        day = date_from_index(start, index)
        options.append({
            "index": index,
            "date": day.isoformat(),
            "isMonday": day.weekday() == 0,
            "formatted": format_hu_date_with_day(day),
        })
    return jsonify({
        "startDate": start.isoformat(),
        "options": options,
        "holidays": [holiday.isoformat() for holiday in HUNGARIAN_HOLIDAYS_2026],
    })


@subscription_bp.route("/api/modern-shop/validate-coupon", methods=["POST"])
def check_coupon():
    denied = require_login()
    if denied:
        return denied
    payload = request.get_json(silent=True) or {}
    try:
        result = validate_coupon(payload.get("code"), payload.get("customerType"), payload.get("quantity"))
    except ValueError as exc:
        return jsonify({"valid": False, "message": str(exc)}), 400
    return jsonify(result.to_dict())


@subscription_bp.route("/api/modern-shop/quote", methods=["POST"])
def quote():
    payload = request.get_json(silent=True) or {}
    try:
        quantity = int(payload.get("quantity"))
        if payload.get("schedule") is not None:
            schedule_length = len(validate_schedule(payload["schedule"]))
        else:
            schedule_length = int(payload.get("scheduleLength"))
        pricing = calculate_subscription_pricing(
            quantity,
            schedule_length,
            payload.get("appliedCoupon"),
            payload.get("customerType") or "private",
        )
    except (TypeError, ValueError) as exc:
        return jsonify({"error": str(exc)}), 400

    result = pricing.to_dict()
    result["formattedTotal"] = format_currency(pricing.total_amount)
    result["formattedPerDelivery"] = format_currency(pricing.per_delivery_total)
    return jsonify(result)


@subscription_bp.route("/api/modern-shop/billing-data", methods=["GET"])
def get_billing_data():
    denied = require_login()
    if denied:
        return denied
    return jsonify({"billingData": OrderService(get_db()).get_billing_data(session["user_id"])})


@subscription_bp.route("/api/modern-shop/billing-data", methods=["POST"])
def save_billing_data():
    denied = require_login()
    if denied:
        return denied
    billing_data = (request.get_json(silent=True) or {}).get("billingData")
    if not billing_data:
        return jsonify({"error": "Missing billing data"}), 400
    errors = validate_billing_data(billing_data)
    if errors:
        return jsonify({"error": "Invalid billing data", "details": errors}), 400
    OrderService(get_db()).save_billing_data(session["user_id"], billing_data)
    return jsonify({"success": True})


@subscription_bp.route("/api/modern-shop/create-order", methods=["POST"])
def create_order():
    denied = require_login()
    if denied:
        return denied
    try:
        order_state = _order_state_from_request()
    except ValueError as exc:
        return jsonify({"message": str(exc)}), 400

    db = get_db()
    service = OrderService(db)
    try:
        order = service.create_subscription_order(session["user_id"], order_state)
    except ValueError as exc:
        db.rollback()
        return jsonify({"message": str(exc)}), 400
    except Exception:
        db.rollback()
        logger.exception("Subscription order creation failed")
        return jsonify({"message": ORDER_FAILED_MESSAGE}), 500

    return jsonify({
        "success": True,
        "order": service.summarize(order),
        "message": "Rendelés sikeresen létrehozva!",
    })


@subscription_bp.route("/api/modern-shop/create-checkout-session", methods=["POST"])
def create_checkout_session():
    denied = require_login()
    if denied:
        return jsonify({"message": "Unauthorized"}), 401
    try:
        order_state = _order_state_from_request()
    except ValueError as exc:
        return jsonify({"message": str(exc)}), 400

    success, message, payload = _stripe_service().create_checkout_session(
        current_user(), order_state, request.headers.get("Origin")
    )
    if not success:
        logger.error("Stripe checkout unavailable: %s", message)
        return jsonify({"message": SESSION_FAILED_MESSAGE}), 500
    return jsonify(payload)


@subscription_bp.route("/api/modern-shop/verify-payment", methods=["GET"])
def verify_payment():
    denied = require_login()
    if denied:
        return jsonify({"success": False, "message": "Unauthorized"}), 401
    session_id = request.args.get("session_id")
    if not session_id:
        return jsonify({"success": False, "message": "Missing session_id"}), 400

    success, message, payload = _stripe_service().verify_payment(session["user_id"], session_id)
    if not success and message == "Access denied":
        return jsonify({"success": False, "message": message}), 403
    if not success and message == "Order not found":
        return jsonify({"success": False, "message": message}), 404
    return jsonify({"success": success, "message": message, **payload})


@subscription_bp.route("/api/stripe/webhook", methods=["POST"])
def stripe_webhook():
    try:
        result = _stripe_service().handle_webhook(
            request.get_data(), request.headers.get("Stripe-Signature")
        )
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify(result)
