from __future__ import annotations

import logging

from flask import Blueprint, current_app, jsonify, request, session

from storefront.blueprints.access import require_login
from storefront.database import get_db
from storefront.services.bank_transfer import payment_data_to_qr_string, qr_code_data_url
from storefront.services.checkout_service import CheckoutRequest, CheckoutService
from storefront.services.payment_service import PaymentService

checkout_bp = Blueprint("checkout", __name__)
logger = logging.getLogger(__name__)

QR_REQUIRED_FIELDS = ("name", "iban", "amount", "currency")


def _checkout_service() -> CheckoutService:
    return CheckoutService(get_db(), current_app.config.get("BARION_CLIENT"))


def _parse_checkout():
    try:
        return CheckoutRequest.from_payload(request.get_json(silent=True)), None
    except ValueError as exc:
        return None, (jsonify({"error": str(exc)}), 400)


def _start(method_name: str):
    denied = require_login()
    if denied:
        return denied
    checkout, error = _parse_checkout()
    if error:
        return error

    db = get_db()
    try:
        success, message, payload = getattr(_checkout_service(), method_name)(session["user_id"], checkout)
    except ValueError as exc:
        db.rollback()
        return jsonify({"error": str(exc)}), 400
    if not success:
        db.rollback()
        return jsonify({"error": message}), 500
    return jsonify({"success": True, "message": message, **payload})


@checkout_bp.route("/api/checkout/barion", methods=["POST"])
def checkout_barion():
    return _start("start_barion_checkout")


@checkout_bp.route("/api/checkout/mock", methods=["POST"])
def checkout_mock():
    return _start("start_mock_checkout")


@checkout_bp.route("/api/checkout/bank-transfer", methods=["POST"])
def checkout_bank_transfer():
    return _start("start_bank_transfer_checkout")


@checkout_bp.route("/api/webhooks/barion", methods=["POST"])
def barion_webhook():
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        body = request.form
    payment_id = body.get("PaymentId") or body.get("paymentId") or request.args.get("paymentId")
    if not payment_id:
        return jsonify({"error": "PaymentId is required"}), 400

    service = PaymentService(get_db(), current_app.config.get("BARION_CLIENT"))
    success, message, payload = service.handle_barion_callback(payment_id)
    if not success:
        return jsonify({"error": message}), 404
    return jsonify({"success": True, **payload})


@checkout_bp.route("/api/orders", methods=["GET"])
def list_my_orders():
    denied = require_login()
    if denied:
        return denied
    orders = _checkout_service().orders_for_user(session["user_id"])
    return jsonify({"orders": [order.to_dict() for order in orders]})


@checkout_bp.route("/api/orders/<order_id>", methods=["GET"])
def get_order(order_id: str):
    denied = require_login()
    if denied:
        return denied
    success, message, order = _checkout_service().get_order_for_user(order_id, session["user_id"])
    if not success:
        status_code = 404 if message == "Order not found" else 403
        return jsonify({"error": message}), status_code
    return jsonify({"success": True, "order": order.to_dict()})


@checkout_bp.route("/api/payment/qr-code", methods=["POST"])
def payment_qr_code():
    payment_data = request.get_json(silent=True) or {}
    if any(not payment_data.get(field) for field in QR_REQUIRED_FIELDS):
        return jsonify({"error": "Missing required payment data"}), 400
    qr_string = payment_data_to_qr_string(payment_data)
    return jsonify({"success": True, "qrCodeUrl": qr_code_data_url(qr_string), "qrString": qr_string})
