from __future__ import annotations

import logging
from datetime import date

from flask import Blueprint, Response, jsonify, request

from storefront.blueprints.access import require_admin, serialize_user
from storefront.config import Config
from storefront.database import get_db
from storefront.models import User
from storefront.observability import increment_counter
from storefront.services.analytics_service import AnalyticsService
from storefront.services.billing_service import BillingService
from storefront.services.catalog_service import CatalogService
from storefront.services.checkout_service import CheckoutService
from storefront.services.delivery_service import DeliveryService
from storefront.services.export_service import export_filename, orders_csv
from storefront.services.order_service import OrderService
from storefront.services.shop_settings_service import ShopSettingsService

admin_bp = Blueprint("admin", __name__)
logger = logging.getLogger(__name__)

ASSIGNABLE_ROLES = ("customer", "admin")


@admin_bp.before_request
def _admin_only():
    return require_admin()


# ---------------------------------------------
# Catalogue
# ---------------------------------------------

@admin_bp.route("/api/admin/products", methods=["POST"])
def create_product():
    try:
        success, message, product = CatalogService(get_db()).create_product(request.get_json(silent=True))
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    if not success:
        return jsonify({"error": message}), 409
    return jsonify({"success": True, "product": product.to_dict()}), 201


@admin_bp.route("/api/admin/products/<int:product_id>", methods=["PATCH"])
def update_product(product_id: int):
    try:
        success, message, product = CatalogService(get_db()).update_product(
            product_id, request.get_json(silent=True)
        )
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    if not success:
        return jsonify({"error": message}), 404
    return jsonify({"success": True, "product": product.to_dict()})


@admin_bp.route("/api/admin/products/<int:product_id>", methods=["DELETE"])
def delete_product(product_id: int):
    success, message = CatalogService(get_db()).delete_product(product_id)
    if not success:
        return jsonify({"error": message}), 404
    return jsonify({"success": True})


# ---------------------------------------------
# Orders
# ---------------------------------------------

@admin_bp.route("/api/admin/orders/export", methods=["GET"])
def export_orders():
    body = orders_csv(get_db())
    increment_counter("order_exports_total")
    return Response(
        body,
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{export_filename()}"'},
    )


@admin_bp.route("/api/admin/orders", methods=["GET"])
def list_orders():
    orders = CheckoutService(get_db()).all_orders()
    return jsonify({
        "orders": [
            dict(order.to_dict(include_items=False), customerEmail=order.user.email if order.user else None)
            for order in orders
        ]
    })


@admin_bp.route("/api/admin/orders/<order_id>/details", methods=["GET"])
def order_details(order_id: str):
    order = CheckoutService(get_db()).order_details(order_id)
    if order is None:
        return jsonify({"error": "Order not found"}), 404
    payload = order.to_dict()
    payload["customerEmail"] = order.user.email if order.user else None
    return jsonify({"order": payload})


@admin_bp.route("/api/admin/subscription-orders/<int:order_id>", methods=["GET"])
def subscription_order_details(order_id: int):
    order = OrderService(get_db()).order_details(order_id)
    if order is None:
        return jsonify({"error": "Order not found"}), 404
    payload = order.to_dict()
    payload["customerEmail"] = order.user.email if order.user else None
    return jsonify({"order": payload})


@admin_bp.route("/api/admin/subscription-orders", methods=["GET"])
def subscription_orders():
    try:
        orders = OrderService(get_db()).list_subscription_orders(request.args.get("status"))
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify({
        "orders": [
            dict(order.to_dict(), customerEmail=order.user.email if order.user else None)
            for order in orders
        ]
    })


# ---------------------------------------------
# Billing
# ---------------------------------------------

@admin_bp.route("/api/admin/billing", methods=["GET"])
def billing_overview():
    return jsonify(BillingService(get_db()).billing_overview())


@admin_bp.route("/api/admin/billing/<int:group_id>", methods=["GET"])
def get_payment_group(group_id: int):
    group = BillingService(get_db()).get_group(group_id)
    if group is None:
        return jsonify({"error": "Payment group not found"}), 404
    payload = group.to_dict()
    payload["order"] = group.order.to_dict() if group.order else None
    return jsonify({"paymentGroup": payload})


@admin_bp.route("/api/admin/billing/<int:group_id>", methods=["PATCH"])
def update_payment_group(group_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        success, message, group = BillingService(get_db()).apply_action(
            group_id,
            payload.get("action"),
            bill_number=payload.get("billNumber"),
            bill_notes=payload.get("billNotes"),
        )
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    if not success:
        return jsonify({"error": message}), 404
    return jsonify({"success": True, "paymentGroup": group.to_dict()})


# ---------------------------------------------
# Deliveries
# ---------------------------------------------

@admin_bp.route("/api/admin/deliveries", methods=["GET"])
def upcoming_deliveries():
    return jsonify({"deliveriesByDate": DeliveryService(get_db()).upcoming_deliveries()})


@admin_bp.route("/api/admin/generate-delivery-pdf", methods=["POST"])
def delivery_list():
    raw = (request.get_json(silent=True) or {}).get("date")
    if not raw:
        return jsonify({"error": "Missing date"}), 400
    try:
        day = date.fromisoformat(str(raw)[:10])
    except ValueError:
        return jsonify({"error": "Invalid date"}), 400
    html = DeliveryService(get_db()).render_delivery_list(day)
    return Response(html, mimetype="text/html")


# ---------------------------------------------
# Shop settings, users and analytics
# ---------------------------------------------

@admin_bp.route("/api/admin/shop-settings", methods=["GET"])
def list_shop_settings():
    settings = ShopSettingsService(get_db()).list_settings()
    return jsonify({"settings": [setting.to_dict() for setting in settings]})


@admin_bp.route("/api/admin/shop-settings", methods=["PATCH"])
def update_shop_setting():
    payload = request.get_json(silent=True) or {}
    try:
        setting = ShopSettingsService(get_db()).set_setting(
            payload.get("key"), payload.get("value"), payload.get("label")
        )
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify({"success": True, "setting": setting.to_dict()})


@admin_bp.route("/api/admin/users", methods=["GET"])
def list_users():
    users = get_db().query(User).order_by(User.userID.asc()).all()
    return jsonify({"users": [serialize_user(user) for user in users]})


@admin_bp.route("/api/admin/users", methods=["POST"])
def change_user_role():
    payload = request.get_json(silent=True) or {}
    user_id = payload.get("userId", payload.get("user_id"))
    role = payload.get("role")
    if user_id is None or role not in ASSIGNABLE_ROLES:
        return jsonify({"error": "userId and a valid role are required"}), 400

    db = get_db()
    user = db.query(User).filter_by(userID=user_id).first()
    if user is None:
        return jsonify({"error": "User not found"}), 404
    if user.email == Config.SUPER_ADMIN_EMAIL and role != "admin":
        return jsonify({"error": "The super admin cannot be demoted"}), 403

    user.role = role
    db.commit()
    logger.info("User %s role set to %s", user.userID, role)
    return jsonify({"success": True, "user": serialize_user(user)})


@admin_bp.route("/api/analytics/qr-code", methods=["GET"])
def qr_code_summary():
    days = request.args.get("days", default=30, type=int)
    if days is None or days < 1:
        return jsonify({"error": "days must be a positive number"}), 400
    return jsonify(AnalyticsService(get_db()).qr_summary(days))
