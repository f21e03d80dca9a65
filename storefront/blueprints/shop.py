from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

from storefront.blueprints.access import require_admin
from storefront.config import Config
from storefront.database import get_db
from storefront.services.analytics_service import AnalyticsService, client_ip
from storefront.services.catalog_service import CatalogService
from storefront.services.delivery_service import (
    DeliverySettingsService,
    available_delivery_options,
    calculate_delivery_fee,
    get_pickup_points,
)
from storefront.services.schedule_service import (
    DeliveryCalendarSettings,
    available_delivery_dates,
    nearest_available_date,
    quick_select_dates,
)
from storefront.services.shop_settings_service import ShopSettingsService

shop_bp = Blueprint("shop", __name__)
logger = logging.getLogger(__name__)


@shop_bp.route("/api/products", methods=["GET"])
def list_products():
    products = CatalogService(get_db()).list_products()
    return jsonify({"products": [product.to_dict() for product in products]})


@shop_bp.route("/api/products/<int:product_id>", methods=["GET"])
def get_product(product_id: int):
    product = CatalogService(get_db()).get_product(product_id)
    if product is None:
        return jsonify({"error": "Product not found"}), 404
    return jsonify({"product": product.to_dict()})


@shop_bp.route("/api/shop-settings/public", methods=["GET"])
def public_shop_settings():
    return jsonify(ShopSettingsService(get_db()).public_settings())


@shop_bp.route("/api/delivery-settings", methods=["GET"])
def get_delivery_settings():
    return jsonify(DeliverySettingsService(get_db()).get_active())


@shop_bp.route("/api/delivery-settings", methods=["POST"])
def update_delivery_settings():
    denied = require_admin()
    if denied:
        return denied
    payload = request.get_json(silent=True) or {}
    try:
        settings = DeliverySettingsService(get_db()).update(
            payload.get("deliveryDays"),
            payload.get("weeksInAdvance"),
            payload.get("cutoffHours"),
        )
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify({"success": True, "settings": settings})


@shop_bp.route("/api/delivery-options", methods=["GET"])
def delivery_options():
    subtotal = request.args.get("subtotal", type=int)
    options = []
    for option in available_delivery_options():
        payload = option.to_dict()
        if subtotal is not None:
            payload["fee"] = calculate_delivery_fee(subtotal, option.id, Config.FREE_DELIVERY_THRESHOLD_HUF)
        options.append(payload)
    return jsonify({"options": options, "freeDeliveryThreshold": Config.FREE_DELIVERY_THRESHOLD_HUF})


@shop_bp.route("/api/pickup-points", methods=["GET"])
def pickup_points():
    points = get_pickup_points(request.args.get("provider"), request.args.get("city"))
    return jsonify({"pickupPoints": [point.to_dict() for point in points]})


@shop_bp.route("/api/delivery-dates", methods=["GET"])
def delivery_dates():
    quick = request.args.get("quick")
    if quick:
        if quick not in ("weekly", "biweekly"):
            return jsonify({"error": "quick must be weekly or biweekly"}), 400
        return jsonify({"dates": [day.isoformat() for day in quick_select_dates(quick)]})

    active = DeliverySettingsService(get_db()).get_active()
    calendar = DeliveryCalendarSettings(
        days=active["deliveryDays"],
        weeks_in_advance=active["weeksInAdvance"],
        cutoff_hours=active["cutoffHours"],
        is_active=active["isActive"],
    )
    dates = available_delivery_dates(calendar)
    nearest = nearest_available_date(dates)
    return jsonify({
        "dates": [item.to_dict() for item in dates],
        "nearest": nearest.isoformat() if nearest else None,
    })


@shop_bp.route("/api/analytics/qr-code", methods=["POST"])
def track_qr_visit():
    try:
        AnalyticsService(get_db()).track_visit(request.get_json(silent=True), client_ip(request.headers))
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify({"success": True})
