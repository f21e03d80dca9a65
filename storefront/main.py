# storefront/main.py
import logging
import time
from datetime import datetime, timezone

import click
import stripe
from flask import Flask, request, session, jsonify, g, abort

from storefront.config import Config
from storefront.database import get_db, close_db, engine
from storefront.models import Base, User
from storefront.blueprints.admin import admin_bp
from storefront.blueprints.auth import auth_bp
from storefront.blueprints.checkout import checkout_bp
from storefront.blueprints.shop import shop_bp
from storefront.blueprints.subscription import subscription_bp
from storefront.observability import (
    configure_logging,
    increment_counter,
    observe_latency,
    get_metrics_snapshot,
    check_database_health,
    check_payment_gateways,
)
from storefront.observability.business_metrics import (
    build_report_window,
    compute_cart_order_metrics,
    compute_receivables,
    compute_subscription_metrics,
)
from storefront.observability.logging_config import ensure_request_id
from storefront.services.barion_client import PaymentGatewayError

app = Flask(__name__)
Config.configure_app(app)
configure_logging(app)

for blueprint in (auth_bp, shop_bp, checkout_bp, subscription_bp, admin_bp):
    app.register_blueprint(blueprint)

logger = logging.getLogger(__name__)


def init_database():
    """Create any missing tables."""
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables initialized successfully")


init_database()


def is_admin_user() -> bool:
    user = getattr(g, "current_user", None)
    if user:
        return user.is_admin
    return False


@app.before_request
def before_request_logging():
    g.current_user = None
    if 'user_id' in session:
        db = get_db()
        g.current_user = db.query(User).filter_by(userID=session['user_id']).first()
    g.request_started_at = time.perf_counter()
    g.request_id = ensure_request_id()
    increment_counter(
        "http_requests_total",
        labels={
            "method": request.method,
            "endpoint": request.endpoint or request.path,
        },
    )


@app.after_request
def after_request_logging(response):
    labels = {
        "method": request.method,
        "endpoint": request.endpoint or request.path,
        "status": str(response.status_code),
    }
    started = getattr(g, 'request_started_at', None)
    if started is not None:
        observe_latency("http_request_latency_ms", (time.perf_counter() - started) * 1000, labels=labels)
    if response.status_code >= 500:
        increment_counter("http_errors_total", labels=labels)
        logger.error("Request finished with error status %s", response.status_code)
    else:
        logger.info("Request finished", extra={"status_code": response.status_code})
    response.headers.setdefault(Config.REQUEST_ID_HEADER, getattr(g, "request_id", ""))
    return response


@app.teardown_appcontext
def teardown_db(exception):
    close_db(exception)


@app.errorhandler(PaymentGatewayError)
def handle_gateway_error(exc):
    get_db().rollback()
    increment_counter("payment_gateway_errors_total", labels={"gateway": "barion"})
    logger.exception("Barion request failed")
    return jsonify({"error": str(exc), "details": exc.errors}), 502


@app.errorhandler(stripe.StripeError)
def handle_stripe_error(exc):
    get_db().rollback()
    increment_counter("payment_gateway_errors_total", labels={"gateway": "stripe"})
    logger.exception("Stripe request failed")
    return jsonify({"error": "Payment provider error"}), 502


@app.route('/health', methods=['GET'])
def health():
    db_status = check_database_health()
    overall = "UP" if db_status.get("status") == "UP" else "DEGRADED"
    status_code = 200 if overall == "UP" else 503
    return jsonify({
        "status": overall,
        "components": {
            "database": db_status,
            "gateways": check_payment_gateways(),
        }
    }), status_code


@app.route('/api/ping', methods=['GET', 'POST'])
def ping():
    return jsonify({"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()})


@app.route('/admin/metrics', methods=['GET'])
def admin_metrics():
    if not is_admin_user():
        abort(403)
    window = build_report_window(request.args.get("days", default=30, type=int) or 30)
    db = get_db()
    snapshot = get_metrics_snapshot()
    snapshot["business"] = {
        "window": {"days": window.days, "start": window.start.isoformat(), "end": window.end.isoformat()},
        "subscriptions": compute_subscription_metrics(db, window),
        "cartOrders": compute_cart_order_metrics(db, window),
        "receivables": compute_receivables(db),
    }
    return jsonify(snapshot)


@app.cli.command("seed-db")
def seed_db_command():
    """Create the demo accounts, products and shop settings."""
    from storefront.seed import seed_database

    db = get_db()
    created = seed_database(db)
    click.echo(f"Seeded database: {created}")
