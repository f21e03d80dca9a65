import json
import logging

from storefront.observability import check_payment_gateways
from storefront.observability.logging_config import JsonFormatter
from storefront.observability.metrics import (
    counter_total,
    events_named,
    get_metrics_snapshot,
    increment_counter,
    observe_latency,
    record_event,
    reset_metrics,
    set_gauge,
)


def test_metrics_snapshot_accumulates_counts():
    reset_metrics()
    increment_counter("orders_created_total")
    increment_counter("orders_created_total", amount=2, labels={"payment_method": "barion"})
    set_gauge("pending_payment_groups", 5)
    observe_latency("http_request_latency_ms", 100, labels={"endpoint": "shop.list_products"})
    observe_latency("http_request_latency_ms", 50, labels={"endpoint": "shop.list_products"})

    snapshot = get_metrics_snapshot()
    assert len(snapshot["counters"]["orders_created_total"]) == 2
    assert snapshot["gauges"]["pending_payment_groups"][0]["value"] == 5

    hist = snapshot["histograms"]["http_request_latency_ms"][0]["stats"]
    assert hist["count"] == 2
    assert hist["max"] == 100
    assert hist["avg"] == 75


def test_counter_total_filters_by_labels():
    reset_metrics()
    increment_counter("stripe_webhooks_total", labels={"type": "checkout.session.completed"})
    increment_counter("stripe_webhooks_total", labels={"type": "ignored"})
    increment_counter("stripe_webhooks_total", labels={"type": "ignored"})

    assert counter_total("stripe_webhooks_total") == 3
    assert counter_total("stripe_webhooks_total", {"type": "ignored"}) == 2
    assert counter_total("missing_total") == 0


def test_events_are_capped_and_filterable():
    reset_metrics()
    for number in range(205):
        record_event("order_created", {"n": number})
    record_event("billing_action", {"action": "send_bill"})

    snapshot = get_metrics_snapshot()
    assert len(snapshot["events"]) == 200
    assert snapshot["events"][0]["payload"] == {"n": 6}
    assert [event["payload"] for event in events_named("billing_action")] == [{"action": "send_bill"}]


def test_json_formatter_keeps_business_fields():
    record = logging.LogRecord("storefront.test", logging.INFO, __file__, 1, "Order %s paid", ("A-1",), None)
    record.order_id = "A-1"
    record.payment_id = "pay-1"
    payload = json.loads(JsonFormatter().format(record))
    assert payload["message"] == "Order A-1 paid"
    assert payload["order_id"] == "A-1"
    assert payload["payment_id"] == "pay-1"
    assert payload["level"] == "INFO"


def test_gateway_health_reports_missing_credentials():
    gateways = check_payment_gateways()
    assert gateways["barion"]["status"] == "NOT_CONFIGURED"
    assert gateways["stripe"]["status"] == "NOT_CONFIGURED"


def test_health_and_ping(client):
    health = client.get("/health")
    assert health.status_code == 200
    body = health.get_json()
    assert body["status"] == "UP"
    assert body["components"]["database"]["status"] == "UP"
    assert "stripe" in body["components"]["gateways"]

    for method in (client.get, client.post):
        ping = method("/api/ping").get_json()
        assert ping["status"] == "ok"
        assert ping["timestamp"]


def test_requests_are_counted_and_tagged(client):
    response = client.get("/api/ping", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"
    assert counter_total("http_requests_total", {"endpoint": "ping"}) == 1


def test_admin_metrics_requires_admin(client, customer_client):
    assert customer_client.get("/admin/metrics").status_code == 403


def test_admin_metrics_include_business_report(client, login, admin_id, customer_id, cart_payload):
    login(client, customer_id)
    client.post("/api/checkout/bank-transfer", json=cart_payload)

    login(client, admin_id)
    response = client.get("/admin/metrics?days=7")
    assert response.status_code == 200
    body = response.get_json()
    business = body["business"]
    assert business["window"]["days"] == 7
    assert business["cartOrders"]["total"] == 1
    assert business["receivables"] == {"pending_groups": 0, "pending_amount_huf": 0}
    assert "orders_created_total" in body["counters"]
