import re
from datetime import date, datetime

import pytest

from storefront.models import (
    OrderDelivery,
    PaymentGroupStatus,
    SubscriptionOrder,
    SubscriptionStatus,
)
from storefront.services.order_service import (
    OrderService,
    SubscriptionOrderState,
    generate_order_number,
)


def test_order_number_format():
    number = generate_order_number(datetime(2026, 1, 19, 10, 30))
    assert re.fullmatch(r"ROSTI-20260119-\d{4}", number)


def test_order_state_parsing(order_state_payload):
    state = SubscriptionOrderState.from_payload(dict(order_state_payload, schedule=[1, 0], appliedCoupon="  "))
    assert state.schedule == [0, 1]
    assert state.applied_coupon is None
    assert state.customer_type == "private"
    assert state.price().total_amount == 41200


@pytest.mark.parametrize(
    "override",
    [
        {"quantity": 0},
        {"quantity": "10"},
        {"quantity": 301},
        {"paymentPlan": "yearly"},
        {"paymentMethod": "bitcoin"},
        {"billingData": {"type": "alien"}},
        {"schedule": []},
    ],
)
def test_order_state_rejects_invalid_payloads(order_state_payload, override):
    with pytest.raises(ValueError):
        SubscriptionOrderState.from_payload(dict(order_state_payload, **override))


def test_create_order_persists_groups_and_deliveries(db_session, customer_id, order_state_payload):
    state = SubscriptionOrderState.from_payload(dict(order_state_payload, paymentPlan="delivery"))
    order = OrderService(db_session).create_subscription_order(customer_id, state)

    assert order.status == SubscriptionStatus.CONFIRMED
    assert order.confirmed_at is not None
    assert order.total_amount == 41200
    assert order.delivery_dates_count == 2
    assert [group.amount for group in order.payment_groups] == [20600, 20600]

    deliveries = db_session.query(OrderDelivery).filter_by(orderID=order.id).order_by(OrderDelivery.package_number).all()
    assert [delivery.delivery_date for delivery in deliveries] == [date(2026, 1, 19), date(2026, 1, 26)]
    assert all(delivery.quantity == 10 for delivery in deliveries)
    assert deliveries[0].amount == 14900
    assert deliveries[1].total_packages == 2


def test_paid_orders_mark_groups_paid(db_session, customer_id, order_state_payload):
    state = SubscriptionOrderState.from_payload(dict(order_state_payload, paymentPlan="monthly"))
    order = OrderService(db_session).create_subscription_order(customer_id, state, payment_status="paid")
    assert all(group.status == PaymentGroupStatus.PAID for group in order.payment_groups)
    assert all(group.paid_at is not None for group in order.payment_groups)


def test_billing_data_round_trip(db_session, customer_id, billing_data):
    service = OrderService(db_session)
    assert service.get_billing_data(customer_id) is None
    service.save_billing_data(customer_id, billing_data)
    service.save_billing_data(customer_id, dict(billing_data, firstName="Béla"))
    assert service.get_billing_data(customer_id)["firstName"] == "Béla"

    with pytest.raises(ValueError):
        service.save_billing_data(customer_id, {})


def test_create_order_endpoint(customer_client, order_state_payload, db_session):
    response = customer_client.post("/api/modern-shop/create-order", json={"orderState": order_state_payload})
    assert response.status_code == 200
    body = response.get_json()
    assert body["success"] is True
    assert body["message"] == "Rendelés sikeresen létrehozva!"
    assert body["order"]["paymentGroups"] == 1
    assert body["order"]["deliveryPackages"] == 2

    stored = db_session.query(SubscriptionOrder).one()
    assert stored.order_number == body["order"]["orderNumber"]


def test_create_order_requires_login(client, order_state_payload):
    response = client.post("/api/modern-shop/create-order", json={"orderState": order_state_payload})
    assert response.status_code == 401


def test_create_order_rejects_invalid_billing(customer_client, order_state_payload):
    payload = dict(order_state_payload, billingData={"type": "private", "firstName": "Anna"})
    response = customer_client.post("/api/modern-shop/create-order", json={"orderState": payload})
    assert response.status_code == 400


def test_billing_data_endpoints(customer_client, billing_data):
    empty = customer_client.get("/api/modern-shop/billing-data")
    assert empty.get_json() == {"billingData": None}

    invalid = customer_client.post("/api/modern-shop/billing-data", json={"billingData": {"type": "private"}})
    assert invalid.status_code == 400
    assert invalid.get_json()["details"]

    saved = customer_client.post("/api/modern-shop/billing-data", json={"billingData": billing_data})
    assert saved.status_code == 200
    assert customer_client.get("/api/modern-shop/billing-data").get_json()["billingData"] == billing_data


def test_schedule_endpoint_lists_selectable_dates(client):
    body = client.get("/api/modern-shop/schedule").get_json()
    assert body["startDate"] == "2026-01-19"
    assert body["options"][0] == {
        "index": 0,
        "date": "2026-01-19",
        "isMonday": True,
        "formatted": "január 19., hétfő",
    }
    assert 11 not in [option["index"] for option in body["options"]]
    assert "2026-04-06" in body["holidays"]
