from datetime import date

import pytest

from storefront.models import OrderPaymentGroup, Product, User
from storefront.services.billing_service import BillingService
from storefront.services.catalog_service import sanitize_text, validate_product_payload
from storefront.services.delivery_service import DeliveryService
from storefront.services.order_service import OrderService, SubscriptionOrderState

PRODUCT = {
    "sku": "ROSTI-ALMA-250",
    "name": "Rosti almalé",
    "description": "<b>Szűretlen</b> almalé",
    "basePriceHuf": 1290,
    "onSale": True,
    "salePriceHuf": 1090,
    "discountThreshold": 3,
    "discountPercentage": 10,
    "images": ["https://cdn.example/alma.jpg"],
}


@pytest.fixture
def subscription_order(db_session, customer_id, order_state_payload):
    state = SubscriptionOrderState.from_payload(dict(order_state_payload, paymentPlan="delivery"))
    return OrderService(db_session).create_subscription_order(customer_id, state, today=date(2026, 1, 10))


def test_admin_routes_require_admin(client, customer_client):
    assert customer_client.get("/api/admin/users").status_code == 403
    assert customer_client.post("/api/admin/products", json=PRODUCT).status_code == 403
    customer_client.post("/logout")
    assert client.get("/api/admin/billing").status_code == 401


def test_product_payload_cleaning():
    cleaned = validate_product_payload(dict(PRODUCT, onSale=False))
    assert cleaned["description"] == "Szűretlen almalé"
    assert cleaned["sale_price_huf"] is None
    assert sanitize_text("<script>x</script>ok") == "xok"

    for broken in (
        dict(PRODUCT, basePriceHuf=0),
        dict(PRODUCT, discountPercentage=101),
        dict(PRODUCT, discountThreshold=0),
        dict(PRODUCT, images=["a"] * 6),
        {"name": "no sku"},
    ):
        with pytest.raises(ValueError):
            validate_product_payload(broken)


def test_product_crud(admin_client, client, db_session):
    created = admin_client.post("/api/admin/products", json=PRODUCT)
    assert created.status_code == 201
    product = created.get_json()["product"]
    assert product["effectivePriceHuf"] == 1090
    assert product["images"] == ["https://cdn.example/alma.jpg"]

    assert admin_client.post("/api/admin/products", json=PRODUCT).status_code == 409
    assert admin_client.post("/api/admin/products", json=dict(PRODUCT, sku="X", basePriceHuf=-5)).status_code == 400

    updated = admin_client.patch(f"/api/admin/products/{product['id']}", json={"onSale": False, "name": "Almalé"})
    assert updated.status_code == 200
    assert updated.get_json()["product"]["salePriceHuf"] is None
    assert updated.get_json()["product"]["name"] == "Almalé"

    listed = client.get("/api/products").get_json()["products"]
    assert [item["sku"] for item in listed] == ["ROSTI-ALMA-250"]
    assert client.get(f"/api/products/{product['id']}").status_code == 200

    assert admin_client.delete(f"/api/admin/products/{product['id']}").status_code == 200
    assert admin_client.delete(f"/api/admin/products/{product['id']}").status_code == 404
    assert db_session.query(Product).count() == 0
    assert client.get(f"/api/products/{product['id']}").status_code == 404


def test_subscription_order_listing_and_details(admin_client, subscription_order):
    listed = admin_client.get("/api/admin/subscription-orders?status=confirmed").get_json()["orders"]
    assert [order["orderNumber"] for order in listed] == [subscription_order.order_number]
    assert listed[0]["customerEmail"] == "customer@example.com"
    assert admin_client.get("/api/admin/subscription-orders?status=cancelled").get_json()["orders"] == []
    assert admin_client.get("/api/admin/subscription-orders?status=bogus").status_code == 400

    details = admin_client.get(f"/api/admin/subscription-orders/{subscription_order.id}").get_json()["order"]
    assert len(details["paymentGroups"]) == 2
    assert len(details["deliveries"]) == 2
    assert admin_client.get("/api/admin/subscription-orders/9999").status_code == 404


def test_billing_actions(db_session, subscription_order):
    service = BillingService(db_session)
    group_id = subscription_order.payment_groups[0].id

    ok, _, group = service.apply_action(group_id, "create_bill", bill_number="SZ-2026-001", bill_notes="első")
    assert ok and group.bill_created and group.bill_number == "SZ-2026-001"
    service.apply_action(group_id, "send_bill")
    ok, _, group = service.apply_action(group_id, "mark_paid")
    assert group.bill_sent and group.status.value == "paid"

    with pytest.raises(ValueError):
        service.apply_action(group_id, "refund")
    assert service.apply_action(9999, "send_bill")[0] is False


def test_billing_overview(db_session, subscription_order):
    overview = BillingService(db_session).billing_overview(today=date(2026, 1, 10))
    assert overview["summary"] == {
        "totalPending": 2,
        "billsToCreate": 2,
        "billsToSend": 0,
        "awaitingPayment": 0,
        "pendingAmount": 41200,
    }
    assert list(overview["paymentGroupsByDate"]) == ["2026-01-18", "2026-01-25"]
    first = overview["paymentGroupsByDate"]["2026-01-18"][0]
    assert first["orderNumber"] == subscription_order.order_number
    assert first["customerEmail"] == "customer@example.com"


def test_billing_endpoints(admin_client, subscription_order, db_session):
    group_id = subscription_order.payment_groups[0].id
    assert admin_client.get("/api/admin/billing").status_code == 200
    single = admin_client.get(f"/api/admin/billing/{group_id}").get_json()["paymentGroup"]
    assert single["order"]["orderNumber"] == subscription_order.order_number

    response = admin_client.patch(
        f"/api/admin/billing/{group_id}", json={"action": "create_bill", "billNumber": "SZ-1"}
    )
    assert response.status_code == 200
    assert response.get_json()["paymentGroup"]["billNumber"] == "SZ-1"
    assert admin_client.patch(f"/api/admin/billing/{group_id}", json={"action": "nope"}).status_code == 400
    assert admin_client.get("/api/admin/billing/9999").status_code == 404

    db_session.expire_all()
    assert db_session.get(OrderPaymentGroup, group_id).bill_created is True


def test_upcoming_deliveries_grouped_by_date(admin_client, db_session, subscription_order):
    grouped = DeliveryService(db_session).upcoming_deliveries(today=date(2026, 1, 20))
    assert list(grouped) == ["2026-01-26"]
    row = grouped["2026-01-26"][0]
    assert row["orderNumber"] == subscription_order.order_number
    assert row["contact"] == {"name": "Anna Kiss", "phone": "+36301234567", "email": "anna@example.com"}
    assert row["packageNumber"] == 2

    assert "deliveriesByDate" in admin_client.get("/api/admin/deliveries").get_json()


def test_delivery_list_rendering(admin_client, subscription_order):
    response = admin_client.post("/api/admin/generate-delivery-pdf", json={"date": "2026-01-19"})
    assert response.status_code == 200
    assert response.mimetype == "text/html"
    html = response.get_data(as_text=True)
    assert subscription_order.order_number in html
    assert "1062 Budapest, Andrássy út 12" in html
    assert "2026. január 19., hétfő" in html
    assert "14900 HUF" in html

    empty = admin_client.post("/api/admin/generate-delivery-pdf", json={"date": "2026-01-20"})
    assert "No deliveries scheduled for this day." in empty.get_data(as_text=True)
    assert admin_client.post("/api/admin/generate-delivery-pdf", json={}).status_code == 400
    assert admin_client.post("/api/admin/generate-delivery-pdf", json={"date": "soon"}).status_code == 400


def test_shop_settings(admin_client, client):
    assert client.get("/api/shop-settings/public").get_json() == {}

    response = admin_client.patch("/api/admin/shop-settings", json={"key": "promo_bar_enabled", "value": False})
    assert response.status_code == 200
    assert response.get_json()["setting"]["value"] == "false"
    assert admin_client.patch("/api/admin/shop-settings", json={"key": "x"}).status_code == 400

    listed = admin_client.get("/api/admin/shop-settings").get_json()["settings"]
    assert [setting["key"] for setting in listed] == ["promo_bar_enabled"]
    assert client.get("/api/shop-settings/public").get_json() == {"promo_bar_enabled": "false"}


def test_user_role_management(admin_client, admin_id, customer_id, db_session):
    users = admin_client.get("/api/admin/users").get_json()["users"]
    assert {user["email"] for user in users} == {"admin@webshop.com", "customer@example.com"}

    promoted = admin_client.post("/api/admin/users", json={"userId": customer_id, "role": "admin"})
    assert promoted.status_code == 200
    assert db_session.get(User, customer_id).role == "admin"

    assert admin_client.post("/api/admin/users", json={"user_id": admin_id, "role": "customer"}).status_code == 403
    assert admin_client.post("/api/admin/users", json={"userId": customer_id, "role": "owner"}).status_code == 400
    assert admin_client.post("/api/admin/users", json={"userId": 9999, "role": "admin"}).status_code == 404


def test_order_export_csv(client, login, admin_id, customer_id, cart_payload):
    login(client, customer_id)
    order_id = client.post("/api/checkout/mock", json=cart_payload).get_json()["orderId"]

    login(client, admin_id)
    response = client.get("/api/admin/orders/export")
    assert response.status_code == 200
    assert response.mimetype == "text/csv"
    assert "attachment; filename=\"webshop-orders-" in response.headers["Content-Disposition"]

    lines = response.get_data(as_text=True).splitlines()
    assert lines[0].startswith('"Order ID","Order Date","Customer Email"')
    assert len(lines) == 2
    assert lines[1].startswith(f'"{order_id}"')
    assert '"Rosti narancslé","ROSTI-NARANCS-250","2","1490","0","2980","2980","1500","4480"' in lines[1]
