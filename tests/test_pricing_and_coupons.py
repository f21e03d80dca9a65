import pytest

from storefront.services.coupon_service import validate_coupon
from storefront.services.pricing_service import (
    calculate_cart_totals,
    calculate_quantity_discount,
    calculate_subscription_pricing,
    format_currency,
    format_price,
    shipping_fee_for_quantity,
)


@pytest.mark.parametrize(
    "quantity, expected",
    [(1, 5700), (25, 5700), (26, 3700), (49, 3700), (50, 0), (300, 0)],
)
def test_shipping_fee_tiers(quantity, expected):
    assert shipping_fee_for_quantity(quantity) == expected


def test_subscription_pricing_multiplies_per_delivery():
    pricing = calculate_subscription_pricing(10, 2)

    assert pricing.unit_price == 1490
    assert pricing.subtotal_per_delivery == 14900
    assert pricing.shipping_fee == 5700
    assert pricing.subtotal == 29800
    assert pricing.total_shipping_fee == 11400
    assert pricing.total_amount == 41200
    assert pricing.discount_amount == 0
    assert pricing.per_delivery_total == 20600


def test_private_coupon_lowers_unit_price_and_shipping():
    pricing = calculate_subscription_pricing(10, 2, "private1234", "private")

    assert pricing.unit_price == 1250
    assert pricing.shipping_fee == 1700
    assert pricing.total_amount == 28400
    assert pricing.discount_amount == 41200 - 28400


def test_private_coupon_ignored_for_business_customers():
    pricing = calculate_subscription_pricing(10, 1, "private1234", "business")
    assert pricing.unit_price == 1490
    assert pricing.shipping_fee == 5700


def test_partner_coupon_never_raises_shipping():
    assert calculate_subscription_pricing(10, 1, "teszt114db").shipping_fee == 1700
    assert calculate_subscription_pricing(60, 1, "mastercard1234").shipping_fee == 0


def test_subscription_pricing_rejects_empty_orders():
    with pytest.raises(ValueError):
        calculate_subscription_pricing(0, 1)
    with pytest.raises(ValueError):
        calculate_subscription_pricing(5, 0)


def test_cart_totals_apply_quantity_discount_before_delivery_fee():
    totals = calculate_cart_totals(
        [{"unit_price": 2000, "quantity": 5, "threshold": 5, "percentage": 10}],
        "own-delivery",
    )
    assert totals.subtotal == 10000
    assert totals.discount == 1000
    assert totals.delivery_fee == 1500
    assert totals.total == 10500

    free = calculate_cart_totals([{"unit_price": 4000, "quantity": 4}], "own-delivery")
    assert free.delivery_fee == 0


def test_quantity_discount_below_threshold_is_zero():
    assert calculate_quantity_discount(2, 1000, 3, 15) == 0
    assert calculate_quantity_discount(3, 1000, 3, 15) == 450


def test_currency_formatting():
    assert format_currency(5700) == "5 700 Ft"
    assert format_currency(1234567) == "1 234 567 Ft"
    assert format_price(41200) == "41,200 Ft"


def test_partner_code_accepted_with_shipping_savings():
    result = validate_coupon("teszt114db", "business", 10)
    assert result.valid
    assert result.discount == {"unitPriceDiscount": None, "shippingDiscount": 1700, "totalSavings": 4000}


def test_private_code_savings_include_unit_price():
    result = validate_coupon(" private1234 ", "private", 10)
    assert result.valid
    assert result.discount["totalSavings"] == 240 * 10 + 4000


@pytest.mark.parametrize(
    "code, customer_type, quantity, message",
    [
        ("nope", "private", 10, "Érvénytelen partnerkód."),
        ("private1234", "business", 10, "Ez a kód csak magánszemélyeknek érvényes."),
        ("private1234", "private", 21, "Ez a kód maximum 20 palack esetén érvényes."),
    ],
)
def test_coupon_rejections(code, customer_type, quantity, message):
    result = validate_coupon(code, customer_type, quantity)
    assert not result.valid
    assert result.message == message
    assert "discount" not in result.to_dict()


def test_coupon_requires_all_fields():
    with pytest.raises(ValueError):
        validate_coupon("", "private", 10)
    with pytest.raises(ValueError):
        validate_coupon("teszt114db", None, 10)


def test_coupon_endpoint(client, login, customer_id):
    anonymous = client.post(
        "/api/modern-shop/validate-coupon",
        json={"code": "mastercard1234", "customerType": "private", "quantity": 30},
    )
    assert anonymous.status_code == 401

    login(client, customer_id)
    ok = client.post(
        "/api/modern-shop/validate-coupon",
        json={"code": "mastercard1234", "customerType": "private", "quantity": 30},
    )
    assert ok.status_code == 200
    assert ok.get_json()["valid"] is True

    missing = client.post("/api/modern-shop/validate-coupon", json={"code": "x"})
    assert missing.status_code == 400


def test_quote_endpoint(client):
    response = client.post(
        "/api/modern-shop/quote",
        json={"quantity": 10, "schedule": [0, 1], "customerType": "private"},
    )
    assert response.status_code == 200
    body = response.get_json()
    assert body["total_amount"] == 41200
    assert body["formattedTotal"] == "41 200 Ft"

    by_length = client.post("/api/modern-shop/quote", json={"quantity": 10, "scheduleLength": 3})
    assert by_length.get_json()["total_amount"] == 61800

    bad = client.post("/api/modern-shop/quote", json={"quantity": 10, "schedule": [11]})
    assert bad.status_code == 400
