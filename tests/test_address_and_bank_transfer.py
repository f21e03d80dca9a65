from datetime import datetime, timezone
import json

import pytest

from storefront.services.address_validation import (
    billing_display_name,
    delivery_contact,
    format_hungarian_address,
    format_phone,
    format_short_address,
    format_tax_id,
    validate_billing_data,
    validate_phone,
    validate_postal_code,
    validate_tax_number,
    validate_vat_number,
)
from storefront.services.bank_transfer import (
    format_iban_for_display,
    generate_bank_transfer_info,
    generate_payment_data,
    is_valid_hungarian_iban,
    payment_data_to_qr_string,
    qr_code_data_url,
)


def test_tax_number_checksum():
    assert validate_tax_number("12345674")
    assert not validate_tax_number("12345675")
    assert not validate_tax_number("1234567")
    assert validate_vat_number("HU12345674")
    assert not validate_vat_number("12345674")


def test_postal_code_regions():
    assert validate_postal_code("1062") == (True, "Budapest")
    assert validate_postal_code("9021") == (True, "Nyugat-Dunántúl")
    assert validate_postal_code("0999") == (True, "")
    assert validate_postal_code("123") == (False, None)


@pytest.mark.parametrize("phone, expected", [
    ("+36 30 123 4567", True),
    ("06-1-234-5678", True),
    ("+36 0 123 456", False),
    ("", False),
])
def test_phone_validation(phone, expected):
    assert validate_phone(phone) is expected


def test_formatters():
    assert format_tax_id("12345678112") == "12345678-1-12"
    assert format_tax_id("123456781") == "12345678-1"
    assert format_phone("+36 30 123-4567") == "+36301234567"
    assert format_phone("0630") == "+36"


def test_address_label_lines():
    label = format_hungarian_address(
        {
            "isCompany": True,
            "companyName": "Rosti Kft.",
            "contactPerson": "Kiss Anna",
            "fullName": "Kiss Anna",
            "streetAddress": "Andrássy út",
            "houseNumber": "12",
            "floor": "3",
            "postalCode": "1062",
            "city": "Budapest",
            "district": "VI",
        }
    )
    assert label.split("\n") == [
        "Rosti Kft.",
        "Kapcsolattartó: Kiss Anna",
        "Kiss Anna",
        "Andrássy út 12 3. emelet",
        "1062 Budapest VI. kerület",
        "Hungary",
    ]


def test_valid_private_billing_data(billing_data):
    assert validate_billing_data(billing_data) == []
    assert billing_display_name(billing_data) == "Kiss Anna"
    assert format_short_address(billing_data["billingAddress"]) == "1062 Budapest, Andrássy út 12"
    assert delivery_contact(billing_data) == {"name": "Anna Kiss", "phone": "+36301234567", "email": "anna@example.com"}


def test_business_billing_data_needs_company_and_tax_id(billing_data):
    data = dict(billing_data, type="business", companyName="", taxId="1234")
    errors = validate_billing_data(data)
    assert "Cégnév kötelező" in errors
    assert "Adószám formátuma: 12345678-1-12" in errors

    data.update(companyName="Rosti Kft.", taxId="12345678-1-12")
    assert validate_billing_data(data) == []


def test_separate_shipping_address_is_checked(billing_data):
    data = dict(billing_data, isShippingSame=False, shippingAddress={"postcode": "12", "city": ""})
    errors = validate_billing_data(data)
    assert "Szállítási cím: az irányítószám 4 számjegy" in errors
    assert "Szállítási cím: a város kötelező" in errors


def test_billing_data_type_and_phone(billing_data):
    assert validate_billing_data(None) == ["Hiányzó számlázási adatok"]
    errors = validate_billing_data(dict(billing_data, type="other", contactPhone="+36 1"))
    assert "Érvénytelen vásárlótípus" in errors
    assert "Érvényes kapcsolattartói telefonszám szükséges" in errors


def test_instant_payment_data():
    now = datetime(2026, 1, 19, 10, 0, tzinfo=timezone.utc)
    data = generate_payment_data(4480, "BT-1", now=now)

    assert data["id_code"] == "HCT"
    assert data["amount"] == 4480
    assert data["currency"] == "HUF"
    assert data["valid_until"] == "2026-01-20T10:00:00+01:00"
    assert data["remittance"] == "Rendelés #BT-1"

    compact = json.loads(payment_data_to_qr_string(data))
    assert "bic" not in compact
    assert "shop_id" not in compact
    assert compact["invoice_id"] == "BT-1"


def test_bank_transfer_info():
    info = generate_bank_transfer_info(4480, "BT-1").to_dict()
    assert info["ibanDisplay"] == format_iban_for_display(info["iban"])
    assert info["reference"] == "Rendelés #BT-1"


def test_iban_checks():
    assert is_valid_hungarian_iban("HU93 1160 0006 0000 0000 1234 5676")
    assert not is_valid_hungarian_iban("DE89370400440532013000")
    assert format_iban_for_display("HU93116000060000000012345676") == "HU93 1160 0006 0000 0000 1234 5676"


def test_qr_code_is_png_data_url():
    assert qr_code_data_url('{"id_code":"HCT"}').startswith("data:image/png;base64,")
