"""Hungarian address, tax number and phone helpers used by checkout and billing data."""
from __future__ import annotations

import re
from typing import Any, Dict, List, Mapping, Optional, Tuple

POSTAL_CODE_RE = re.compile(r"^\d{4}$")
TAX_NUMBER_RE = re.compile(r"^\d{8}$")
VAT_NUMBER_RE = re.compile(r"^HU\d{8}$")
PHONE_RE = re.compile(r"^(\+36|06)?[1-9]\d{7,8}$")

TAX_NUMBER_WEIGHTS = (9, 7, 3, 1, 9, 7, 3)

_POSTAL_REGIONS = (
    (1000, 1239, "Budapest"),
    (2000, 2999, "Pest megye"),
    (3000, 3999, "Észak-Magyarország"),
    (4000, 4999, "Alföld"),
    (5000, 5999, "Dél-Alföld"),
    (6000, 6999, "Dél-Dunántúl"),
    (7000, 7999, "Közép-Dunántúl"),
    (8000, 8999, "Nyugat-Dunántúl"),
    (9000, 9999, "Nyugat-Dunántúl"),
)


def validate_tax_number(tax_number: Optional[str]) -> bool:
    """Eight-digit base tax number whose last digit is the weighted checksum of the first seven."""
    if not tax_number or not TAX_NUMBER_RE.match(tax_number):
        return False
    digits = [int(char) for char in tax_number]
    checksum = sum(digit * weight for digit, weight in zip(digits, TAX_NUMBER_WEIGHTS)) % 10
    return checksum == digits[7]


def validate_vat_number(vat_number: Optional[str]) -> bool:
    if not vat_number or not VAT_NUMBER_RE.match(vat_number):
        return False
    return validate_tax_number(vat_number[2:])


def validate_postal_code(postal_code: Optional[str]) -> Tuple[bool, Optional[str]]:
    if not postal_code or not POSTAL_CODE_RE.match(postal_code):
        return False, None
    code = int(postal_code)
    for low, high, region in _POSTAL_REGIONS:
        if low <= code <= high:
            return True, region
    return True, ""


def validate_phone(phone: Optional[str]) -> bool:
    if not phone:
        return False
    return bool(PHONE_RE.match(re.sub(r"[\s-]", "", phone)))


def format_hungarian_address(address: Mapping[str, Any]) -> str:
    """Multi-line postal label: company and contact, name, street line, city line, country."""
    parts: List[str] = []
    if address.get("isCompany") and address.get("companyName"):
        parts.append(address["companyName"])
        if address.get("contactPerson"):
            parts.append(f"Kapcsolattartó: {address['contactPerson']}")

    parts.append(address.get("fullName") or "")

    street_line = " ".join(
        part
        for part in (
            address.get("streetAddress"),
            address.get("houseNumber"),
            f"{address['floor']}. emelet" if address.get("floor") else None,
            f"{address['door']}. ajtó" if address.get("door") else None,
        )
        if part
    )
    parts.append(street_line)

    city_line = " ".join(
        part
        for part in (
            address.get("postalCode"),
            address.get("city"),
            f"{address['district']}. kerület" if address.get("district") else None,
        )
        if part
    )
    parts.append(city_line)
    parts.append(address.get("country") or "Hungary")
    return "\n".join(parts)


def format_short_address(address: Optional[Mapping[str, Any]]) -> str:
    """One-line ``postcode city, street type number building floor door`` form of a checkout address."""
    if not address:
        return ""
    head = " ".join(part for part in (address.get("postcode"), address.get("city")) if part)
    tail = " ".join(
        str(part)
        for part in (
            address.get("streetName"),
            address.get("streetType"),
            address.get("houseNum"),
            address.get("building"),
            address.get("floor"),
            address.get("door"),
        )
        if part
    )
    return ", ".join(part for part in (head, tail) if part)


def format_tax_id(value: str) -> str:
    clean = re.sub(r"[^0-9]", "", value or "")
    if len(clean) > 9:
        return f"{clean[:8]}-{clean[8:9]}-{clean[9:11]}"
    if len(clean) > 8:
        return f"{clean[:8]}-{clean[8:9]}"
    return clean


def format_phone(value: Optional[str]) -> str:
    if not value or not value.startswith("+36"):
        return "+36"
    clean = re.sub(r"[^0-9]", "", value[3:])
    return f"+36{clean[:9]}"


def _validate_address(address: Any, label: str) -> List[str]:
    if not isinstance(address, Mapping):
        return [f"{label}: hiányzó cím"]
    errors: List[str] = []
    valid, _ = validate_postal_code(str(address.get("postcode") or ""))
    if not valid:
        errors.append(f"{label}: az irányítószám 4 számjegy")
    for key, message in (
        ("city", "a város kötelező"),
        ("streetName", "az utca kötelező"),
        ("houseNum", "a házszám kötelező"),
    ):
        if not str(address.get(key) or "").strip():
            errors.append(f"{label}: {message}")
    return errors


def validate_billing_data(data: Any) -> List[str]:
    """Return human readable problems with a subscription billing form; empty when valid."""
    if not isinstance(data, Mapping):
        return ["Hiányzó számlázási adatok"]

    errors: List[str] = []
    customer_type = data.get("type")
    if customer_type == "business":
        if not str(data.get("companyName") or "").strip():
            errors.append("Cégnév kötelező")
        tax_digits = re.sub(r"[^0-9]", "", str(data.get("taxId") or ""))
        if len(tax_digits) != 11:
            errors.append("Adószám formátuma: 12345678-1-12")
    elif customer_type == "private":
        if not str(data.get("firstName") or "").strip() or not str(data.get("lastName") or "").strip():
            errors.append("Vezetéknév és keresztnév kötelező")
    else:
        errors.append("Érvénytelen vásárlótípus")

    errors.extend(_validate_address(data.get("billingAddress"), "Számlázási cím"))
    if not data.get("isShippingSame", True):
        errors.extend(_validate_address(data.get("shippingAddress"), "Szállítási cím"))

    phone = str(data.get("contactPhone") or "")
    if len(re.sub(r"[^0-9]", "", phone[3:] if phone.startswith("+36") else phone)) < 8:
        errors.append("Érvényes kapcsolattartói telefonszám szükséges")
    return errors


def billing_display_name(data: Mapping[str, Any]) -> str:
    if data.get("type") == "business" and data.get("companyName"):
        return str(data["companyName"])
    return " ".join(part for part in (data.get("lastName"), data.get("firstName")) if part)


def delivery_contact(data: Mapping[str, Any]) -> Dict[str, Optional[str]]:
    name = data.get("contactName") or data.get("companyName") or " ".join(
        part for part in (data.get("firstName"), data.get("lastName")) if part
    )
    return {"name": name or None, "phone": data.get("contactPhone"), "email": data.get("emailCC1")}
