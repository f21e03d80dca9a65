"""Hungarian instant payment (MNB "HCT" QR) and manual bank transfer details."""
from __future__ import annotations

import base64
import json
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from io import BytesIO
from typing import Any, Dict, Optional

import qrcode

from storefront.config import Config

HUNGARIAN_IBAN_RE = re.compile(r"^HU[0-9]{26}$")


@dataclass(frozen=True)
class BankTransferInfo:
    recipient_name: str
    iban: str
    amount: int
    currency: str
    reference: str
    valid_until: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "recipientName": self.recipient_name,
            "iban": self.iban,
            "ibanDisplay": format_iban_for_display(self.iban),
            "amount": self.amount,
            "currency": self.currency,
            "reference": self.reference,
            "validUntil": self.valid_until.isoformat(),
        }


def _valid_until(now: Optional[datetime]) -> datetime:
    now = now or datetime.now(timezone.utc)
    return now + timedelta(hours=Config.BANK_PAYMENT_VALID_HOURS)


def generate_payment_data(amount: int, order_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    valid_until = _valid_until(now)
    if valid_until.tzinfo is not None:
        valid_until = valid_until.astimezone(timezone.utc)
    return {
        "id_code": "HCT",
        "version": "001",
        "charset": "1",
        "bic": Config.BANK_BIC or "",
        "name": Config.BANK_RECIPIENT_NAME,
        "iban": Config.BANK_IBAN,
        "currency": "HUF",
        "amount": amount,
        # UTC wall time with a fixed +01:00 suffix.
        "valid_until": valid_until.strftime("%Y-%m-%dT%H:%M:%S") + "+01:00",
        "purpose_code": "",
        "remittance": f"Rendelés #{order_id}",
        "shop_id": "",
        "device_id": "",
        "invoice_id": order_id,
        "customer_id": "",
        "creditor_tx_id": "",
        "loyalty_id": "",
        "nav_check_id": "",
    }


def payment_data_to_qr_string(data: Dict[str, Any]) -> str:
    compact = {key: value for key, value in data.items() if value is not None and value != ""}
    return json.dumps(compact, ensure_ascii=False, separators=(",", ":"))


def generate_bank_transfer_info(amount: int, order_id: str, now: Optional[datetime] = None) -> BankTransferInfo:
    return BankTransferInfo(
        recipient_name=Config.BANK_RECIPIENT_NAME,
        iban=Config.BANK_IBAN,
        amount=amount,
        currency="HUF",
        reference=f"Rendelés #{order_id}",
        valid_until=_valid_until(now),
    )


def format_iban_for_display(iban: str) -> str:
    return " ".join(iban[i:i + 4] for i in range(0, len(iban), 4))


def is_valid_hungarian_iban(iban: str) -> bool:
    clean = re.sub(r"\s", "", iban or "").upper()
    return bool(HUNGARIAN_IBAN_RE.match(clean))


def qr_code_data_url(qr_string: str) -> str:
    """PNG QR code of the payload as a ``data:`` URL."""
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=8,
        border=1,
    )
    qr.add_data(qr_string)
    qr.make(fit=True)
    image = qr.make_image(fill_color="#000000", back_color="#FFFFFF")

    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")
