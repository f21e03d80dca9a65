from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional, Sequence

import requests

from storefront.config import Config


class PaymentGatewayError(RuntimeError):
    """Raised when a hosted payment gateway rejects a request or cannot be reached."""

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.errors = errors or []
        self.status_code = status_code


def new_payment_request_id(order_id: str) -> str:
    return f"ORDER-{int(time.time() * 1000)}-{str(order_id)[:8]}"


def build_barion_items(items: Sequence[Dict[str, Any]], delivery_fee: int) -> List[Dict[str, Any]]:
    """Cart lines as Barion transaction items, plus a service line for a non-zero delivery fee."""
    barion_items = [
        {
            "Name": item["name"],
            "Description": item["name"],
            "Quantity": item["quantity"],
            "Unit": "piece",
            "UnitPrice": item["price"],
            "ItemTotal": item["price"] * item["quantity"],
            "SKU": str(item["id"]),
        }
        for item in items
    ]
    if delivery_fee > 0:
        barion_items.append(
            {
                "Name": "Delivery Fee",
                "Description": "Shipping and handling",
                "Quantity": 1,
                "Unit": "service",
                "UnitPrice": delivery_fee,
                "ItemTotal": delivery_fee,
            }
        )
    return barion_items


class BarionClient:
    """Thin wrapper over the Barion v2 REST API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        pos_key: Optional[str] = None,
        payee: Optional[str] = None,
        funding_sources: Optional[Sequence[str]] = None,
        timeout: Optional[float] = None,
        http: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = (base_url or Config.BARION_BASE_URL).rstrip("/")
        self.pos_key = pos_key if pos_key is not None else Config.BARION_POSKEY
        self.payee = payee if payee is not None else Config.BARION_PAYEE
        self.funding_sources = list(funding_sources or Config.BARION_FUNDING_SOURCES)
        self.timeout = timeout or Config.BARION_TIMEOUT_SECONDS
        self.http = http or requests.Session()
        self.logger = logging.getLogger(__name__)
        if not self.pos_key:
            raise PaymentGatewayError("Payment gateway not configured")

    def build_payment_request(
        self,
        payment_request_id: str,
        items: Sequence[Dict[str, Any]],
        delivery_fee: int,
        total: int,
        redirect_url: str,
        callback_url: str,
    ) -> Dict[str, Any]:
        return {
            "POSKey": self.pos_key,
            "PaymentType": "Immediate",
            "PaymentRequestId": payment_request_id,
            "Locale": "hu-HU",
            "Currency": "HUF",
            "FundingSources": self.funding_sources,
            "GuestCheckOut": True,
            "RedirectUrl": redirect_url,
            "CallbackUrl": callback_url,
            "Transactions": [
                {
                    "POSTransactionId": payment_request_id,
                    "Payee": self.payee,
                    "Total": total,
                    "Currency": "HUF",
                    "Comment": f"WebShop Order #{payment_request_id}",
                    "Items": build_barion_items(items, delivery_fee),
                }
            ],
        }

    def _handle_response(self, response: requests.Response) -> Dict[str, Any]:
        if not response.ok:
            self.logger.error(
                "Barion API error response",
                extra={"status_code": response.status_code, "reason": response.text[:500]},
            )
            raise PaymentGatewayError(
                f"Barion API error: {response.status_code} {response.reason}",
                status_code=response.status_code,
            )
        try:
            result = response.json()
        except ValueError as exc:
            raise PaymentGatewayError("Barion API returned a non-JSON body") from exc
        errors = result.get("Errors") or []
        if errors:
            description = errors[0].get("Description") or errors[0].get("Title") or "unknown error"
            raise PaymentGatewayError(f"Barion payment error: {description}", errors=errors)
        return result

    def start_payment(
        self,
        payment_request_id: str,
        items: Sequence[Dict[str, Any]],
        delivery_fee: int,
        total: int,
        redirect_url: str,
        callback_url: str,
    ) -> Dict[str, Any]:
        payload = self.build_payment_request(
            payment_request_id, items, delivery_fee, total, redirect_url, callback_url
        )
        self.logger.info(
            "Starting Barion payment for %s HUF",
            total,
            extra={"payment_id": payment_request_id},
        )
        try:
            response = self.http.post(f"{self.base_url}/v2/Payment/Start", json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            raise PaymentGatewayError(f"Barion API unreachable: {exc}") from exc
        return self._handle_response(response)

    def get_payment_state(self, payment_id: str) -> Dict[str, Any]:
        try:
            response = self.http.get(
                f"{self.base_url}/v2/Payment/GetPaymentState",
                params={"POSKey": self.pos_key, "PaymentId": payment_id},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise PaymentGatewayError(f"Barion API unreachable: {exc}") from exc
        return self._handle_response(response)


__all__ = ["BarionClient", "PaymentGatewayError", "build_barion_items", "new_payment_request_id"]
