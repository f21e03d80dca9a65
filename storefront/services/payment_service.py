from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from sqlalchemy.orm import Session

from storefront.models import Order, OrderStatus
from storefront.observability import increment_counter, record_event
from storefront.services.barion_client import BarionClient

logger = logging.getLogger(__name__)

BARION_STATUS_MAP = {
    "Prepared": OrderStatus.PENDING,
    "Started": OrderStatus.PENDING,
    "InProgress": OrderStatus.PENDING,
    "Succeeded": OrderStatus.PAID,
    "PartiallySucceeded": OrderStatus.PAID,
    "Failed": OrderStatus.FAILED,
    "Canceled": OrderStatus.FAILED,
}


def map_barion_status(barion_status: Optional[str], current: str) -> str:
    """Translate a Barion payment state into the local order status; unknown states keep ``current``."""
    mapped = BARION_STATUS_MAP.get(barion_status or "")
    if mapped is None:
        logger.warning("Unknown Barion status %r, keeping %s", barion_status, current)
        return current
    return mapped.value


class PaymentService:
    """
    Applies Barion payment state callbacks to cart orders.
    The gateway client is created lazily so routes without Barion credentials still work.
    """

    def __init__(self, db_session: Session, barion_client: Optional[BarionClient] = None) -> None:
        self.db = db_session
        self._barion = barion_client
        self.logger = logging.getLogger(__name__)

    @property
    def barion(self) -> BarionClient:
        if self._barion is None:
            self._barion = BarionClient()
        return self._barion

    def handle_barion_callback(self, payment_id: Optional[str]) -> Tuple[bool, str, Optional[Dict[str, Any]]]:
        if not payment_id:
            raise ValueError("PaymentId is required")

        state = self.barion.get_payment_state(payment_id)
        barion_status = state.get("Status")

        order = self.db.query(Order).filter(Order.barion_payment_id == payment_id).first()
        if order is None:
            self.logger.error("Order not found for Barion payment", extra={"payment_id": payment_id})
            increment_counter("barion_callbacks_total", labels={"result": "order_not_found"})
            return False, "Order not found", None

        previous = order.status
        order.status = map_barion_status(barion_status, previous)
        order.barion_status = barion_status
        self.db.commit()

        increment_counter("barion_callbacks_total", labels={"result": order.status})
        if order.status != previous:
            record_event(
                "order_status_changed",
                {"order_id": order.orderID, "from": previous, "to": order.status, "source": "barion"},
            )
        self.logger.info(
            "Order updated from Barion callback",
            extra={"order_id": order.orderID, "payment_id": payment_id, "status": order.status},
        )
        return True, "Order updated", {"orderId": order.orderID, "status": order.status, "barionStatus": barion_status}
