from __future__ import annotations

import logging
import random
import string
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session, joinedload

from storefront.config import Config
from storefront.models import Order, OrderItem, OrderStatus, PaymentMethod, Product
from storefront.observability import increment_counter, record_event
from storefront.services.bank_transfer import (
    generate_bank_transfer_info,
    generate_payment_data,
    payment_data_to_qr_string,
)
from storefront.services.barion_client import BarionClient, new_payment_request_id
from storefront.services.pricing_service import calculate_quantity_discount


@dataclass
class CheckoutItem:
    id: int
    name: str
    price: int
    quantity: int

    def as_gateway_item(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "price": self.price, "quantity": self.quantity}


@dataclass
class CheckoutRequest:
    items: List[CheckoutItem]
    delivery_fee: int
    total: int
    delivery_method: str = "own-delivery"
    delivery_address: Optional[str] = None
    pickup_point_id: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def subtotal(self) -> int:
        return self.total - self.delivery_fee

    @classmethod
    def from_payload(cls, payload: Any) -> "CheckoutRequest":
        """Validate a JSON checkout body; raises ``ValueError`` with the first problem found."""
        if not isinstance(payload, dict):
            raise ValueError("Invalid checkout data")
        raw_items = payload.get("items")
        if not isinstance(raw_items, list) or not raw_items:
            raise ValueError("Invalid checkout data: at least one item is required")

        items: List[CheckoutItem] = []
        for raw in raw_items:
            if not isinstance(raw, dict):
                raise ValueError("Invalid checkout data: malformed item")
            try:
                product_id = int(raw.get("id"))
            except (TypeError, ValueError):
                raise ValueError("Invalid checkout data: item id must be a product id")
            name = raw.get("name")
            price = raw.get("price")
            quantity = raw.get("quantity")
            if not isinstance(name, str) or not name.strip():
                raise ValueError("Invalid checkout data: item name is required")
            if isinstance(price, bool) or not isinstance(price, (int, float)) or price <= 0:
                raise ValueError("Invalid checkout data: item price must be positive")
            if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
                raise ValueError("Invalid checkout data: item quantity must be a positive integer")
            items.append(CheckoutItem(id=product_id, name=name.strip(), price=int(round(price)), quantity=quantity))

        delivery_fee = payload.get("deliveryFee")
        total = payload.get("total")
        if isinstance(delivery_fee, bool) or not isinstance(delivery_fee, (int, float)) or delivery_fee < 0:
            raise ValueError("Invalid checkout data: deliveryFee must be zero or more")
        if isinstance(total, bool) or not isinstance(total, (int, float)) or total <= 0:
            raise ValueError("Invalid checkout data: total must be positive")

        delivery_data = payload.get("deliveryData") or {}
        if not isinstance(delivery_data, dict):
            raise ValueError("Invalid checkout data: deliveryData must be an object")
        return cls(
            items=items,
            delivery_fee=int(round(delivery_fee)),
            total=int(round(total)),
            delivery_method=payload.get("deliveryMethod") or "own-delivery",
            delivery_address=delivery_data.get("deliveryAddress") or None,
            pickup_point_id=delivery_data.get("pickupPointId") or None,
        )


def new_bank_transfer_order_id() -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"BT-{int(time.time() * 1000)}-{suffix}"


class CheckoutService:
    """Creates classic cart orders and hands them to Barion, the mock gateway or bank transfer."""

    def __init__(self, db_session: Session, barion_client: Optional[BarionClient] = None) -> None:
        self.db = db_session
        self._barion = barion_client
        self.logger = logging.getLogger(__name__)

    @property
    def barion(self) -> BarionClient:
        if self._barion is None:
            self._barion = BarionClient()
        return self._barion

    def create_order(
        self,
        user_id: int,
        checkout: CheckoutRequest,
        payment_method: PaymentMethod = PaymentMethod.BARION,
        status: OrderStatus = OrderStatus.PENDING,
        order_id: Optional[str] = None,
    ) -> Order:
        product_ids = {item.id for item in checkout.items}
        products = {
            product.productID: product
            for product in self.db.query(Product).filter(Product.productID.in_(product_ids)).all()
        }
        missing = sorted(product_ids - set(products))
        if missing:
            raise ValueError(f"Unknown products: {missing}")

        order = Order(
            orderID=order_id or str(uuid.uuid4()),
            userID=user_id,
            subtotal_huf=checkout.subtotal,
            delivery_fee_huf=checkout.delivery_fee,
            total_huf=checkout.total,
            delivery_method=checkout.delivery_method,
            delivery_address=checkout.delivery_address,
            pickup_point_id=checkout.pickup_point_id,
            payment_method=payment_method.value,
        )
        order.status = status
        for item in checkout.items:
            product = products[item.id]
            order.items.append(
                OrderItem(
                    productID=item.id,
                    quantity=item.quantity,
                    unit_price_huf=item.price,
                    discount_applied_huf=calculate_quantity_discount(
                        item.quantity,
                        item.price,
                        product.discount_threshold or 5,
                        product.discount_percentage or 0,
                    ),
                )
            )
        self.db.add(order)
        self.db.flush()
        return order

    def _record_created(self, order: Order) -> None:
        increment_counter("orders_created_total", labels={"payment_method": order.payment_method})
        record_event(
            "order_created",
            {"order_id": order.orderID, "payment_method": order.payment_method, "total_huf": order.total_huf},
        )
        self.logger.info(
            "Cart order created",
            extra={"order_id": order.orderID, "status": order.status},
        )

    def start_barion_checkout(self, user_id: int, checkout: CheckoutRequest) -> Tuple[bool, str, Dict[str, Any]]:
        if not Config.BARION_POSKEY and self._barion is None:
            return False, "Payment gateway not configured. Please contact support.", {}

        order = self.create_order(user_id, checkout, PaymentMethod.BARION)
        base_url = Config.PUBLIC_BASE_URL
        redirect_url = f"{base_url}/checkout/success?orderId={order.orderID}&paymentId=PAYMENT_ID"
        callback_url = f"{base_url}/api/webhooks/barion"

        response = self.barion.start_payment(
            new_payment_request_id(order.orderID),
            [item.as_gateway_item() for item in checkout.items],
            checkout.delivery_fee,
            checkout.total,
            redirect_url,
            callback_url,
        )
        order.barion_payment_id = response.get("PaymentId")
        order.barion_status = response.get("Status")
        self.db.commit()
        self._record_created(order)
        return True, "Payment started", {
            "orderId": order.orderID,
            "paymentId": order.barion_payment_id,
            "gatewayUrl": response.get("GatewayUrl"),
            "qrUrl": response.get("QRUrl"),
        }

    def start_mock_checkout(self, user_id: int, checkout: CheckoutRequest) -> Tuple[bool, str, Dict[str, Any]]:
        order = self.create_order(user_id, checkout, PaymentMethod.MOCK)
        order.barion_payment_id = f"MOCK-{new_payment_request_id(order.orderID)}"
        order.barion_status = "Prepared"
        self.db.commit()
        self._record_created(order)

        base_url = Config.PUBLIC_BASE_URL
        return True, "Mock payment prepared", {
            "orderId": order.orderID,
            "paymentId": order.barion_payment_id,
            "gatewayUrl": f"{base_url}/checkout/mock-payment?orderId={order.orderID}",
            "qrUrl": f"{base_url}/checkout/mock-qr?orderId={order.orderID}",
        }

    def start_bank_transfer_checkout(self, user_id: int, checkout: CheckoutRequest) -> Tuple[bool, str, Dict[str, Any]]:
        order = self.create_order(
            user_id,
            checkout,
            PaymentMethod.BANK_TRANSFER,
            status=OrderStatus.PENDING_PAYMENT,
            order_id=new_bank_transfer_order_id(),
        )
        self.db.commit()
        self._record_created(order)

        payment_data = generate_payment_data(checkout.total, order.orderID)
        return True, "Order created successfully. Please complete the bank transfer to confirm your order.", {
            "orderId": order.orderID,
            "paymentData": payment_data,
            "qrString": payment_data_to_qr_string(payment_data),
            "bankTransferInfo": generate_bank_transfer_info(checkout.total, order.orderID).to_dict(),
        }

    def get_order_for_user(self, order_id: str, user_id: int) -> Tuple[bool, str, Optional[Order]]:
        order = self.db.query(Order).filter(Order.orderID == order_id).first()
        if order is None:
            return False, "Order not found", None
        if order.userID != user_id:
            return False, "Access denied", None
        return True, "ok", order

    def orders_for_user(self, user_id: int) -> List[Order]:
        return (
            self.db.query(Order)
            .options(joinedload(Order.items).joinedload(OrderItem.product))
            .filter(Order.userID == user_id)
            .order_by(Order._created_at.desc())
            .all()
        )

    def all_orders(self) -> List[Order]:
        return (
            self.db.query(Order)
            .options(joinedload(Order.user))
            .order_by(Order._created_at.desc())
            .all()
        )

    def order_details(self, order_id: str) -> Optional[Order]:
        return (
            self.db.query(Order)
            .options(joinedload(Order.user), joinedload(Order.items).joinedload(OrderItem.product))
            .filter(Order.orderID == order_id)
            .first()
        )
