from __future__ import annotations

import csv
import io
from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session, joinedload

from storefront.models import Order, OrderItem

CSV_HEADERS = (
    "Order ID",
    "Order Date",
    "Customer Email",
    "Order Status",
    "Product Name",
    "Product SKU",
    "Quantity",
    "Unit Price (HUF)",
    "Discount (HUF)",
    "Item Total (HUF)",
    "Subtotal (HUF)",
    "Delivery Fee (HUF)",
    "Order Total (HUF)",
    "Payment ID",
    "Payment Status",
)


def export_filename(today: Optional[date] = None) -> str:
    return f"webshop-orders-{(today or date.today()).isoformat()}.csv"


def _order_rows(order: Order) -> List[list]:
    head = [
        order.orderID,
        order.created_at.date().isoformat() if order.created_at else "",
        order.user.email if order.user else "",
        order.status,
    ]
    tail = [
        order.subtotal_huf,
        order.delivery_fee_huf,
        order.total_huf,
        order.barion_payment_id or "",
        order.barion_status or "",
    ]
    if not order.items:
        return [head + ["", "", 0, 0, 0, 0] + tail]

    rows = []
    for item in order.items:
        product = item.product
        rows.append(
            head
            + [
                product.name if product else "",
                product.sku if product else "",
                item.quantity or 0,
                item.unit_price_huf or 0,
                item.discount_applied_huf or 0,
                item.line_total_huf,
            ]
            + tail
        )
    return rows


def orders_csv(db: Session) -> str:
    """Every cart order line as CSV, newest order first, every field quoted."""
    orders = (
        db.query(Order)
        .options(joinedload(Order.user), joinedload(Order.items).joinedload(OrderItem.product))
        .order_by(Order._created_at.desc())
        .all()
    )
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for order in orders:
        writer.writerows(_order_rows(order))
    return buffer.getvalue()
