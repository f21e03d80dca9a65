# storefront/models.py
import json
import uuid
from enum import Enum
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Date,
    ForeignKey,
    Boolean,
    Text,
    JSON,
    Enum as SAEnum,
)
from sqlalchemy.orm import relationship

# Use a single, shared Base for all models
from storefront.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    PENDING_PAYMENT = "PENDING_PAYMENT"
    PAID = "PAID"
    FAILED = "FAILED"


class PaymentMethod(str, Enum):
    BARION = "barion"
    MOCK = "mock"
    BANK_TRANSFER = "bank_transfer"


class SubscriptionStatus(str, Enum):
    PENDING_PAYMENT = "pending_payment"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class PaymentPlan(str, Enum):
    FULL = "full"
    MONTHLY = "monthly"
    DELIVERY = "delivery"


class SubscriptionPaymentMethod(str, Enum):
    TRANSFER = "transfer"
    CASH = "cash"
    CARD = "card"


class PaymentGroupStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


class DeliveryStatus(str, Enum):
    SCHEDULED = "scheduled"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class User(Base):
    __tablename__ = 'User'
    userID = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False)
    _passwordHash = Column('passwordHash', String(255))
    _created_at = Column('created_at', DateTime, default=_utcnow)
    role = Column(String(50), default='customer', nullable=False)
    orders = relationship("Order", back_populates="user")
    subscription_orders = relationship("SubscriptionOrder", back_populates="user")

    @property
    def passwordHash(self):
        return self._passwordHash

    @passwordHash.setter
    def passwordHash(self, value):
        self._passwordHash = value

    @property
    def created_at(self):
        return self._created_at

    @property
    def is_admin(self) -> bool:
        return (self.role or '').lower() == 'admin'


class Product(Base):
    __tablename__ = 'Product'
    productID = Column(Integer, primary_key=True, autoincrement=True)
    sku = Column(String(100), unique=True, nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    image_url = Column(String(1024))
    images = Column(JSON)
    base_price_huf = Column(Integer, nullable=False)
    on_sale = Column(Boolean, nullable=False, default=False)
    sale_price_huf = Column(Integer)
    discount_threshold = Column(Integer, default=5)
    discount_percentage = Column(Integer, default=10)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    @property
    def images_list(self) -> list:
        if not self.images:
            return [self.image_url] if self.image_url else []
        if isinstance(self.images, str):
            try:
                return list(json.loads(self.images))
            except ValueError:
                return []
        return list(self.images)

    def effective_unit_price(self) -> int:
        if self.on_sale and self.sale_price_huf:
            return int(self.sale_price_huf)
        return int(self.base_price_huf)

    def to_dict(self) -> dict:
        return {
            "id": self.productID,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "imageUrl": self.image_url,
            "images": self.images_list,
            "basePriceHuf": self.base_price_huf,
            "onSale": bool(self.on_sale),
            "salePriceHuf": self.sale_price_huf,
            "effectivePriceHuf": self.effective_unit_price(),
            "discountThreshold": self.discount_threshold,
            "discountPercentage": self.discount_percentage,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


class Order(Base):
    """Single-shot cart order paid through Barion, the mock gateway or bank transfer."""

    __tablename__ = 'Order'
    orderID = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    userID = Column(Integer, ForeignKey('User.userID'), nullable=False)
    _created_at = Column('created_at', DateTime, default=_utcnow, nullable=False)
    _status = Column('status', String(50), nullable=False, default=OrderStatus.PENDING.value)
    subtotal_huf = Column(Integer, nullable=False)
    delivery_fee_huf = Column(Integer, nullable=False)
    total_huf = Column(Integer, nullable=False)
    delivery_method = Column(String(100), default='own-delivery')
    delivery_address = Column(Text)
    pickup_point_id = Column(String(100))
    payment_method = Column(String(50), nullable=False, default=PaymentMethod.BARION.value)
    barion_payment_id = Column(String(255), index=True)
    barion_status = Column(String(50))
    user = relationship("User", back_populates="orders")
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")

    @property
    def created_at(self):
        return self._created_at

    @property
    def status(self):
        return self._status

    @status.setter
    def status(self, value):
        self._status = value.value if isinstance(value, Enum) else value

    def to_dict(self, include_items: bool = True) -> dict:
        payload = {
            "id": self.orderID,
            "userId": self.userID,
            "status": self.status,
            "subtotalHuf": self.subtotal_huf,
            "deliveryFeeHuf": self.delivery_fee_huf,
            "totalHuf": self.total_huf,
            "deliveryMethod": self.delivery_method,
            "deliveryAddress": self.delivery_address,
            "pickupPointId": self.pickup_point_id,
            "paymentMethod": self.payment_method,
            "barionPaymentId": self.barion_payment_id,
            "barionStatus": self.barion_status,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
        if include_items:
            payload["items"] = [item.to_dict() for item in self.items]
        return payload


class OrderItem(Base):
    __tablename__ = 'OrderItem'
    orderItemID = Column(Integer, primary_key=True, autoincrement=True)
    orderID = Column(String(36), ForeignKey('Order.orderID', ondelete='CASCADE'), nullable=False)
    productID = Column(Integer, ForeignKey('Product.productID'), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price_huf = Column(Integer, nullable=False)
    discount_applied_huf = Column(Integer, nullable=False, default=0)
    order = relationship("Order", back_populates="items")
    product = relationship("Product")

    @property
    def line_total_huf(self) -> int:
        return self.unit_price_huf * self.quantity - (self.discount_applied_huf or 0)

    def to_dict(self) -> dict:
        product = self.product
        return {
            "id": self.orderItemID,
            "productId": self.productID,
            "productName": product.name if product else None,
            "productSku": product.sku if product else None,
            "productImageUrl": product.image_url if product else None,
            "quantity": self.quantity,
            "unitPriceHuf": self.unit_price_huf,
            "discountAppliedHuf": self.discount_applied_huf,
            "lineTotalHuf": self.line_total_huf,
        }


class SubscriptionOrder(Base):
    """Recurring bottle order placed through the subscription checkout."""

    __tablename__ = 'SubscriptionOrder'
    id = Column(Integer, primary_key=True, autoincrement=True)
    userID = Column(Integer, ForeignKey('User.userID'), nullable=False)
    order_number = Column(String(50), unique=True, nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Integer, nullable=False)
    shipping_fee = Column(Integer, nullable=False)
    total_amount = Column(Integer, nullable=False)
    delivery_schedule = Column(JSON, nullable=False)
    delivery_dates_count = Column(Integer, nullable=False)
    payment_plan = Column(SAEnum(PaymentPlan, native_enum=False, length=20), nullable=False)
    payment_method = Column(SAEnum(SubscriptionPaymentMethod, native_enum=False, length=20), nullable=False)
    applied_coupon = Column(String(100))
    discount_amount = Column(Integer, nullable=False, default=0)
    billing_data = Column(JSON, nullable=False)
    status = Column(
        SAEnum(SubscriptionStatus, native_enum=False, length=30),
        nullable=False,
        default=SubscriptionStatus.PENDING_PAYMENT,
    )
    notes = Column(Text)
    confirmed_at = Column(DateTime)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)
    user = relationship("User", back_populates="subscription_orders")
    payment_groups = relationship(
        "OrderPaymentGroup",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderPaymentGroup.group_number",
    )
    deliveries = relationship(
        "OrderDelivery",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderDelivery.package_number",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "orderNumber": self.order_number,
            "userId": self.userID,
            "quantity": self.quantity,
            "unitPrice": self.unit_price,
            "shippingFee": self.shipping_fee,
            "totalAmount": self.total_amount,
            "deliverySchedule": list(self.delivery_schedule or []),
            "deliveryDatesCount": self.delivery_dates_count,
            "paymentPlan": self.payment_plan.value if self.payment_plan else None,
            "paymentMethod": self.payment_method.value if self.payment_method else None,
            "appliedCoupon": self.applied_coupon,
            "discountAmount": self.discount_amount,
            "billingData": self.billing_data,
            "status": self.status.value if self.status else None,
            "notes": self.notes,
            "confirmedAt": self.confirmed_at.isoformat() if self.confirmed_at else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "paymentGroups": [group.to_dict() for group in self.payment_groups],
            "deliveries": [delivery.to_dict() for delivery in self.deliveries],
        }


class OrderPaymentGroup(Base):
    __tablename__ = 'OrderPaymentGroup'
    id = Column(Integer, primary_key=True, autoincrement=True)
    orderID = Column(Integer, ForeignKey('SubscriptionOrder.id', ondelete='CASCADE'), nullable=False)
    group_number = Column(Integer, nullable=False)
    amount = Column(Integer, nullable=False)
    due_date = Column(Date, nullable=False, index=True)
    status = Column(
        SAEnum(PaymentGroupStatus, native_enum=False, length=20),
        nullable=False,
        default=PaymentGroupStatus.PENDING,
    )
    description = Column(String(255))
    bill_created = Column(Boolean, nullable=False, default=False)
    bill_created_at = Column(DateTime)
    bill_number = Column(String(100))
    bill_notes = Column(Text)
    bill_sent = Column(Boolean, nullable=False, default=False)
    bill_sent_at = Column(DateTime)
    paid_at = Column(DateTime)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)
    order = relationship("SubscriptionOrder", back_populates="payment_groups")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "orderId": self.orderID,
            "groupNumber": self.group_number,
            "amount": self.amount,
            "dueDate": self.due_date.isoformat() if self.due_date else None,
            "status": self.status.value if self.status else None,
            "description": self.description,
            "billCreated": bool(self.bill_created),
            "billCreatedAt": self.bill_created_at.isoformat() if self.bill_created_at else None,
            "billNumber": self.bill_number,
            "billNotes": self.bill_notes,
            "billSent": bool(self.bill_sent),
            "billSentAt": self.bill_sent_at.isoformat() if self.bill_sent_at else None,
            "paidAt": self.paid_at.isoformat() if self.paid_at else None,
        }


class OrderDelivery(Base):
    __tablename__ = 'OrderDelivery'
    id = Column(Integer, primary_key=True, autoincrement=True)
    orderID = Column(Integer, ForeignKey('SubscriptionOrder.id', ondelete='CASCADE'), nullable=False)
    delivery_date = Column(Date, nullable=False, index=True)
    delivery_index = Column(Integer, nullable=False)
    is_monday = Column(Boolean, nullable=False, default=True)
    quantity = Column(Integer, nullable=False)
    amount = Column(Integer, nullable=False, default=0)
    status = Column(
        SAEnum(DeliveryStatus, native_enum=False, length=20),
        nullable=False,
        default=DeliveryStatus.SCHEDULED,
    )
    package_number = Column(Integer, nullable=False)
    total_packages = Column(Integer, nullable=False)
    order = relationship("SubscriptionOrder", back_populates="deliveries")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "orderId": self.orderID,
            "deliveryDate": self.delivery_date.isoformat() if self.delivery_date else None,
            "deliveryIndex": self.delivery_index,
            "isMonday": bool(self.is_monday),
            "quantity": self.quantity,
            "amount": self.amount,
            "status": self.status.value if self.status else None,
            "packageNumber": self.package_number,
            "totalPackages": self.total_packages,
        }


class DeliverySettings(Base):
    __tablename__ = 'DeliverySettings'
    id = Column(Integer, primary_key=True, autoincrement=True)
    delivery_days = Column(JSON, nullable=False)
    weeks_in_advance = Column(Integer, nullable=False, default=4)
    cutoff_hours = Column(Integer, nullable=False, default=24)
    is_active = Column(Boolean, nullable=False, default=True)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)


class ShopSetting(Base):
    __tablename__ = 'ShopSetting'
    key = Column(String(100), primary_key=True)
    value = Column(String(1024), nullable=False)
    label = Column(String(255))
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "value": self.value,
            "label": self.label,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


class UserBillingData(Base):
    __tablename__ = 'UserBillingData'
    id = Column(Integer, primary_key=True, autoincrement=True)
    userID = Column(Integer, ForeignKey('User.userID'), unique=True, nullable=False)
    data = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)


class QRCodeVisit(Base):
    __tablename__ = 'QRCodeVisit'
    id = Column(Integer, primary_key=True, autoincrement=True)
    page = Column(String(255), nullable=False)
    referrer = Column(String(1024))
    user_agent = Column(String(1024))
    ip_address = Column(String(64))
    session_id = Column(String(255), nullable=False)
    is_direct_visit = Column(Boolean, nullable=False, default=True)
    timestamp = Column(DateTime, default=_utcnow, nullable=False, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "page": self.page,
            "referrer": self.referrer,
            "userAgent": self.user_agent,
            "ipAddress": self.ip_address,
            "sessionId": self.session_id,
            "isDirectVisit": bool(self.is_direct_visit),
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }
