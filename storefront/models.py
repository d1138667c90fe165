from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from storefront.database import Base


def _new_id():
    return uuid4().hex


def utcnow():
    return datetime.now(timezone.utc)


class OrderStatus:
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class PaymentStatus:
    PENDING = "PENDING"
    VERIFICATION_PENDING = "VERIFICATION_PENDING"
    PAID = "PAID"
    FAILED = "FAILED"


class Role:
    CUSTOMER = "CUSTOMER"
    ADMIN = "ADMIN"


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=_new_id)
    email = Column(String, unique=True, index=True)
    name = Column(String, nullable=True)
    role = Column(String, default=Role.CUSTOMER)       # CUSTOMER | ADMIN


class Address(Base):
    __tablename__ = "addresses"

    id = Column(String, primary_key=True, default=_new_id)
    user_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)
    name = Column(String)
    phone = Column(String)
    street = Column(String)
    city = Column(String)
    state = Column(String)
    pincode = Column(String)


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),)

    id = Column(String, primary_key=True, default=_new_id)
    name = Column(String, nullable=False)
    price = Column(Integer, nullable=False)            # whole rupees
    stock = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)


class CartItem(Base):
    __tablename__ = "cart_items"

    id = Column(String, primary_key=True, default=_new_id)
    user_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)
    product_id = Column(String, ForeignKey("products.id"), nullable=False)
    variant_id = Column(String, nullable=True)
    quantity = Column(Integer, nullable=False)

    product = relationship("Product")


class Order(Base):
    __tablename__ = "orders"

    id = Column(String, primary_key=True, default=_new_id)
    order_number = Column(String, unique=True, index=True, nullable=False)
    user_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)
    address_id = Column(String, ForeignKey("addresses.id"), nullable=False)

    status = Column(String, nullable=False, default=OrderStatus.PENDING)
    payment_status = Column(String, nullable=False, default=PaymentStatus.PENDING)
    # Customer-submitted UPI transaction id; the unique constraint backs up
    # the duplicate check done before every write.
    payment_id = Column(String, unique=True, nullable=True)
    idempotency_key = Column(String, unique=True, nullable=True)

    subtotal = Column(Integer, nullable=False)
    delivery_fee = Column(Integer, nullable=False)
    tax = Column(Integer, nullable=False)
    total = Column(Integer, nullable=False)

    delivery_slot = Column(String, nullable=False)
    delivery_date = Column(DateTime, nullable=False)
    delivery_notes = Column(Text, nullable=True)
    gift_message = Column(Text, nullable=True)
    is_gift = Column(Boolean, nullable=False, default=False)

    paid_at = Column(DateTime, nullable=True)
    payment_verified_at = Column(DateTime, nullable=True)
    payment_verified_by = Column(String, nullable=True)   # admin user id | "email-link"

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    user = relationship("User")
    address = relationship("Address")
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")

    @property
    def awaiting_audit(self):
        """True while a payment claim exists that no operator has reviewed yet."""
        if self.payment_status == PaymentStatus.VERIFICATION_PENDING:
            return True
        return self.payment_status == PaymentStatus.PAID and self.payment_verified_at is None


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(String, primary_key=True, default=_new_id)
    order_id = Column(String, ForeignKey("orders.id"), index=True, nullable=False)
    product_id = Column(String, ForeignKey("products.id"), nullable=False)
    name = Column(String, nullable=False)               # snapshot at checkout
    price = Column(Integer, nullable=False)             # snapshot at checkout
    quantity = Column(Integer, nullable=False)

    order = relationship("Order", back_populates="items")
