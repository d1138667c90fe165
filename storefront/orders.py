"""Order lifecycle: checkout, payment claims and operator review.

Every function here that mutates state commits (or rolls back) its own
transaction, so a caller never observes a half-applied transition.

Payment states::

    PENDING ──notify──▶ VERIFICATION_PENDING ──approve──▶ PAID (audited)
       │                        │                           ▲
       │                        └──reject──▶ FAILED ◀──reject┤
       └──submit txn id──▶ PAID (unaudited) ──approve────────┘

A FAILED order can be notified about or resubmitted again.
"""
import logging
import math
import random
import time
from typing import NamedTuple, Optional

from sqlalchemy import and_, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload, selectinload

from storefront import config
from storefront.errors import (
    DuplicateTransactionId,
    InsufficientStock,
    NotFound,
    ProductUnavailable,
    StateConflict,
)
from storefront.models import (
    Address,
    CartItem,
    Order,
    OrderItem,
    OrderStatus,
    PaymentStatus,
    Product,
    utcnow,
)

logger = logging.getLogger(__name__)

EMAIL_LINK_REVIEWER = "email-link"


class OrderMatch(NamedTuple):
    order: Order
    matched_on: str   # "id" | "order_number"


def calculate_totals(subtotal: int):
    """Return ``(delivery_fee, tax, total)`` for a cart subtotal in whole rupees."""
    delivery_fee = 0 if subtotal >= config.FREE_DELIVERY_THRESHOLD else config.DELIVERY_FEE
    # Half-up rounding, not Python's banker's rounding
    tax = int(math.floor(subtotal * config.GST_RATE + 0.5))
    return delivery_fee, tax, subtotal + delivery_fee + tax


def generate_order_number() -> str:
    return f"{config.ORDER_NUMBER_PREFIX}{int(time.time() * 1000)}{random.randint(0, 999)}"


def serialize_address(address: Optional[Address]):
    if address is None:
        return None
    return {
        "id": address.id,
        "name": address.name,
        "phone": address.phone,
        "street": address.street,
        "city": address.city,
        "state": address.state,
        "pincode": address.pincode,
    }


def serialize_order(order: Order):
    return {
        "id": order.id,
        "orderNumber": order.order_number,
        "subtotal": order.subtotal,
        "deliveryFee": order.delivery_fee,
        "tax": order.tax,
        "total": order.total,
        "status": order.status,
        "paymentStatus": order.payment_status,
        "items": [
            {
                "id": item.id,
                "productId": item.product_id,
                "name": item.name,
                "price": item.price,
                "quantity": item.quantity,
            }
            for item in order.items
        ],
        "address": serialize_address(order.address),
        "deliverySlot": order.delivery_slot,
        "deliveryDate": order.delivery_date.isoformat() if order.delivery_date else None,
        "createdAt": order.created_at.isoformat() if order.created_at else None,
    }


def _order_query(db):
    return db.query(Order).options(selectinload(Order.items), joinedload(Order.address))


def find_by_idempotency_key(db, key: str) -> Optional[Order]:
    return _order_query(db).filter(Order.idempotency_key == key).first()


def resolve_order(db, reference: str, user_id: str, for_update: bool = False) -> Optional[OrderMatch]:
    """Find the caller's order by either its id or its order number."""
    query = _order_query(db).filter(
        or_(Order.id == reference, Order.order_number == reference),
        Order.user_id == user_id,
    )
    if for_update:
        query = query.with_for_update(of=Order)
    order = query.first()
    if order is None:
        return None
    return OrderMatch(order, "id" if order.id == reference else "order_number")


def load_order(db, order_id: str, for_update: bool = False) -> Optional[Order]:
    query = _order_query(db).filter(Order.id == order_id)
    if for_update:
        query = query.with_for_update(of=Order)
    return query.first()


def _clear_cart(db, user_id: str):
    db.query(CartItem).filter(CartItem.user_id == user_id).delete(synchronize_session=False)


def _reserve_stock(db, item: CartItem):
    """Atomically take ``item.quantity`` units; the WHERE clause keeps stock non-negative."""
    result = db.execute(
        update(Product)
        .where(
            Product.id == item.product_id,
            Product.is_active.is_(True),
            Product.stock >= item.quantity,
        )
        .values(stock=Product.stock - item.quantity)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def create_order(db, user_id: str, request):
    """Turn the user's cart into an order. Returns ``(order, replayed)``."""
    if request.idempotency_key:
        existing = find_by_idempotency_key(db, request.idempotency_key)
        if existing is not None:
            if existing.user_id != user_id:
                # Someone else's key; never reveal their order
                raise StateConflict("Idempotency key has already been used")
            logger.info(
                "Idempotent request: returning existing order %s for key %s",
                existing.id, request.idempotency_key,
            )
            return existing, True

    cart_items = (
        db.query(CartItem)
        .options(joinedload(CartItem.product))
        .filter(CartItem.user_id == user_id)
        .all()
    )
    if not cart_items:
        raise StateConflict("Your cart is empty")

    for item in cart_items:
        if not item.product.is_active:
            raise ProductUnavailable(f'Product "{item.product.name}" is no longer available')
        if item.product.stock < item.quantity:
            raise InsufficientStock(
                f'Insufficient stock for "{item.product.name}". Only {item.product.stock} available.'
            )

    address = (
        db.query(Address)
        .filter(Address.id == request.address_id, Address.user_id == user_id)
        .first()
    )
    if address is None:
        raise StateConflict("Invalid delivery address")

    subtotal = sum(item.product.price * item.quantity for item in cart_items)
    delivery_fee, tax, total = calculate_totals(subtotal)

    order = Order(
        order_number=generate_order_number(),
        user_id=user_id,
        address_id=address.id,
        delivery_slot=request.delivery_slot,
        delivery_date=request.delivery_date,
        delivery_notes=request.delivery_notes,
        gift_message=request.gift_message,
        is_gift=request.is_gift,
        idempotency_key=request.idempotency_key,
        subtotal=subtotal,
        delivery_fee=delivery_fee,
        tax=tax,
        total=total,
        status=OrderStatus.PENDING,
        payment_status=PaymentStatus.PENDING,
        items=[
            OrderItem(
                product_id=item.product_id,
                name=item.product.name,
                price=item.product.price,
                quantity=item.quantity,
            )
            for item in cart_items
        ],
    )

    try:
        db.add(order)
        for item in cart_items:
            if not _reserve_stock(db, item):
                # Stock or availability changed since the cart was read
                name = item.product.name
                db.rollback()
                raise InsufficientStock(f'Insufficient stock for "{name}"')
        db.commit()
    except IntegrityError:
        db.rollback()
        if request.idempotency_key:
            # A concurrent retry with the same key won the race
            existing = find_by_idempotency_key(db, request.idempotency_key)
            if existing is not None and existing.user_id == user_id:
                logger.info("Idempotent request resolved after conflict: order %s", existing.id)
                return existing, True
        raise

    db.refresh(order)
    logger.info(
        "Order %s (#%s) created for user %s: %d items, total %s",
        order.id, order.order_number, user_id, len(cart_items), order.total,
    )
    return order, False


def list_orders(db, user_id: str, page: int, limit: int):
    query = _order_query(db).filter(Order.user_id == user_id)
    total = db.query(Order).filter(Order.user_id == user_id).count()
    orders = (
        query.order_by(Order.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return orders, total


def _transaction_id_owner(db, transaction_id: str, order_id: str):
    """Return the other order already holding ``transaction_id``, if any."""
    return (
        db.query(Order.id)
        .filter(Order.payment_id == transaction_id, Order.id != order_id)
        .first()
    )


def submit_transaction_id(db, user_id: str, reference: str, transaction_id: str):
    """Record the customer's UPI transaction id and mark the order paid.

    ``transaction_id`` must already be normalised. Returns
    ``(order, accepted)``; ``accepted`` is False when the same id was
    already on this order and nothing changed.
    """
    match = resolve_order(db, reference, user_id, for_update=True)
    if match is None:
        raise NotFound("Order not found or does not belong to you")
    order = match.order

    if order.payment_id == transaction_id:
        logger.info("Transaction ID resubmitted unchanged for order %s", order.id)
        return order, False

    if order.payment_status == PaymentStatus.PAID:
        raise StateConflict("This order has already been paid and confirmed")
    if order.status == OrderStatus.CANCELLED:
        raise StateConflict("This order has been cancelled")

    in_use = _transaction_id_owner(db, transaction_id, order.id)
    if in_use is not None:
        logger.warning(
            "Transaction ID %s already used by order %s; rejected for order %s",
            transaction_id, in_use.id, order.id,
        )
        raise DuplicateTransactionId("This transaction ID has already been used for another order")

    order.payment_id = transaction_id
    order.payment_status = PaymentStatus.PAID
    order.status = OrderStatus.CONFIRMED
    order.paid_at = utcnow()
    order.payment_verified_at = None
    order.payment_verified_by = None
    _clear_cart(db, user_id)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race with another order claiming the same id
        db.rollback()
        raise DuplicateTransactionId("This transaction ID has already been used for another order")

    logger.info(
        "Transaction ID %s accepted for order %s (#%s), awaiting audit",
        transaction_id, order.id, order.order_number,
    )
    return order, True


def request_verification(db, user_id: str, reference: str):
    """Customer says they paid without a transaction id. Returns ``(order, changed)``."""
    match = resolve_order(db, reference, user_id, for_update=True)
    if match is None:
        raise NotFound("Order not found or does not belong to you")
    order = match.order

    if order.payment_status == PaymentStatus.PAID:
        raise StateConflict("This order has already been paid and confirmed")
    if order.payment_status == PaymentStatus.VERIFICATION_PENDING:
        return order, False
    if order.status == OrderStatus.CANCELLED:
        raise StateConflict("This order has been cancelled")

    order.payment_status = PaymentStatus.VERIFICATION_PENDING
    db.commit()
    logger.info("Order %s (#%s) marked for payment verification", order.id, order.order_number)
    return order, True


def _ensure_awaiting_audit(order: Order):
    if not order.awaiting_audit:
        raise StateConflict(
            f"Order is not awaiting verification (current status: {order.payment_status})"
        )


def approve_payment(db, order: Order, reviewer: str):
    _ensure_awaiting_audit(order)
    now = utcnow()
    order.payment_status = PaymentStatus.PAID
    order.status = OrderStatus.CONFIRMED
    if order.paid_at is None:
        order.paid_at = now
    order.payment_verified_at = now
    order.payment_verified_by = reviewer
    # The cart may have been refilled since submission; clear it again
    _clear_cart(db, order.user_id)
    db.commit()
    logger.info(
        "Payment approved for order %s (#%s) by %s, transaction %s, amount %s",
        order.id, order.order_number, reviewer, order.payment_id, order.total,
    )
    return order


def reject_payment(db, order: Order, reviewer: str):
    """Mark the claim failed and free the transaction id for a corrected resubmission."""
    _ensure_awaiting_audit(order)
    rejected_id = order.payment_id
    now = utcnow()
    order.payment_status = PaymentStatus.FAILED
    order.status = OrderStatus.PENDING
    order.payment_id = None
    order.paid_at = None
    order.payment_verified_at = now
    order.payment_verified_by = reviewer
    db.commit()
    logger.info(
        "Payment rejected for order %s (#%s) by %s, transaction %s",
        order.id, order.order_number, reviewer, rejected_id,
    )
    return order


def review_order(db, order_id: str, action: str, reviewer: str) -> str:
    """Apply an operator's approve/reject decision; returns a message for the operator."""
    order = load_order(db, order_id, for_update=True)
    if order is None:
        raise NotFound("Order not found")

    if action == "approve":
        approve_payment(db, order, reviewer)
        return f"Order #{order.order_number} approved. Customer has been confirmed."
    reject_payment(db, order, reviewer)
    return f"Order #{order.order_number} rejected. Customer can resubmit their transaction ID."


def list_awaiting_audit(db):
    return (
        _order_query(db)
        .options(joinedload(Order.user))
        .filter(
            or_(
                Order.payment_status == PaymentStatus.VERIFICATION_PENDING,
                and_(
                    Order.payment_status == PaymentStatus.PAID,
                    Order.payment_verified_at.is_(None),
                ),
            )
        )
        .order_by(Order.updated_at.asc())
        .all()
    )
