import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from storefront import config, orders
from storefront.auth import CurrentUser, verify_token
from storefront.database import SessionLocal
from storefront.errors import NotFound, ValidationFailed
from storefront.models import Order
from storefront.notifications import send_payment_verification_email
from storefront.qrcodes import QrCodeGenerator, get_qr_generator
from storefront.schemas import (
    CreateOrderRequest,
    OrderReference,
    QrCodeRequest,
    SubmitTransactionRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


@router.post("/orders")
def create_order_api(request: CreateOrderRequest, user: CurrentUser = Depends(verify_token)):
    db = SessionLocal()
    try:
        order, replayed = orders.create_order(db, user.id, request)
        body = {"success": True, "order": orders.serialize_order(order)}
        if replayed:
            body["idempotent"] = True
            return body
        return JSONResponse(status_code=201, content=body)
    finally:
        db.close()


@router.get("/orders")
def list_orders_api(
    page: int = Query(1, ge=1),
    limit: int = Query(config.DEFAULT_PAGE_SIZE, ge=1, le=config.MAX_PAGE_SIZE),
    user: CurrentUser = Depends(verify_token),
):
    db = SessionLocal()
    try:
        found, total = orders.list_orders(db, user.id, page, limit)
        return {
            "success": True,
            "orders": [orders.serialize_order(o) for o in found],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": -(-total // limit),
            },
        }
    finally:
        db.close()


@router.post("/orders/verify")
def submit_transaction_api(request: SubmitTransactionRequest, user: CurrentUser = Depends(verify_token)):
    db = SessionLocal()
    try:
        order, accepted = orders.submit_transaction_id(
            db, user.id, request.order_id, request.upi_transaction_id
        )
        if accepted:
            send_payment_verification_email(order)
            message = "Payment recorded. Your order is confirmed and will be verified shortly."
        else:
            message = "This transaction ID is already recorded for your order."
        return {"success": True, "message": message, "order": orders.serialize_order(order)}
    finally:
        db.close()


@router.post("/orders/notify-payment")
def notify_payment_api(request: OrderReference, user: CurrentUser = Depends(verify_token)):
    db = SessionLocal()
    try:
        order, changed = orders.request_verification(db, user.id, request.order_id)
        if changed:
            send_payment_verification_email(order)
            message = "Thank you! We have been notified and will confirm your order shortly."
        else:
            message = "Your payment notification has already been sent. We will confirm your order shortly."
        return {"success": True, "message": message, "order": orders.serialize_order(order)}
    finally:
        db.close()


@router.post("/qrcode")
def generate_qr_api(
    request: QrCodeRequest,
    user: CurrentUser = Depends(verify_token),
    generator: QrCodeGenerator = Depends(get_qr_generator),
):
    db = SessionLocal()
    try:
        order = db.get(Order, request.order_id)
        # Not found and not yours look the same
        if order is None or order.user_id != user.id:
            raise NotFound("Order not found")

        if order.total != request.amount:
            logger.warning(
                "QR code amount mismatch for order %s: expected %s, requested %s",
                order.id, order.total, request.amount,
            )
            raise ValidationFailed("Amount does not match order total")

        qr, cached = generator.generate(order.id, order.order_number, order.total)
        return {
            "success": True,
            "qrCodeDataUrl": qr.qr_code_data_url,
            "upiLink": qr.upi_link,
            "upiId": generator.upi_id,
            "amount": order.total,
            "orderNumber": order.order_number,
            "cached": cached,
        }
    finally:
        db.close()
