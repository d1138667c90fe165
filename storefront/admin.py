"""Operator review: the admin API and the one-click links sent by email.

Both channels end in the same ``orders.approve_payment`` /
``orders.reject_payment`` transitions; they differ only in how the caller
is authenticated (admin session vs. per-order HMAC token).
"""
import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import SQLAlchemyError

from storefront import orders, pages
from storefront.auth import CurrentUser, require_admin
from storefront.database import SessionLocal
from storefront.models import PaymentStatus
from storefront.notifications import verify_order_token
from storefront.schemas import AdminVerifyRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


@router.get("/admin/orders")
def awaiting_audit_api(admin: CurrentUser = Depends(require_admin)):
    db = SessionLocal()
    try:
        pending = orders.list_awaiting_audit(db)
        result = []
        for order in pending:
            data = orders.serialize_order(order)
            data["paymentId"] = order.payment_id
            data["customer"] = {
                "name": order.user.name if order.user else None,
                "email": order.user.email if order.user else None,
            }
            result.append(data)
        return {"orders": result}
    finally:
        db.close()


@router.post("/admin/orders/{order_id}/verify")
def admin_verify_api(
    order_id: str,
    request: AdminVerifyRequest,
    admin: CurrentUser = Depends(require_admin),
):
    db = SessionLocal()
    try:
        message = orders.review_order(db, order_id, request.action, reviewer=admin.id)
        return {"message": message}
    finally:
        db.close()


@router.get("/orders/{order_id}/confirm")
def confirm_from_email(order_id: str, token: str = Query("")):
    if not verify_order_token(order_id, "approve", token):
        logger.warning("Invalid confirmation link used for order %s", order_id)
        return pages.invalid_link("confirmation")

    db = SessionLocal()
    try:
        order = orders.load_order(db, order_id, for_update=True)
        if order is None:
            return pages.order_not_found()

        if order.payment_status == PaymentStatus.PAID and not order.awaiting_audit:
            return pages.already_done("Already Confirmed", order.order_number, "confirmed", pages.GREEN)
        if not order.awaiting_audit:
            return pages.wrong_state("Cannot Confirm", order.order_number, order.payment_status)

        orders.approve_payment(db, order, reviewer=orders.EMAIL_LINK_REVIEWER)
        return pages.confirmed(order.order_number, order.total)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to confirm order %s from email link", order_id)
        return pages.unavailable()
    finally:
        db.close()


@router.get("/orders/{order_id}/reject")
def reject_from_email(order_id: str, token: str = Query("")):
    if not verify_order_token(order_id, "reject", token):
        logger.warning("Invalid rejection link used for order %s", order_id)
        return pages.invalid_link("rejection")

    db = SessionLocal()
    try:
        order = orders.load_order(db, order_id, for_update=True)
        if order is None:
            return pages.order_not_found()

        if order.payment_status == PaymentStatus.FAILED:
            return pages.already_done("Already Rejected", order.order_number, "rejected", pages.GREY)
        if not order.awaiting_audit:
            return pages.wrong_state("Cannot Reject", order.order_number, order.payment_status)

        orders.reject_payment(db, order, reviewer=orders.EMAIL_LINK_REVIEWER)
        return pages.rejected(order.order_number, order.total)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to reject order %s from email link", order_id)
        return pages.unavailable()
    finally:
        db.close()
