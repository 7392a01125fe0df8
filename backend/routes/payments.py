# backend/routes/payments.py
import logging
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from config import settings
from database import get_db
from models.order import Order
from models.users import User
from schemas.payment import (
    PaymentInitiate, PaymentInitiateOut, PaymentSettingsOut, PaymentStatusOut, PendingOrderRequest,
)
from services.payment_eligibility import PaymentMethod, PaymentSettings
from utils.audit import write_log, client_ip
from utils.tokenJWT import get_current_user

router = APIRouter(tags=["Payments"])
logger = logging.getLogger(__name__)


def current_payment_settings() -> PaymentSettings:
    return PaymentSettings(
        cod=settings.PAYMENT_COD_ENABLED,
        credit_card=settings.PAYMENT_CARD_ENABLED,
        upi=settings.PAYMENT_UPI_ENABLED,
    )


def _own_order(db: Session, order_id: int, user: User) -> Order:
    order = db.query(Order).filter(Order.id == order_id, Order.user_id == user.id).first()
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


@router.get("/payment-settings", response_model=PaymentSettingsOut)
def get_payment_settings():
    s = current_payment_settings()
    return PaymentSettingsOut(cod=s.cod, credit_card=s.credit_card, upi=s.upi)


@router.post("/payments/initiate", response_model=PaymentInitiateOut)
def initiate_payment(
    payload: PaymentInitiate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    order = _own_order(db, payload.order_id, current_user)
    if order.status != "pending_payment":
        raise HTTPException(status_code=400, detail=f"Order is {order.status}, payment cannot be started")

    method = PaymentMethod.parse(payload.payment_mode)
    if method is None or method.value != order.payment_mode:
        raise HTTPException(status_code=400, detail="Payment mode does not match the order")

    # Advance orders collect only the advance online, the balance on delivery
    expected = order.advance_required_amount if method is PaymentMethod.ADVANCE else order.grand_total
    if abs(round(payload.amount, 2) - round(expected or 0.0, 2)) > 0.01:
        raise HTTPException(status_code=400, detail=f"Amount must be {expected:.2f}")

    query = urlencode({"orderId": order.id, "amount": f"{expected:.2f}", "mode": method.value})
    order.payment_url = f"{settings.PAYMENT_PAGE_URL}?{query}"
    db.commit()

    logger.info("Payment redirect issued for order %s (%s)", order.id, method.value)
    write_log(db, user_id=current_user.id, action="PAYMENT_INITIATE", resource="payments", status="SUCCESS",
              ip=client_ip(request), meta={"order_id": order.id, "amount": expected, "mode": method.value})
    return PaymentInitiateOut(order_id=order.id, redirect_url=order.payment_url)


# Return-to-site after a successful payment
@router.post("/payments/confirm", response_model=PaymentStatusOut)
def confirm_payment(
    payload: PendingOrderRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    order = _own_order(db, payload.order_id, current_user)
    if order.status == "pending_payment":
        order.status = "placed"
        order.payment_status = "partial_paid" if order.payment_mode == PaymentMethod.ADVANCE.value else "paid"
        db.commit()
        write_log(db, user_id=current_user.id, action="PAYMENT_CONFIRM", resource="payments", status="SUCCESS",
                  ip=client_ip(request), meta={"order_id": order.id, "payment_status": order.payment_status})
    elif order.status != "placed":
        raise HTTPException(status_code=400, detail=f"Order is {order.status}")
    return PaymentStatusOut(order_id=order.id, status=order.status, payment_status=order.payment_status)


# Return-to-site after a failed or abandoned payment
@router.post("/payments/cancel-pending", response_model=PaymentStatusOut)
def cancel_pending(
    payload: PendingOrderRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    order = _own_order(db, payload.order_id, current_user)
    if order.status == "pending_payment":
        order.status = "cancelled"
        order.payment_status = "cancelled"
        db.commit()
        write_log(db, user_id=current_user.id, action="PAYMENT_CANCEL", resource="payments", status="SUCCESS",
                  ip=client_ip(request), meta={"order_id": order.id})
    elif order.status != "cancelled":
        raise HTTPException(status_code=400, detail=f"Order is {order.status} and cannot be cancelled")
    return PaymentStatusOut(order_id=order.id, status=order.status, payment_status=order.payment_status)
