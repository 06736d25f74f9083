# app/routers/payments.py
from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.core.auth import get_current_buyer_id
from app.database import get_session
from app.routers.deps import payment_service as service
from app.schemas.common import ActionResult
from app.schemas.payment import (
    PaymentCancelRequest,
    PaymentConfirmRequest,
    PaymentRequestResult,
)

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/{order_id}/request", response_model=PaymentRequestResult)
def request_payment(
    order_id: str,
    session: Session = Depends(get_session),
    buyer_id: str | None = Depends(get_current_buyer_id),
):
    """
    Prepare payment of a pending order.

    Returns the order id and amount the client passes to the gateway widget.
    """
    return service.initiate(session, buyer_id, order_id)


@router.post("/confirm", response_model=ActionResult)
def confirm_payment(
    payload: PaymentConfirmRequest,
    session: Session = Depends(get_session),
    buyer_id: str | None = Depends(get_current_buyer_id),
):
    """
    Confirm a payment the gateway widget reported as completed.

    Called from the gateway's success redirect with paymentKey, orderId
    and amount.
    """
    return service.confirm(
        session,
        buyer_id,
        payment_key=payload.payment_key,
        order_id=payload.order_id,
        reported_amount=payload.amount,
    )


@router.post("/{order_id}/cancel", response_model=ActionResult)
def cancel_payment(
    order_id: str,
    payload: PaymentCancelRequest | None = None,
    session: Session = Depends(get_session),
    buyer_id: str | None = Depends(get_current_buyer_id),
):
    """
    Cancel a pending or confirmed order. No refund is issued automatically.
    """
    reason = payload.reason if payload else None
    return service.cancel(session, buyer_id, order_id, reason)
