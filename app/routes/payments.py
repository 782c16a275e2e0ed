from dataclasses import asdict

from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.database import get_session
from app.exceptions import NotFoundError
from app.models.user import User
from app.schemas.payment_schemas import (
    CaptureRequest,
    CaptureResponse,
    PaymentIntentResponse,
    PaymentRead,
)
from app.services.order_service import get_order_for_user
from app.services.payment_gateway import PaymentGateway, get_payment_gateway
from app.services.payment_service import confirm_capture, create_payment_intent, get_payment
from app.dependencies.auth import get_current_user

router = APIRouter()


@router.post("/{order_id}/intent", response_model=PaymentIntentResponse)
def start_payment(
    order_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """Create the provider-side payment for the order total"""
    order = get_order_for_user(session, order_id, current_user)
    intent = create_payment_intent(session, order, gateway=gateway, actor=current_user)
    return asdict(intent)


@router.post("/{order_id}/capture", response_model=CaptureResponse)
def capture_payment(
    order_id: int,
    payload: CaptureRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """Confirm the payment; safe to retry"""
    order = get_order_for_user(session, order_id, current_user)
    result = confirm_capture(
        session,
        order,
        intent_id=payload.intent_id,
        payment_id=payload.payment_id,
        signature=payload.signature,
        gateway=gateway,
    )

    return {
        "message": "Payment already processed" if result.already_captured else "Payment successful",
        "already_captured": result.already_captured,
        "payment": result.payment,
        "order": result.order,
    }


@router.get("/{order_id}", response_model=PaymentRead)
def payment_detail(
    order_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    order = get_order_for_user(session, order_id, current_user)
    payment = get_payment(session, order.id)

    if not payment:
        raise NotFoundError("Payment not found", order_id=order.id)
    return payment
