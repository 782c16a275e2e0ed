"""
Payment capture coordinator.

Two phases: ``create_payment_intent`` opens a provider-side payment for
the order total, ``confirm_capture`` confirms the money was taken and
moves the order to ``paid``/``processing`` exactly once.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import update
from sqlmodel import Session, select

from app.config import settings
from app.constants.order_status import OrderStatus, PaymentStatus
from app.exceptions import (
    QuotaExceededError,
    StateConflictError,
    ValidationError,
)
from app.models.order import Order
from app.models.payment import Payment
from app.models.user import User
from app.notifications import NotificationKind, dispatch_notification
from app.services.discount_service import ensure_redeemable, redeem_discount
from app.services.order_event_service import log_order_event
from app.services.order_service import auto_fulfill, is_terminal, transition, update_fields
from app.services.payment_gateway import PaymentGateway
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)


@dataclass
class IntentResponse:
    order_id: int
    order_number: str
    intent_id: str
    amount: str
    currency: str
    key_id: str
    reused: bool = False


@dataclass
class CaptureResponse:
    order: Order
    payment: Optional[Payment]
    already_captured: bool = False


def _ensure_payable(order: Order) -> None:
    if order.payment_status == PaymentStatus.paid:
        raise StateConflictError("Order is already paid", reason="already_paid", order_id=order.id)
    if is_terminal(order) or order.order_status != OrderStatus.pending:
        raise StateConflictError(
            f"Order is {order.order_status.value} and cannot be paid",
            reason="not_payable",
            order_id=order.id,
        )
    if order.payment_status not in (PaymentStatus.pending, PaymentStatus.failed):
        raise StateConflictError("Order cannot be paid", reason="not_payable", order_id=order.id)
    if order.is_free:
        raise StateConflictError(
            "Order total is zero, complete it as a free order",
            reason="free_order",
            order_id=order.id,
        )


def get_payment(session: Session, order_id: int) -> Optional[Payment]:
    return session.exec(
        select(Payment).where(Payment.order_id == order_id).order_by(Payment.id.desc())
    ).first()


def create_payment_intent(
    session: Session,
    order: Order,
    *,
    gateway: PaymentGateway,
    actor: User,
) -> IntentResponse:
    """
    Phase one. Reuses the order's existing intent; after a failed capture
    the order goes back to ``pending`` payment so the customer can retry.
    """
    _ensure_payable(order)

    # Limited codes may have run out since checkout
    if order.discount_code:
        ensure_redeemable(session, code=order.discount_code, customer_id=order.customer_id)

    if order.payment_status == PaymentStatus.failed:
        transition(
            session,
            order,
            payment_status=PaymentStatus.pending,
            label="Payment retried",
            event_type="payment_retry",
            actor=f"customer:{actor.id}",
        )
        session.commit()

    if order.payment_intent_id:
        return IntentResponse(
            order_id=order.id,
            order_number=order.order_number,
            intent_id=order.payment_intent_id,
            amount=str(order.final_total),
            currency=settings.currency,
            key_id=gateway.key_id,
            reused=True,
        )

    intent = gateway.create_intent(
        amount=order.final_total,
        currency=settings.currency,
        receipt=order.order_number,
        notes={
            "order_id": order.id,
            "order_number": order.order_number,
            "customer_email": order.customer_email,
        },
    )

    # Only the first concurrent request may attach its intent to the order
    result = session.execute(
        update(Order)
        .where(Order.id == order.id)
        .where(Order.payment_intent_id.is_(None))
        .values(payment_intent_id=intent.intent_id, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        session.refresh(order)
        logger.warning(
            f"[Order {order.order_number}] intent {intent.intent_id} discarded, "
            f"order already uses {order.payment_intent_id}"
        )
        return IntentResponse(
            order_id=order.id,
            order_number=order.order_number,
            intent_id=order.payment_intent_id,
            amount=str(order.final_total),
            currency=settings.currency,
            key_id=gateway.key_id,
            reused=True,
        )

    log_order_event(
        session,
        order_id=order.id,
        event_type="payment_intent_created",
        label="Payment started",
        created_by=f"customer:{actor.id}",
        meta={"intent_id": intent.intent_id, "amount": str(order.final_total)},
    )
    session.commit()
    session.refresh(order)

    logger.info(f"[Order {order.order_number}] payment intent {intent.intent_id} created")
    return IntentResponse(
        order_id=order.id,
        order_number=order.order_number,
        intent_id=intent.intent_id,
        amount=str(order.final_total),
        currency=settings.currency,
        key_id=gateway.key_id,
    )


def confirm_capture(
    session: Session,
    order: Order,
    *,
    intent_id: str,
    payment_id: str,
    signature: str,
    gateway: PaymentGateway,
) -> CaptureResponse:
    """
    Phase two. Idempotent: a repeated confirmation for a paid order returns
    the stored payment without charging or writing history again.
    """
    prefix = f"[Order {order.order_number}]"

    if order.payment_status == PaymentStatus.paid:
        return CaptureResponse(order=order, payment=get_payment(session, order.id), already_captured=True)

    _ensure_payable(order)

    if not order.payment_intent_id:
        raise ValidationError("Payment was not started for this order", reason="intent_missing", order_id=order.id)
    if order.payment_intent_id != intent_id:
        raise ValidationError("Payment does not belong to this order", reason="intent_mismatch", order_id=order.id)

    result = gateway.confirm_capture(
        intent_id=intent_id,
        payment_id=payment_id,
        signature=signature,
        amount=order.final_total,
        currency=settings.currency,
    )

    if not result.success:
        logger.warning(f"{prefix} capture failed: {result.error}")
        if order.payment_status == PaymentStatus.pending:
            transition(
                session,
                order,
                payment_status=PaymentStatus.failed,
                label="Payment failed",
                event_type="payment_failed",
                meta={"error": result.error, "payment_id": payment_id},
            )
            session.commit()
        raise ValidationError(
            "Payment could not be captured, please try again",
            reason="payment_failed",
            order_id=order.id,
        )

    if result.amount is not None and result.amount != order.final_total:
        logger.warning(f"{prefix} captured {result.amount}, expected {order.final_total}")

    now = utcnow()
    try:
        transition(
            session,
            order,
            order_status=OrderStatus.processing,
            payment_status=PaymentStatus.paid,
            label="Payment captured",
            event_type="payment_captured",
            meta={"transaction_id": result.transaction_id},
            values={
                "paid_at": now,
                "transaction_id": result.transaction_id,
                "payer_email": result.payer_email,
                "needs_reconciliation": result.amount is not None
                and result.amount != order.final_total,
            },
        )
    except StateConflictError:
        # Lost the race to a concurrent confirmation
        session.rollback()
        session.refresh(order)
        if order.payment_status == PaymentStatus.paid:
            return CaptureResponse(order=order, payment=get_payment(session, order.id), already_captured=True)
        raise

    payment = Payment(
        order_id=order.id,
        user_id=order.customer_id,
        intent_id=intent_id,
        txn_id=result.transaction_id,
        amount=result.amount if result.amount is not None else order.final_total,
        currency=settings.currency,
        status="captured",
        created_at=now,
    )
    session.add(payment)

    try:
        redeem_discount(session, order)
    except QuotaExceededError as exc:
        # Money is already taken; keep the sale and flag it for a human
        logger.warning(f"{prefix} discount {order.discount_code} over-redeemed: {exc.reason}")
        update_fields(session, order, needs_reconciliation=True)
        log_order_event(
            session,
            order_id=order.id,
            event_type="discount_conflict",
            label="Discount limit exceeded after payment",
            meta={"code": order.discount_code, "reason": exc.reason},
        )

    auto_fulfill(session, order)

    session.commit()
    session.refresh(order)
    session.refresh(payment)
    logger.info(f"{prefix} payment {result.transaction_id} captured, order {order.order_status.value}")

    dispatch_notification(kind=NotificationKind.ADMIN_NEW_ORDER, order=order, session=session)
    if order.order_status == OrderStatus.completed:
        dispatch_notification(kind=NotificationKind.ORDER_COMPLETED, order=order, session=session)
    else:
        dispatch_notification(kind=NotificationKind.ORDER_PROCESSING, order=order, session=session)

    return CaptureResponse(order=order, payment=payment)
