"""
Cancellation and refunds.

A paid order is refunded through the gateway before it is cancelled. A
failed refund still cancels the order but flags it for reconciliation.
"""

import logging
from typing import Optional

from sqlmodel import Session

from app.constants.order_status import OrderStatus, PaymentStatus
from app.exceptions import AccessDeniedError, ExternalDependencyError, StateConflictError
from app.models.order import Order
from app.models.user import User
from app.notifications import NotificationKind, dispatch_notification
from app.services.discount_service import release_discount
from app.services.order_event_service import log_order_event
from app.services.order_service import is_cancellable_by_customer, is_terminal, transition, update_fields
from app.services.payment_gateway import PaymentGateway, RefundResult
from app.services.payment_service import get_payment
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)


def _actor(user: Optional[User]) -> str:
    if user is None:
        return "system"
    return f"admin:{user.id}" if user.is_admin else f"customer:{user.id}"


def _refund(session: Session, order: Order, gateway: PaymentGateway) -> RefundResult:
    result = gateway.refund(transaction_id=order.transaction_id, amount=order.final_total)

    payment = get_payment(session, order.id)
    if payment:
        if result.success:
            payment.status = "refunded"
            payment.refund_reference = result.reference_id
            payment.refunded_at = utcnow()
        else:
            payment.status = "refund_failed"
        session.add(payment)
    return result


def _record_orphaned_refund(session: Session, order: Order, reference: str, *, actor: str) -> None:
    """The provider refunded but the cancellation lost to another writer."""
    logger.error(
        f"[Order {order.order_number}] refund {reference} issued but order moved to "
        f"{order.order_status.value}/{order.payment_status.value} before cancelling"
    )
    update_fields(session, order, needs_reconciliation=True)
    log_order_event(
        session,
        order_id=order.id,
        event_type="refund_orphaned",
        label="Refund issued but the order was changed by another request",
        created_by=actor,
        meta={
            "refund_reference": reference,
            "order_status": order.order_status.value,
            "payment_status": order.payment_status.value,
        },
    )
    session.commit()
    session.refresh(order)


def cancel_order(
    session: Session,
    order: Order,
    *,
    user: Optional[User],
    gateway: PaymentGateway,
    reason: Optional[str] = None,
) -> Order:
    """
    Customers may cancel their own unpaid pending orders; admins (and the
    expiry job, with ``user=None``) may cancel any non-terminal order.
    """
    prefix = f"[Order {order.order_number}]"

    if is_terminal(order):
        raise StateConflictError(
            f"Order is already {order.order_status.value}",
            reason="not_cancellable",
            order_id=order.id,
        )

    if user is not None and not user.is_admin:
        if order.customer_id != user.id:
            raise AccessDeniedError("You do not have access to this order", order_id=order.id)
        if not is_cancellable_by_customer(order):
            raise StateConflictError(
                "This order can no longer be cancelled, contact support",
                reason="not_cancellable",
                order_id=order.id,
            )

    payment_status = None
    values = {}
    meta = {"reason": reason}
    refunded = False

    if order.payment_status == PaymentStatus.paid:
        result = _refund(session, order, gateway)
        if result.success:
            payment_status = PaymentStatus.refunded
            refunded = True
            meta["refund_reference"] = result.reference_id
        else:
            logger.error(f"{prefix} refund failed during cancellation: {result.error}")
            values["needs_reconciliation"] = True
            meta["refund_error"] = result.error

    try:
        transition(
            session,
            order,
            order_status=OrderStatus.cancelled,
            payment_status=payment_status,
            label=f"Order cancelled: {reason}" if reason else "Order cancelled",
            event_type="cancelled",
            actor=_actor(user),
            meta=meta,
            values=values,
        )
    except StateConflictError:
        if refunded:
            _record_orphaned_refund(session, order, meta["refund_reference"], actor=_actor(user))
        raise
    release_discount(session, order.id)
    session.commit()
    session.refresh(order)

    dispatch_notification(
        kind=NotificationKind.ORDER_CANCELLED,
        order=order,
        session=session,
        extra={
            "reason": reason,
            "refunded": refunded,
            "needs_reconciliation": order.needs_reconciliation,
        },
    )
    return order


def refund_order(
    session: Session,
    order: Order,
    *,
    admin: User,
    gateway: PaymentGateway,
    reason: Optional[str] = None,
) -> Order:
    """
    Refund a paid order, completed ones included. The order status becomes
    ``refunded`` unless it already reached a terminal status.
    """
    if order.payment_status != PaymentStatus.paid:
        raise StateConflictError(
            f"Only paid orders can be refunded (payment is {order.payment_status.value})",
            reason="not_refundable",
            order_id=order.id,
        )

    result = _refund(session, order, gateway)
    if not result.success:
        update_fields(session, order, needs_reconciliation=True)
        session.commit()
        raise ExternalDependencyError(
            "Refund failed at the payment provider", reason="refund_failed", order_id=order.id
        )

    transition(
        session,
        order,
        order_status=None if is_terminal(order) else OrderStatus.refunded,
        payment_status=PaymentStatus.refunded,
        label=f"Payment refunded: {reason}" if reason else "Payment refunded",
        event_type="refunded",
        actor=_actor(admin),
        meta={"refund_reference": result.reference_id, "reason": reason},
    )
    release_discount(session, order.id)
    session.commit()
    session.refresh(order)

    dispatch_notification(
        kind=NotificationKind.ORDER_REFUNDED,
        order=order,
        session=session,
        extra={"refund_reference": result.reference_id},
    )
    return order
