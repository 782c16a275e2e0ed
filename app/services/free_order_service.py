"""
Routing for orders whose final total is zero.

The whole order takes one of three routes:

* ``auto_complete``: nothing is customizable; grant every file and complete.
* ``missing_customization``: customizable items but no customization data;
  grant what can be granted, stay ``processing`` and tell an admin.
* ``needs_review``: customization data was supplied; stay ``pending``
  with no grants until an admin acts.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from sqlmodel import Session

from app.constants.order_status import OrderStatus, PaymentStatus
from app.exceptions import AccessDeniedError, StateConflictError, ValidationError
from app.models.order import Order
from app.models.user import User
from app.notifications import NotificationKind, dispatch_notification
from app.services.discount_service import redeem_discount
from app.services.entitlement_service import fulfill_items
from app.services.order_service import (
    complete_order,
    download_link,
    is_terminal,
    transition,
)

logger = logging.getLogger(__name__)


class FreeOrderRoute(str, Enum):
    AUTO_COMPLETE = "auto_complete"
    MISSING_CUSTOMIZATION = "missing_customization"
    NEEDS_REVIEW = "needs_review"


@dataclass
class FreeOrderResult:
    order: Order
    route: FreeOrderRoute
    already_processed: bool = False


def decide_route(order: Order) -> FreeOrderRoute:
    customizable = [item for item in order.items if item.customization_enabled]
    if not customizable:
        return FreeOrderRoute.AUTO_COMPLETE
    if not any(item.has_customization_details for item in customizable):
        return FreeOrderRoute.MISSING_CUSTOMIZATION
    return FreeOrderRoute.NEEDS_REVIEW


def is_mixed_cart(order: Order) -> bool:
    """Some customizable items carry data and others do not."""
    customizable = [item for item in order.items if item.customization_enabled]
    with_data = [item for item in customizable if item.has_customization_details]
    return bool(with_data) and len(with_data) < len(customizable)


def complete_free_order(session: Session, order: Order, *, user: User) -> FreeOrderResult:
    """
    Settle a zero-total order. Safe to call again for the same order: the
    stored route is returned and no grant is created twice.
    """
    prefix = f"[Order {order.order_number}]"

    if not user.is_admin and order.customer_id != user.id:
        raise AccessDeniedError("You do not have access to this order", order_id=order.id)

    if order.payment_status == PaymentStatus.free:
        return FreeOrderResult(
            order=order, route=FreeOrderRoute(order.free_order_route), already_processed=True
        )

    if not order.is_free:
        raise ValidationError(
            "Order total is not zero", reason="not_free", order_id=order.id
        )
    if is_terminal(order) or order.payment_status != PaymentStatus.pending:
        raise StateConflictError(
            f"Order is {order.order_status.value}/{order.payment_status.value}",
            reason="not_payable",
            order_id=order.id,
        )

    route = decide_route(order)
    mixed = is_mixed_cart(order)
    if mixed:
        logger.warning(f"{prefix} mixed customization cart routed as {route.value}")

    actor = f"customer:{user.id}" if not user.is_admin else f"admin:{user.id}"
    meta = {"route": route.value, "mixed_customization": mixed}

    try:
        if route == FreeOrderRoute.NEEDS_REVIEW:
            transition(
                session,
                order,
                payment_status=PaymentStatus.free,
                label="Free order waiting for review",
                event_type="free_order_review",
                actor=actor,
                meta=meta,
                values={"free_order_route": route.value, "customization_needed": True},
            )
        else:
            transition(
                session,
                order,
                order_status=OrderStatus.processing,
                payment_status=PaymentStatus.free,
                label="Free order confirmed",
                event_type="free_order",
                actor=actor,
                meta=meta,
                values={"free_order_route": route.value},
            )
    except StateConflictError:
        # Duplicate request won the race
        session.rollback()
        session.refresh(order)
        if order.payment_status == PaymentStatus.free:
            return FreeOrderResult(
                order=order, route=FreeOrderRoute(order.free_order_route), already_processed=True
            )
        raise

    redeem_discount(session, order)

    if route == FreeOrderRoute.AUTO_COMPLETE:
        grants, _ = fulfill_items(session, order)
        if grants:
            complete_order(session, order, actor=actor, note="Free order completed automatically")
        else:
            logger.warning(f"{prefix} free order has no design files to deliver")
    elif route == FreeOrderRoute.MISSING_CUSTOMIZATION:
        grants, _ = fulfill_items(session, order)
        order.download_links = [download_link(g.design_file_id) for g in grants]
        order.customization_needed = True
        session.add(order)

    session.commit()
    session.refresh(order)
    logger.info(f"{prefix} free order routed: {route.value}, status {order.order_status.value}")

    if route == FreeOrderRoute.AUTO_COMPLETE:
        dispatch_notification(
            kind=NotificationKind.ADMIN_NEW_ORDER,
            order=order,
            session=session,
            extra={"admin_content": f"Free order {order.order_number} auto-completed"},
        )
        if order.order_status == OrderStatus.completed:
            dispatch_notification(kind=NotificationKind.ORDER_COMPLETED, order=order, session=session)
        else:
            dispatch_notification(kind=NotificationKind.ORDER_PROCESSING, order=order, session=session)
    elif route == FreeOrderRoute.MISSING_CUSTOMIZATION:
        dispatch_notification(
            kind=NotificationKind.FREE_ORDER_MISSING_CUSTOMIZATION, order=order, session=session
        )
        dispatch_notification(kind=NotificationKind.ORDER_PROCESSING, order=order, session=session)
    else:
        dispatch_notification(
            kind=NotificationKind.FREE_ORDER_NEEDS_REVIEW,
            order=order,
            session=session,
            extra={"mixed_customization": mixed},
        )

    return FreeOrderResult(order=order, route=route)
