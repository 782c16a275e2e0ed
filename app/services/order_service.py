"""
Order aggregate: creation, the status state machine and order queries.

Every status change goes through ``transition``, which writes the new
statuses with a conditional UPDATE (only if nobody changed them since
they were read) and appends exactly one history entry.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import extract, func, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.config import settings
from app.constants.order_status import (
    ALLOWED_TRANSITIONS,
    PAYMENT_TRANSITIONS,
    SETTLED_PAYMENT_STATUSES,
    TERMINAL_ORDER_STATUSES,
    OrderStatus,
    PaymentStatus,
)
from app.exceptions import (
    AccessDeniedError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from app.models.order import Order
from app.models.order_item import OrderItem, requests_customization
from app.models.product import Product
from app.models.user import User
from app.services.discount_service import CartLine, validate_discount
from app.services.entitlement_service import fulfill_items, list_grants
from app.services.order_event_service import log_order_event
from app.services.pricing import LineInput, ZERO, price_lines
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)

ORDER_NUMBER_ATTEMPTS = 5


@dataclass
class OrderItemInput:
    product_id: int
    quantity: int = 1
    customizations: Optional[dict] = field(default=None)


# ---------- STATE MACHINE ----------

def can_transition(order: Order, order_status=None, payment_status=None) -> bool:
    if order_status is not None and order_status != order.order_status:
        if order_status not in ALLOWED_TRANSITIONS[order.order_status]:
            return False
    if payment_status is not None and payment_status != order.payment_status:
        if payment_status not in PAYMENT_TRANSITIONS[order.payment_status]:
            return False
    return True


def transition(
    session: Session,
    order: Order,
    *,
    label: str,
    order_status: Optional[OrderStatus] = None,
    payment_status: Optional[PaymentStatus] = None,
    event_type: Optional[str] = None,
    actor: str = "system",
    meta: Optional[dict] = None,
    values: Optional[dict] = None,
) -> Order:
    """
    Move ``order`` to new statuses and record one history entry.

    Raises StateConflictError when the move is not allowed from the
    current statuses, or when another writer changed them first. Does not
    commit.
    """
    seen_order, seen_payment = order.order_status, order.payment_status
    new_order = order_status if order_status is not None else seen_order
    new_payment = payment_status if payment_status is not None else seen_payment

    if (new_order, new_payment) == (seen_order, seen_payment):
        raise StateConflictError(
            f"Order {order.order_number} is already {seen_order.value}/{seen_payment.value}",
            order_id=order.id,
        )

    if not can_transition(order, order_status, payment_status):
        raise StateConflictError(
            f"Cannot move order {order.order_number} from "
            f"{seen_order.value}/{seen_payment.value} to {new_order.value}/{new_payment.value}",
            order_id=order.id,
        )

    changes = dict(values or {})
    changes.update(order_status=new_order, payment_status=new_payment, updated_at=utcnow())

    result = session.execute(
        update(Order)
        .where(Order.id == order.id)
        .where(Order.order_status == seen_order)
        .where(Order.payment_status == seen_payment)
        .values(**changes)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        session.refresh(order)
        raise StateConflictError(
            f"Order {order.order_number} was changed by another request",
            reason="concurrent_update",
            order_id=order.id,
        )

    session.refresh(order)

    history_meta = {
        "from": {"order_status": seen_order.value, "payment_status": seen_payment.value},
        "to": {"order_status": new_order.value, "payment_status": new_payment.value},
    }
    if meta:
        history_meta.update(meta)

    log_order_event(
        session,
        order_id=order.id,
        event_type=event_type or new_order.value,
        label=label,
        created_by=actor,
        meta=history_meta,
    )

    logger.info(
        f"[Order {order.order_number}] {seen_order.value}/{seen_payment.value} -> "
        f"{new_order.value}/{new_payment.value} by {actor}"
    )
    return order


def update_fields(session: Session, order: Order, **values) -> Order:
    """Write non-status fields such as ``email_sent`` or ``needs_reconciliation``."""
    for key, value in values.items():
        setattr(order, key, value)
    order.updated_at = utcnow()
    session.add(order)
    return order


# ---------- CREATION ----------

def _next_order_number(session: Session, now: datetime, offset: int = 0) -> str:
    count = session.exec(
        select(func.count())
        .select_from(Order)
        .where(extract("year", Order.created_at) == now.year)
    ).one()
    return f"{settings.order_number_prefix}-{now.year}-{count + 1 + offset:03d}"


def _find_by_idempotency_key(session: Session, customer_id: int, key: Optional[str]) -> Optional[Order]:
    if not key:
        return None
    return session.exec(
        select(Order)
        .where(Order.customer_id == customer_id)
        .where(Order.idempotency_key == key)
    ).first()


def _load_products(session: Session, items: Sequence[OrderItemInput]) -> dict:
    ids = {item.product_id for item in items}
    products = session.exec(select(Product).where(Product.id.in_(list(ids)))).all()
    by_id = {p.id: p for p in products}

    for product_id in ids:
        product = by_id.get(product_id)
        if product is None:
            raise NotFoundError(f"Product {product_id} not found", reason="product_not_found")
        if not product.is_active:
            raise ValidationError(f"{product.name} is no longer available", reason="product_unavailable")
    return by_id


def create_order(
    session: Session,
    *,
    customer: User,
    items: Sequence[OrderItemInput],
    discount_code: Optional[str] = None,
    customer_notes: Optional[str] = None,
    idempotency_key: Optional[str] = None,
) -> Tuple[Order, bool]:
    """
    Snapshot the cart into a new pending order.

    Returns ``(order, created)``. A repeated ``idempotency_key`` from the
    same customer returns the existing order with ``created=False``.
    """
    if not items:
        raise ValidationError("An order needs at least one item", reason="empty_order")
    for item in items:
        if item.quantity < 1:
            raise ValidationError("Quantity must be at least 1", reason="invalid_quantity")

    existing = _find_by_idempotency_key(session, customer.id, idempotency_key)
    if existing:
        return existing, False

    products = _load_products(session, items)

    line_inputs = [
        LineInput(unit_price=products[item.product_id].price, quantity=item.quantity)
        for item in items
    ]

    quote = None
    total_discount = ZERO
    if discount_code:
        cart_value = sum((line.subtotal for line in line_inputs), ZERO)
        quote = validate_discount(
            session,
            code=discount_code,
            customer_id=customer.id,
            cart_value=cart_value,
            lines=[
                CartLine(product_id=item.product_id, subtotal=line.subtotal)
                for item, line in zip(items, line_inputs)
            ],
        )
        total_discount = quote.discount_amount
        line_inputs = [
            LineInput(line.unit_price, line.quantity, eligible=quote.is_eligible(item.product_id))
            for item, line in zip(items, line_inputs)
        ]

    priced = price_lines(line_inputs, total_discount)
    now = utcnow()

    for attempt in range(ORDER_NUMBER_ATTEMPTS):
        order = Order(
            order_number=_next_order_number(session, now, offset=attempt),
            idempotency_key=idempotency_key,
            customer_id=customer.id,
            customer_email=customer.email,
            customer_name=customer.full_name,
            customer_notes=customer_notes,
            discount_code=quote.code if quote else None,
            customization_needed=any(
                products[item.product_id].customization_enabled
                and requests_customization(item.customizations)
                for item in items
            ),
            created_at=now,
            updated_at=now,
        )
        for item, price in zip(items, priced):
            product = products[item.product_id]
            order.items.append(
                OrderItem(
                    product_id=product.id,
                    product_name=product.name,
                    product_slug=product.slug,
                    quantity=price.quantity,
                    original_price=price.original_price,
                    discount_amount=price.discount_amount,
                    unit_price=price.unit_price,
                    line_total=price.line_total,
                    discount_code=quote.code if quote and price.promo_discount > ZERO else None,
                    promo_discount=price.promo_discount,
                    customization_enabled=product.customization_enabled,
                    has_customizations=product.customization_enabled
                    and requests_customization(item.customizations),
                    customizations=item.customizations,
                )
            )
        order.recalculate_totals()

        try:
            with session.begin_nested():
                session.add(order)
                session.flush()
        except IntegrityError:
            existing = _find_by_idempotency_key(session, customer.id, idempotency_key)
            if existing:
                return existing, False
            logger.warning(f"Order number {order.order_number} taken, retrying")
            continue

        log_order_event(
            session,
            order_id=order.id,
            event_type=OrderStatus.pending.value,
            label="Order placed",
            created_by=f"customer:{customer.id}",
            meta={"final_total": str(order.final_total), "discount_code": order.discount_code},
        )
        session.commit()
        session.refresh(order)
        logger.info(f"[Order {order.order_number}] created for customer {customer.id}")
        return order, True

    raise StateConflictError("Could not allocate an order number, please retry", reason="order_number_conflict")


# ---------- QUERIES ----------

def get_order(session: Session, order_id: int) -> Order:
    order = session.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found", order_id=order_id)
    return order


def ensure_can_view(order: Order, user: User) -> Order:
    if not user.is_admin and order.customer_id != user.id:
        raise AccessDeniedError("You do not have access to this order", order_id=order.id)
    return order


def get_order_for_user(session: Session, order_id: int, user: User) -> Order:
    return ensure_can_view(get_order(session, order_id), user)


def get_order_by_number(session: Session, order_number: str, user: User) -> Order:
    order = session.exec(select(Order).where(Order.order_number == order_number)).first()
    if not order:
        raise NotFoundError("Order not found")
    return ensure_can_view(order, user)


def list_orders(
    session: Session,
    user: User,
    *,
    order_status: Optional[OrderStatus] = None,
    payment_status: Optional[PaymentStatus] = None,
    customer_id: Optional[int] = None,
    needs_reconciliation: Optional[bool] = None,
):
    """Orders visible to ``user``, newest first. Returns a query for pagination."""
    query = select(Order).order_by(Order.created_at.desc(), Order.id.desc())
    if not user.is_admin:
        query = query.where(Order.customer_id == user.id)
    elif customer_id is not None:
        query = query.where(Order.customer_id == customer_id)
    if order_status is not None:
        query = query.where(Order.order_status == order_status)
    if payment_status is not None:
        query = query.where(Order.payment_status == payment_status)
    if needs_reconciliation is not None:
        query = query.where(Order.needs_reconciliation == needs_reconciliation)
    return query


# ---------- OPERATOR WORKFLOW ----------

def set_order_status(
    session: Session,
    order: Order,
    new_status: OrderStatus,
    *,
    actor: User,
    note: Optional[str] = None,
) -> Order:
    """Admin moves an order along the customization workflow."""
    if new_status in (OrderStatus.completed, OrderStatus.cancelled, OrderStatus.refunded):
        raise ValidationError(
            f"Use the dedicated endpoint to mark an order {new_status.value}", order_id=order.id
        )

    transition(
        session,
        order,
        order_status=new_status,
        label=note or f"Status changed to {new_status.value.replace('_', ' ')}",
        actor=f"admin:{actor.id}",
    )
    session.commit()
    session.refresh(order)
    return order


def download_link(design_file_id: int) -> str:
    return f"{settings.base_url.rstrip('/')}/design-files/{design_file_id}/download"


def complete_order(session: Session, order: Order, *, actor: str, note: Optional[str] = None) -> Order:
    """
    Mark a fulfilled order completed and stamp its download window.

    The order must hold at least one active grant. Does not commit.
    """
    if order.payment_status not in SETTLED_PAYMENT_STATUSES:
        raise StateConflictError(
            "Cannot complete an unpaid order", reason="not_paid", order_id=order.id
        )

    grants = [g for g in list_grants(session, order.id) if g.is_active]
    if not grants:
        raise StateConflictError(
            "Cannot complete an order without downloadable files",
            reason="no_files_granted",
            order_id=order.id,
        )

    if order.order_status == OrderStatus.pending:
        transition(
            session,
            order,
            order_status=OrderStatus.processing,
            label="Approved for fulfillment",
            actor=actor,
        )

    now = utcnow()
    transition(
        session,
        order,
        order_status=OrderStatus.completed,
        label=note or "Order completed",
        actor=actor,
        meta={"files": [g.design_file_id for g in grants]},
        values={
            "processed_at": now,
            "download_expiry": now + timedelta(days=settings.download_expiry_days)
            if settings.download_expiry_days
            else None,
            "download_links": [download_link(g.design_file_id) for g in grants],
            "customization_needed": False,
        },
    )
    return order


def is_cancellable_by_customer(order: Order) -> bool:
    return (
        order.order_status == OrderStatus.pending
        and order.payment_status in (PaymentStatus.pending, PaymentStatus.failed)
    )


def is_terminal(order: Order) -> bool:
    return order.order_status in TERMINAL_ORDER_STATUSES


def stale_pending_orders(session: Session, older_than: datetime) -> List[Order]:
    return session.exec(
        select(Order)
        .where(Order.order_status == OrderStatus.pending)
        .where(Order.payment_status.in_([PaymentStatus.pending, PaymentStatus.failed]))
        .where(Order.created_at < older_than)
    ).all()


def auto_fulfill(session: Session, order: Order, *, actor: str = "system") -> Order:
    """
    Release the files of every item that needs no designer work, then
    complete the order or park it in ``awaiting_customization``.

    Does not commit.
    """
    grants, waiting = fulfill_items(session, order)

    if waiting:
        transition(
            session,
            order,
            order_status=OrderStatus.awaiting_customization,
            label="Waiting for customization work",
            actor=actor,
            meta={"files": [g.design_file_id for g in grants]},
            values={
                "customization_needed": True,
                "download_links": [download_link(g.design_file_id) for g in grants],
            },
        )
    elif grants:
        complete_order(session, order, actor=actor, note="Files delivered automatically")
    else:
        logger.warning(f"[Order {order.order_number}] no design files to deliver, left for an admin")
    return order
