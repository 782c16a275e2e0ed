# app/services/order_event_service.py

from typing import Optional
from sqlmodel import Session, select
from app.models.order_event import OrderEvent
from app.utils.clock import utcnow


def log_order_event(
    session: Session,
    order_id: int,
    event_type: str,
    label: str,
    created_by: str = "system",
    meta: Optional[dict] = None,
) -> OrderEvent:
    """
    Append-only event log for order timeline
    """

    event = OrderEvent(
        order_id=order_id,
        event_type=event_type,
        label=label,
        meta=meta,
        created_by=created_by,
        created_at=utcnow(),
    )

    session.add(event)
    return event


def order_timeline(session: Session, order_id: int):
    return session.exec(
        select(OrderEvent)
        .where(OrderEvent.order_id == order_id)
        .order_by(OrderEvent.id)
    ).all()
