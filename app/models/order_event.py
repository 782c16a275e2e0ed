from datetime import datetime
from typing import Optional

from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON, event

from app.exceptions import StateConflictError
from app.utils.clock import utcnow


class OrderEvent(SQLModel, table=True):
    """One entry of an order's append-only history."""

    __tablename__ = "order_event"
    id: Optional[int] = Field(default=None, primary_key=True)

    order_id: int = Field(foreign_key="order.id", index=True)
    event_type: str = Field(index=True)  # status tag

    label: str  # human readable note
    meta: Optional[dict] = Field(default=None, sa_column=Column(JSON))

    created_at: datetime = Field(default_factory=utcnow)
    created_by: str = Field(default="system")


@event.listens_for(OrderEvent, "before_update")
@event.listens_for(OrderEvent, "before_delete")
def _history_is_append_only(mapper, connection, target):
    raise StateConflictError(
        "Order history entries cannot be changed", reason="history_append_only", order_id=target.order_id
    )
