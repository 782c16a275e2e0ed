from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal

from app.utils.clock import utcnow


class Payment(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    order_id: int = Field(foreign_key="order.id", index=True)
    user_id: int = Field(index=True)

    intent_id: str = Field(index=True)
    txn_id: str = Field(index=True, unique=True)

    amount: Decimal = Field(max_digits=10, decimal_places=2)
    currency: str
    status: str  # captured | refunded | refund_failed
    method: str = Field(default="razorpay")

    refund_reference: Optional[str] = None
    refunded_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
