from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field

from app.utils.clock import utcnow


class DiscountUsage(SQLModel, table=True):
    """One redemption of a discount code by a customer on an order."""

    __tablename__ = "discount_usage"
    __table_args__ = (
        UniqueConstraint(
            "discount_code_id", "customer_id", "customer_slot", name="uq_discount_usage_customer_slot"
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    discount_code_id: int = Field(foreign_key="discount_code.id", index=True)
    code: str = Field(index=True)
    customer_id: int = Field(foreign_key="user.id", index=True)

    order_id: int = Field(foreign_key="order.id", unique=True)
    order_number: str

    discount_amount: Decimal = Field(max_digits=10, decimal_places=2)
    order_total: Decimal = Field(max_digits=10, decimal_places=2)  # before discount

    # 1..user_usage_limit while active, NULL once released
    customer_slot: Optional[int] = None
    is_active: bool = Field(default=True, index=True)

    used_at: datetime = Field(default_factory=utcnow)
