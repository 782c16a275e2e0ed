from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field

from app.services.pricing import DiscountRule
from app.utils.clock import utcnow


class DiscountCode(SQLModel, table=True):
    __tablename__ = "discount_code"

    id: Optional[int] = Field(default=None, primary_key=True)
    code: str = Field(index=True, unique=True)  # stored upper-case
    description: Optional[str] = None

    discount_type: str  # percentage | fixed_amount
    discount_value: Decimal = Field(max_digits=10, decimal_places=2)
    max_discount_amount: Optional[Decimal] = Field(default=None, max_digits=10, decimal_places=2)
    minimum_order_amount: Optional[Decimal] = Field(default=None, max_digits=10, decimal_places=2)

    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None

    usage_limit: Optional[int] = None       # None = unlimited
    usage_count: int = Field(default=0)
    user_usage_limit: Optional[int] = None  # None = unlimited per customer

    apply_to_all_products: bool = Field(default=True)
    product_ids: List[int] = Field(default_factory=list, sa_column=Column(JSON))

    is_active: bool = Field(default=True)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def rule(self) -> DiscountRule:
        return DiscountRule(
            discount_type=self.discount_type,
            value=self.discount_value,
            max_discount=self.max_discount_amount,
        )

    def applies_to(self, product_id: int) -> bool:
        return self.apply_to_all_products or product_id in (self.product_ids or [])
