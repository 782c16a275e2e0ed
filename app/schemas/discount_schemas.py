from pydantic import BaseModel, Field
from typing import List, Optional
from decimal import Decimal


class DiscountCartLine(BaseModel):
    product_id: int
    subtotal: Decimal = Field(ge=0)


class DiscountValidateRequest(BaseModel):
    code: str = Field(min_length=1)
    cart_value: Decimal = Field(ge=0)
    items: List[DiscountCartLine] = []


class DiscountValidateResponse(BaseModel):
    code: str
    discount_type: str
    value: Decimal
    cap: Optional[Decimal] = None
    discount_amount: Decimal
    final_total: Decimal


class DiscountStatsResponse(BaseModel):
    code: str
    usage_count: int
    usage_limit: Optional[int] = None
    usage_percentage: Optional[int] = None
    active_redemptions: int
    unique_customers: int
    total_discount_given: Decimal
