from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from decimal import Decimal

from app.schemas.orders_schemas import OrderRead


class PaymentIntentResponse(BaseModel):
    order_id: int
    order_number: str
    intent_id: str
    amount: Decimal
    currency: str
    key_id: str
    reused: bool


class CaptureRequest(BaseModel):
    intent_id: str
    payment_id: str
    signature: str


class PaymentRead(BaseModel):
    id: int
    intent_id: str
    txn_id: str
    amount: Decimal
    currency: str
    status: str
    method: str
    refund_reference: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class CaptureResponse(BaseModel):
    message: str
    already_captured: bool
    payment: Optional[PaymentRead] = None
    order: OrderRead
