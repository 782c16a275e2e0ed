from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from decimal import Decimal

from app.constants.order_status import OrderStatus, PaymentStatus


class ColorChoice(BaseModel):
    name: Optional[str] = None
    hex: str


class TextChange(BaseModel):
    field: str
    value: str


class Customizations(BaseModel):
    colors: List[ColorChoice] = []
    text_changes: List[TextChange] = []
    uploaded_images: List[str] = []
    uploaded_logo: Optional[str] = None
    customization_notes: Optional[str] = None


class OrderItemCreate(BaseModel):
    product_id: int
    quantity: int = Field(default=1, ge=1)
    customizations: Optional[Customizations] = None


class OrderCreate(BaseModel):
    items: List[OrderItemCreate] = Field(min_length=1)
    discount_code: Optional[str] = None
    customer_notes: Optional[str] = None
    idempotency_key: Optional[str] = Field(default=None, max_length=64)


class OrderItemRead(BaseModel):
    id: int
    product_id: int
    product_name: str
    product_slug: str
    quantity: int
    original_price: Decimal
    discount_amount: Decimal
    unit_price: Decimal
    line_total: Decimal
    discount_code: Optional[str] = None
    promo_discount: Decimal
    customization_enabled: bool
    has_customizations: bool
    customizations: Optional[dict] = None

    class Config:
        from_attributes = True


class OrderHistoryRead(BaseModel):
    id: int
    event_type: str
    label: str
    created_by: str
    meta: Optional[dict] = None
    created_at: datetime

    class Config:
        from_attributes = True


class OrderRead(BaseModel):
    id: int
    order_number: str
    customer_id: int
    customer_email: str
    customer_name: str
    customer_notes: Optional[str] = None

    subtotal: Decimal
    total_discount: Decimal
    final_total: Decimal
    discount_code: Optional[str] = None

    order_status: OrderStatus
    payment_status: PaymentStatus
    payment_intent_id: Optional[str] = None
    transaction_id: Optional[str] = None
    paid_at: Optional[datetime] = None

    download_links: List[str] = []
    download_expiry: Optional[datetime] = None
    customization_needed: bool
    free_order_route: Optional[str] = None
    email_sent: bool
    processed_at: Optional[datetime] = None

    created_at: datetime
    updated_at: datetime

    items: List[OrderItemRead] = []
    history: List[OrderHistoryRead] = []

    class Config:
        from_attributes = True


class AdminOrderRead(OrderRead):
    needs_reconciliation: bool
    payer_email: Optional[str] = None
    idempotency_key: Optional[str] = None


class OrderSummary(BaseModel):
    id: int
    order_number: str
    final_total: Decimal
    order_status: OrderStatus
    payment_status: PaymentStatus
    created_at: datetime

    class Config:
        from_attributes = True


class CancelOrderRequest(BaseModel):
    reason: Optional[str] = None


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    note: Optional[str] = None


class GrantFilesRequest(BaseModel):
    design_file_ids: List[int] = Field(min_length=1)
    expires_at: Optional[datetime] = None


class DeliverableFile(BaseModel):
    product_id: int
    file_name: str
    storage_key: str
    file_size: int = Field(ge=0)
    mime_type: str = "application/octet-stream"
    file_type: Optional[str] = None
    description: Optional[str] = None
    color_variant_hex: Optional[str] = None
    max_downloads: Optional[int] = Field(default=None, ge=1)


class AddOrderFilesRequest(BaseModel):
    files: List[DeliverableFile] = Field(min_length=1)
    expires_at: Optional[datetime] = None


class GrantRead(BaseModel):
    id: int
    order_id: int
    design_file_id: int
    download_count: int
    first_downloaded_at: Optional[datetime] = None
    last_downloaded_at: Optional[datetime] = None
    is_active: bool
    expires_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CustomMessageRequest(BaseModel):
    subject: str = Field(min_length=1)
    message: str = Field(min_length=1)


class FreeOrderResponse(BaseModel):
    route: str
    already_processed: bool
    order: OrderRead
