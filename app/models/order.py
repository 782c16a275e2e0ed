from sqlalchemy import Column, JSON, UniqueConstraint
from sqlmodel import SQLModel, Field, Relationship
from typing import List, Optional
from datetime import datetime
from decimal import Decimal

from app.constants.order_status import OrderStatus, PaymentStatus
from app.models.order_item import OrderItem
from app.models.order_event import OrderEvent
from app.services.pricing import OrderTotals
from app.utils.clock import utcnow


class Order(SQLModel, table=True):
    __table_args__ = (
        UniqueConstraint(
            "customer_id", "idempotency_key", name="uq_order_customer_idempotency_key"
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    order_number: str = Field(index=True, unique=True)
    idempotency_key: Optional[str] = Field(default=None, index=True)

    # Snapshotted at checkout, profile edits never reach them
    customer_id: int = Field(foreign_key="user.id", index=True)
    customer_email: str
    customer_name: str
    customer_notes: Optional[str] = None

    # Cache of OrderTotals.from_items(items), written only by recalculate_totals()
    subtotal: Decimal = Field(default=Decimal("0.00"), max_digits=10, decimal_places=2)
    total_discount: Decimal = Field(default=Decimal("0.00"), max_digits=10, decimal_places=2)
    final_total: Decimal = Field(default=Decimal("0.00"), max_digits=10, decimal_places=2)
    discount_code: Optional[str] = None

    payment_status: PaymentStatus = Field(default=PaymentStatus.pending, index=True)
    order_status: OrderStatus = Field(default=OrderStatus.pending, index=True)

    payment_intent_id: Optional[str] = Field(default=None, index=True)
    transaction_id: Optional[str] = Field(default=None, index=True)
    payer_email: Optional[str] = None
    paid_at: Optional[datetime] = None

    download_links: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    download_expiry: Optional[datetime] = None
    customization_needed: bool = Field(default=False)
    free_order_route: Optional[str] = None
    needs_reconciliation: bool = Field(default=False)
    email_sent: bool = Field(default=False)
    email_sent_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow)

    items: List["OrderItem"] = Relationship(
        back_populates="order",
        sa_relationship_kwargs={"order_by": "OrderItem.id"},
    )
    history: List["OrderEvent"] = Relationship(
        sa_relationship_kwargs={"order_by": "OrderEvent.id", "viewonly": True},
    )

    @property
    def totals(self) -> OrderTotals:
        return OrderTotals(self.subtotal, self.total_discount, self.final_total)

    def recalculate_totals(self) -> OrderTotals:
        totals = OrderTotals.from_items(self.items)
        self.subtotal = totals.subtotal
        self.total_discount = totals.total_discount
        self.final_total = totals.final_total
        return totals

    @property
    def is_free(self) -> bool:
        return self.final_total == 0
