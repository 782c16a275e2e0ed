from sqlalchemy import Column, JSON, event, inspect
from sqlmodel import SQLModel, Field , Relationship
from typing import Optional , TYPE_CHECKING
from decimal import Decimal

from app.exceptions import StateConflictError

if TYPE_CHECKING:
    from app.models.order import Order


class OrderItem(SQLModel, table=True):
    __tablename__ = "order_item"

    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key="order.id", index=True)
    product_id: int = Field(foreign_key="product.id")

    product_name: str
    product_slug: str
    quantity: int

    original_price: Decimal = Field(max_digits=10, decimal_places=2)
    discount_amount: Decimal = Field(default=Decimal("0.00"), max_digits=10, decimal_places=2)  # per unit
    unit_price: Decimal = Field(max_digits=10, decimal_places=2)
    line_total: Decimal = Field(max_digits=10, decimal_places=2)

    discount_code: Optional[str] = None
    promo_discount: Decimal = Field(default=Decimal("0.00"), max_digits=10, decimal_places=2)  # whole line

    customization_enabled: bool = Field(default=False)
    # True customization (text, uploads, notes); a predefined color alone is not
    has_customizations: bool = Field(default=False)
    customizations: Optional[dict] = Field(default=None, sa_column=Column(JSON))

    order: Optional["Order"] = Relationship(back_populates="items")

    @property
    def line_subtotal(self) -> Decimal:
        return self.original_price * self.quantity

    @property
    def selected_color_hexes(self) -> list:
        colors = (self.customizations or {}).get("colors") or []
        return [c["hex"].lower() for c in colors if c.get("hex")]

    @property
    def has_customization_details(self) -> bool:
        """Any customer input at all, a color pick included."""
        return bool(self.selected_color_hexes) or requests_customization(self.customizations)


def requests_customization(customizations: Optional[dict]) -> bool:
    """Text changes, uploads, a logo or notes: work a designer has to do."""
    data = customizations or {}
    text_changes = [t for t in data.get("text_changes") or [] if (t.get("value") or "").strip()]
    return bool(
        text_changes
        or data.get("uploaded_images")
        or data.get("uploaded_logo")
        or (data.get("customization_notes") or "").strip()
    )


SNAPSHOT_FIELDS = (
    "product_id",
    "product_name",
    "product_slug",
    "quantity",
    "original_price",
    "discount_amount",
    "unit_price",
    "line_total",
    "discount_code",
    "promo_discount",
    "customizations",
)


@event.listens_for(OrderItem, "before_update")
def _reject_snapshot_changes(mapper, connection, target):
    state = inspect(target)
    changed = [name for name in SNAPSHOT_FIELDS if state.attrs[name].history.has_changes()]
    if changed:
        raise StateConflictError(
            f"Order item snapshot is immutable: {', '.join(changed)}",
            reason="item_snapshot_immutable",
            order_id=target.order_id,
        )


@event.listens_for(OrderItem, "before_delete")
def _reject_item_delete(mapper, connection, target):
    raise StateConflictError(
        "Order items cannot be removed", reason="item_snapshot_immutable", order_id=target.order_id
    )
