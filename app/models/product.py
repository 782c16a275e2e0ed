from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlmodel import SQLModel, Field

from app.utils.clock import utcnow


class Product(SQLModel, table=True):
    """Catalog entry. Read-only here: orders only snapshot it."""

    __tablename__ = "product"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    slug: str = Field(index=True, unique=True)
    price: Decimal = Field(max_digits=10, decimal_places=2)

    customization_enabled: bool = Field(default=False)
    is_active: bool = Field(default=True)

    created_at: datetime = Field(default_factory=utcnow)
