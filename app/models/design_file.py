from datetime import datetime
from typing import Optional

from sqlmodel import SQLModel, Field

from app.utils.clock import utcnow


class DesignFile(SQLModel, table=True):
    __tablename__ = "design_file"

    id: Optional[int] = Field(default=None, primary_key=True)
    product_id: int = Field(foreign_key="product.id", index=True)
    # Set for deliverables made for one order; such files are never
    # resolved for other buyers of the product
    order_id: Optional[int] = Field(default=None, foreign_key="order.id", index=True)

    file_name: str
    storage_key: str  # object key in the R2 bucket
    file_type: str
    file_size: int
    mime_type: str
    description: Optional[str] = None

    is_active: bool = Field(default=True)
    is_public: bool = Field(default=False)

    # Applies to every grant of this file
    max_downloads: Optional[int] = None
    expires_at: Optional[datetime] = None

    # General file vs. file for one predefined color variant
    is_color_variant: bool = Field(default=False)
    color_variant_hex: Optional[str] = None

    created_at: datetime = Field(default_factory=utcnow)

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at < now
