from datetime import datetime
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field

from app.utils.clock import utcnow


class OrderDesignFile(SQLModel, table=True):
    """Entitlement grant: one order may download one design file."""

    __tablename__ = "order_design_file"
    __table_args__ = (
        UniqueConstraint("order_id", "design_file_id", name="uq_order_design_file"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key="order.id", index=True)
    design_file_id: int = Field(foreign_key="design_file.id", index=True)

    download_count: int = Field(default=0)
    first_downloaded_at: Optional[datetime] = None
    last_downloaded_at: Optional[datetime] = None

    is_active: bool = Field(default=True)
    expires_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at < now
