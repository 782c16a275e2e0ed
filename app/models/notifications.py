from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field

from app.utils.clock import utcnow


# ---------- ENUMS (SAFE FOR SQLMODEL) ----------

class RecipientRole(str, Enum):
    admin = "admin"
    customer = "customer"


class NotificationChannel(str, Enum):
    email = "email"
    system = "system"


class NotificationStatus(str, Enum):
    sent = "sent"
    failed = "failed"


# ---------- MODEL ----------

class Notification(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    recipient_role: RecipientRole
    user_id: Optional[int] = None
    recipient: Optional[str] = None  # email address for the email channel

    trigger_source: str = Field(index=True)  # notification kind
    related_id: int = Field(index=True)      # order id

    title: str
    content: str
    payload: Optional[dict] = Field(default=None, sa_column=Column(JSON))

    channel: NotificationChannel = NotificationChannel.email
    status: NotificationStatus = NotificationStatus.sent

    created_at: datetime = Field(default_factory=utcnow)
