from typing import List, Optional

from sqlmodel import Session, select

from app.config import settings
from app.models.notifications import (
    Notification,
    NotificationChannel,
    NotificationStatus,
    RecipientRole,
)
from app.models.order import Order


def create_notification(
    *,
    session: Session,
    recipient_role: RecipientRole,
    trigger_source: str,
    related_id: int,
    title: str,
    content: str,
    user_id: Optional[int] = None,
    recipient: Optional[str] = None,
    payload: Optional[dict] = None,
    channel: NotificationChannel = NotificationChannel.email,
    status: NotificationStatus = NotificationStatus.sent,
) -> Notification:
    notification = Notification(
        recipient_role=recipient_role,
        user_id=user_id,
        recipient=recipient,
        trigger_source=trigger_source,
        related_id=related_id,
        title=title,
        content=content,
        payload=payload,
        channel=channel,
        status=status,
    )
    session.add(notification)
    session.flush()
    return notification


def order_payload(order: Order, **extra) -> dict:
    """Data every order notification carries; ``extra`` wins on key clashes."""
    payload = {
        "order_id": order.id,
        "order_number": order.order_number,
        "customer_name": order.customer_name,
        "customer_email": order.customer_email,
        "order_status": order.order_status.value,
        "payment_status": order.payment_status.value,
        "subtotal": str(order.subtotal),
        "total_discount": str(order.total_discount),
        "final_total": str(order.final_total),
        "discount_code": order.discount_code,
        "items": [
            {
                "product_name": item.product_name,
                "quantity": item.quantity,
                "line_total": str(item.line_total),
                "has_customizations": item.has_customizations,
            }
            for item in order.items
        ],
        "download_links": list(order.download_links or []),
        "download_expiry": order.download_expiry.isoformat() if order.download_expiry else None,
        "store_name": settings.store_name,
    }
    payload.update(extra)
    return payload


def list_notifications(session: Session, order_id: int) -> List[Notification]:
    return session.exec(
        select(Notification)
        .where(Notification.related_id == order_id)
        .order_by(Notification.id)
    ).all()
