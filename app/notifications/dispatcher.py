import logging
from typing import List, Optional

from jinja2 import TemplateError
from sqlalchemy.exc import SQLAlchemyError

from app.models.notifications import (
    Notification,
    NotificationChannel,
    NotificationStatus,
    RecipientRole,
)
from app.notifications.channels import Channel
from app.notifications.email_handlers import send_admin_email, send_user_email
from app.notifications.events import NotificationKind
from app.notifications.rules import (
    ADMIN_TEMPLATES,
    ADMIN_TITLES,
    NOTIFICATION_RULES,
    USER_TEMPLATES,
)
from app.services.notification_service import create_notification, order_payload
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)


def _render_and_send(sender, template, subject, *args) -> bool:
    try:
        return sender(template, subject, *args)
    except TemplateError:
        logger.exception(f"Could not render {template}")
        return False


def dispatch_notification(
    *,
    kind: NotificationKind,
    order,
    session,
    extra: Optional[dict] = None,
) -> List[Notification]:
    """
    Central notification dispatcher.

    Runs after the order change is committed. Delivery failures are
    recorded on the notification row and never raised to the caller.

    Handles:
    - admin in-app notification
    - customer email
    - admin email
    """
    rules = NOTIFICATION_RULES.get(kind, {})
    payload = order_payload(order, **(extra or {}))
    records = []
    prefix = f"[Order {order.order_number}]"

    try:
        # -------------------------
        # ADMIN IN-APP NOTIFICATION
        # -------------------------
        if rules.get(Channel.INAPP_ADMIN):
            records.append(
                create_notification(
                    session=session,
                    recipient_role=RecipientRole.admin,
                    trigger_source=kind.value,
                    related_id=order.id,
                    title=ADMIN_TITLES.get(kind, "Order Update"),
                    content=payload.get("admin_content")
                    or f"Order {order.order_number} by {order.customer_email}",
                    payload=payload,
                    channel=NotificationChannel.system,
                )
            )

        # -------------------------
        # CUSTOMER EMAIL
        # -------------------------
        if rules.get(Channel.EMAIL_USER) and kind in USER_TEMPLATES:
            template, subject = USER_TEMPLATES[kind]
            subject = subject.format(**payload)
            sent = _render_and_send(
                send_user_email, template, subject, order.customer_email, payload
            )
            records.append(
                create_notification(
                    session=session,
                    recipient_role=RecipientRole.customer,
                    user_id=order.customer_id,
                    recipient=order.customer_email,
                    trigger_source=kind.value,
                    related_id=order.id,
                    title=subject,
                    content=payload.get("message") or subject,
                    payload=payload,
                    status=NotificationStatus.sent if sent else NotificationStatus.failed,
                )
            )
            if sent:
                order.email_sent = True
                order.email_sent_at = utcnow()
                session.add(order)
            else:
                logger.warning(f"{prefix} customer email '{kind.value}' not delivered")

        # -------------------------
        # ADMIN EMAIL
        # -------------------------
        if rules.get(Channel.EMAIL_ADMIN) and kind in ADMIN_TEMPLATES:
            template, subject = ADMIN_TEMPLATES[kind]
            subject = subject.format(**payload)
            sent = _render_and_send(send_admin_email, template, subject, payload)
            records.append(
                create_notification(
                    session=session,
                    recipient_role=RecipientRole.admin,
                    trigger_source=kind.value,
                    related_id=order.id,
                    title=subject,
                    content=subject,
                    payload=payload,
                    status=NotificationStatus.sent if sent else NotificationStatus.failed,
                )
            )

        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception(f"{prefix} could not record '{kind.value}' notification")
        return []

    logger.info(f"{prefix} dispatched '{kind.value}' ({len(records)} record(s))")
    return records
