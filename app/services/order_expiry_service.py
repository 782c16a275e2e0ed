import logging
from datetime import timedelta
from typing import Optional

from sqlmodel import Session

from app.config import settings
from app.database import engine
from app.exceptions import StateConflictError
from app.services.cancellation_service import cancel_order
from app.services.order_service import stale_pending_orders
from app.services.payment_gateway import PaymentGateway, get_payment_gateway
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)


def expire_stale_orders(session: Session, gateway: Optional[PaymentGateway] = None) -> int:
    """Cancel unpaid pending orders older than ``pending_order_expiry_hours``."""
    cutoff = utcnow() - timedelta(hours=settings.pending_order_expiry_hours)
    orders = stale_pending_orders(session, cutoff)

    expired = 0
    for order in orders:
        try:
            cancel_order(
                session,
                order,
                user=None,
                gateway=gateway,
                reason="Payment not completed in time",
            )
        except StateConflictError:
            # Paid or cancelled since the query ran
            session.rollback()
            continue
        expired += 1

    logger.info(f"Expired {expired} of {len(orders)} stale pending orders")
    return expired


def run_order_expiry():
    with Session(engine) as session:
        return expire_stale_orders(session, get_payment_gateway())
