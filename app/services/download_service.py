"""
Download authorization and bookkeeping.

Customers download through a grant on one of their settled, fulfilled
orders; each download bumps the grant's counter with a single
conditional UPDATE so two racing requests cannot both take the last slot.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import func, update
from sqlmodel import Session, select

from app.constants.order_status import FULFILLMENT_ELIGIBLE_STATUSES, SETTLED_PAYMENT_STATUSES
from app.exceptions import AccessDeniedError, ExpiredError, NotFoundError, QuotaExceededError
from app.models.design_file import DesignFile
from app.models.order import Order
from app.models.order_design_file import OrderDesignFile
from app.models.user import User
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)


@dataclass
class DownloadTicket:
    design_file: DesignFile
    grant: Optional[OrderDesignFile] = None
    order_id: Optional[int] = None

    @property
    def remaining(self) -> Optional[int]:
        if self.grant is None or self.design_file.max_downloads is None:
            return None
        return max(self.design_file.max_downloads - self.grant.download_count, 0)


def _denied() -> AccessDeniedError:
    return AccessDeniedError("You do not have access to this file", reason="access_denied")


def _candidate_grants(session: Session, user: User, design_file_id: int) -> List[Tuple[OrderDesignFile, Order]]:
    return session.exec(
        select(OrderDesignFile, Order)
        .join(Order, Order.id == OrderDesignFile.order_id)
        .where(OrderDesignFile.design_file_id == design_file_id)
        .where(OrderDesignFile.is_active == True)  # noqa: E712
        .where(Order.customer_id == user.id)
        .where(Order.order_status.in_(list(FULFILLMENT_ELIGIBLE_STATUSES)))
        .where(Order.payment_status.in_(list(SETTLED_PAYMENT_STATUSES)))
        .order_by(OrderDesignFile.id)
    ).all()


def _is_expired(grant: OrderDesignFile, order: Order, now: datetime) -> bool:
    if grant.is_expired(now):
        return True
    return order.download_expiry is not None and order.download_expiry < now


def _has_quota(grant: OrderDesignFile, design_file: DesignFile) -> bool:
    return design_file.max_downloads is None or grant.download_count < design_file.max_downloads


def _authorize_admin(session: Session, design_file_id: int, now: datetime) -> DownloadTicket:
    design_file = session.get(DesignFile, design_file_id)
    if design_file is None:
        raise NotFoundError("Design file not found", reason="file_not_found")
    if not design_file.is_active:
        raise AccessDeniedError("This file is no longer available", reason="file_inactive")
    if design_file.is_expired(now):
        raise ExpiredError("This file has expired", reason="access_expired")
    return DownloadTicket(design_file=design_file)


def authorize_download(
    session: Session,
    *,
    user: User,
    design_file_id: int,
    now: Optional[datetime] = None,
) -> DownloadTicket:
    """
    Check ``user`` may download the file and record the download.

    Missing files are reported as access denied to customers so that file
    ids cannot be guessed. Admins bypass ownership and quota.
    """
    now = now or utcnow()

    if user.is_admin:
        return _authorize_admin(session, design_file_id, now)

    design_file = session.get(DesignFile, design_file_id)
    candidates = _candidate_grants(session, user, design_file_id)
    if design_file is None or not candidates:
        logger.info(f"Download of file {design_file_id} denied for user {user.id}: no grant")
        raise _denied()

    if not design_file.is_active:
        raise _denied()

    if design_file.is_expired(now):
        raise ExpiredError("This file has expired", reason="access_expired")

    live = [(g, o) for g, o in candidates if not _is_expired(g, o, now)]
    if not live:
        raise ExpiredError("Your download access has expired", reason="access_expired")

    usable = [(g, o) for g, o in live if _has_quota(g, design_file)]
    if not usable:
        raise QuotaExceededError(
            "Download limit reached for this file", reason="quota_exhausted", order_id=live[0][1].id
        )

    grant, order = usable[0]

    stmt = (
        update(OrderDesignFile)
        .where(OrderDesignFile.id == grant.id)
        .where(OrderDesignFile.is_active == True)  # noqa: E712
    )
    if design_file.max_downloads is not None:
        stmt = stmt.where(OrderDesignFile.download_count < design_file.max_downloads)

    result = session.execute(
        stmt.values(
            download_count=OrderDesignFile.download_count + 1,
            first_downloaded_at=func.coalesce(OrderDesignFile.first_downloaded_at, now),
            last_downloaded_at=now,
            updated_at=now,
        ).execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        session.rollback()
        raise QuotaExceededError(
            "Download limit reached for this file", reason="quota_exhausted", order_id=order.id
        )

    session.commit()
    session.refresh(grant)

    logger.info(
        f"[Order {order.order_number}] file {design_file_id} downloaded "
        f"({grant.download_count}/{design_file.max_downloads or 'unlimited'})"
    )
    return DownloadTicket(design_file=design_file, grant=grant, order_id=order.id)
