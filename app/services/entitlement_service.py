"""
Entitlement grants: which orders may download which design files.

At most one grant exists per (order, file) pair. ``grant_access`` may be
called any number of times for the same pair; only the first call
creates a row.
"""

import logging
import os
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.constants.order_status import TERMINAL_ORDER_STATUSES
from app.exceptions import StateConflictError, ValidationError
from app.models.design_file import DesignFile
from app.models.order import Order
from app.models.order_design_file import OrderDesignFile
from app.models.order_item import OrderItem
from app.services.order_event_service import log_order_event
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)


def list_grants(session: Session, order_id: int) -> List[OrderDesignFile]:
    return session.exec(
        select(OrderDesignFile)
        .where(OrderDesignFile.order_id == order_id)
        .order_by(OrderDesignFile.id)
    ).all()


def get_grant(session: Session, order_id: int, design_file_id: int) -> Optional[OrderDesignFile]:
    return session.exec(
        select(OrderDesignFile)
        .where(OrderDesignFile.order_id == order_id)
        .where(OrderDesignFile.design_file_id == design_file_id)
    ).first()


def resolve_design_files(session: Session, item: OrderItem) -> List[DesignFile]:
    """
    Active files a purchased item entitles the buyer to: every general file
    of the product plus the color-variant files matching the chosen colors.
    """
    files = session.exec(
        select(DesignFile)
        .where(DesignFile.product_id == item.product_id)
        .where(DesignFile.order_id.is_(None))
        .where(DesignFile.is_active == True)  # noqa: E712
        .order_by(DesignFile.id)
    ).all()

    hexes = set(item.selected_color_hexes)
    return [
        f for f in files
        if not f.is_color_variant
        or (f.color_variant_hex and f.color_variant_hex.lower() in hexes)
    ]


def grant_access(
    session: Session,
    order_id: int,
    design_file_ids: Iterable[int],
    *,
    expires_at: Optional[datetime] = None,
) -> List[OrderDesignFile]:
    """
    Grant ``order_id`` access to each file. Returns only the grants this
    call created; pairs that already exist are left untouched.

    A concurrent call inserting the same pair loses on the unique
    constraint and is skipped. Does not commit.
    """
    created = []
    for design_file_id in dict.fromkeys(design_file_ids):
        if get_grant(session, order_id, design_file_id):
            continue

        grant = OrderDesignFile(
            order_id=order_id,
            design_file_id=design_file_id,
            expires_at=expires_at,
        )
        try:
            with session.begin_nested():
                session.add(grant)
                session.flush()
        except IntegrityError:
            logger.info(f"Grant for order {order_id} / file {design_file_id} already exists")
            continue
        created.append(grant)

    if created:
        logger.info(f"Granted order {order_id} access to {len(created)} file(s)")
    return created


def revoke_access(session: Session, order_id: int, design_file_id: int) -> Optional[OrderDesignFile]:
    grant = get_grant(session, order_id, design_file_id)
    if grant and grant.is_active:
        grant.is_active = False
        grant.updated_at = utcnow()
        session.add(grant)
        logger.info(f"Revoked order {order_id} access to file {design_file_id}")
    return grant


def fulfill_items(session: Session, order) -> Tuple[List[OrderDesignFile], bool]:
    """
    Grant files for every item that needs no designer work.

    Returns ``(grants, waiting)`` where ``waiting`` is True when at least
    one item asked for real customization and was left for an admin.
    """
    file_ids = []
    waiting = False
    for item in order.items:
        if item.has_customizations:
            waiting = True
            continue
        file_ids.extend(f.id for f in resolve_design_files(session, item))

    grant_access(session, order.id, file_ids)
    return [g for g in list_grants(session, order.id) if g.is_active], waiting


@dataclass
class DeliverableInput:
    product_id: int
    file_name: str
    storage_key: str
    file_size: int
    mime_type: str
    file_type: Optional[str] = None
    description: Optional[str] = None
    color_variant_hex: Optional[str] = None
    max_downloads: Optional[int] = None


def add_order_files(
    session: Session,
    order: Order,
    files: Sequence[DeliverableInput],
    *,
    actor: str,
    expires_at: Optional[datetime] = None,
) -> List[OrderDesignFile]:
    """
    Record finished custom work for ``order`` as design files that belong
    to this order only, and grant the order access to them.

    Each file must be for a customizable product of the order. Does not
    commit; the files and their grants are committed together.
    """
    if order.order_status in TERMINAL_ORDER_STATUSES:
        raise StateConflictError(
            f"Order is {order.order_status.value}, files can no longer be added",
            reason="not_deliverable",
            order_id=order.id,
        )

    customizable = {item.product_id for item in order.items if item.customization_enabled}
    if not customizable:
        raise ValidationError(
            "This order has no customizable products",
            reason="not_customizable",
            order_id=order.id,
        )

    design_files = []
    for data in files:
        if data.product_id not in customizable:
            raise ValidationError(
                f"Product {data.product_id} is not a customizable item of this order",
                reason="product_not_in_order",
                order_id=order.id,
            )
        design_files.append(
            DesignFile(
                product_id=data.product_id,
                order_id=order.id,
                file_name=data.file_name,
                storage_key=data.storage_key,
                file_type=data.file_type or os.path.splitext(data.file_name)[1].lstrip(".").lower(),
                file_size=data.file_size,
                mime_type=data.mime_type,
                description=data.description or f"Custom design for order {order.order_number}",
                is_public=False,
                max_downloads=data.max_downloads,
                is_color_variant=data.color_variant_hex is not None,
                color_variant_hex=data.color_variant_hex,
            )
        )

    session.add_all(design_files)
    session.flush()

    grants = grant_access(session, order.id, [f.id for f in design_files], expires_at=expires_at)
    log_order_event(
        session,
        order_id=order.id,
        event_type="files_uploaded",
        label=f"{len(design_files)} custom file(s) uploaded",
        created_by=actor,
        meta={"files": [f.id for f in design_files]},
    )
    logger.info(f"[Order {order.order_number}] {len(design_files)} custom file(s) added")
    return grants
