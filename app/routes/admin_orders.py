# -------- ADMIN ORDERS --------
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from app.constants.order_status import OrderStatus, PaymentStatus
from app.database import get_session
from app.dependencies.auth import require_admin
from app.exceptions import NotFoundError, StateConflictError
from app.models.user import User
from app.notifications import NotificationKind, dispatch_notification
from app.schemas.orders_schemas import (
    AddOrderFilesRequest,
    AdminOrderRead,
    CancelOrderRequest,
    CustomMessageRequest,
    GrantFilesRequest,
    GrantRead,
    OrderHistoryRead,
    OrderStatusUpdate,
    OrderSummary,
)
from app.services.cancellation_service import cancel_order, refund_order
from app.services.entitlement_service import (
    DeliverableInput,
    add_order_files,
    grant_access,
    list_grants,
    revoke_access,
)
from app.services.notification_service import list_notifications
from app.services.order_event_service import log_order_event, order_timeline
from app.services.order_service import (
    complete_order,
    get_order,
    list_orders,
    set_order_status,
    update_fields,
)
from app.services.payment_gateway import PaymentGateway, get_payment_gateway
from app.utils.pagination import paginate

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
def admin_list_orders(
    page: int = 1,
    limit: int = 20,
    order_status: Optional[OrderStatus] = None,
    payment_status: Optional[PaymentStatus] = None,
    customer_id: Optional[int] = None,
    needs_reconciliation: Optional[bool] = None,
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
):
    query = list_orders(
        session,
        admin,
        order_status=order_status,
        payment_status=payment_status,
        customer_id=customer_id,
        needs_reconciliation=needs_reconciliation,
    )
    return paginate(
        session=session,
        query=query,
        page=page,
        limit=limit,
        serializer=OrderSummary.model_validate,
    )


@router.get("/{order_id}", response_model=AdminOrderRead)
def admin_order_detail(
    order_id: int,
    session: Session = Depends(get_session),
    _: User = Depends(require_admin),
):
    return get_order(session, order_id)


@router.get("/{order_id}/history", response_model=List[OrderHistoryRead])
def admin_order_history(
    order_id: int,
    session: Session = Depends(get_session),
    _: User = Depends(require_admin),
):
    order = get_order(session, order_id)
    return order_timeline(session, order.id)


@router.post("/{order_id}/complete", response_model=AdminOrderRead)
def admin_complete_order(
    order_id: int,
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
):
    order = get_order(session, order_id)
    complete_order(session, order, actor=f"admin:{admin.id}")
    session.commit()
    session.refresh(order)

    dispatch_notification(kind=NotificationKind.ORDER_COMPLETED, order=order, session=session)
    return order


@router.patch("/{order_id}/status", response_model=AdminOrderRead)
def admin_update_status(
    order_id: int,
    data: OrderStatusUpdate,
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
):
    order = get_order(session, order_id)
    return set_order_status(session, order, data.status, actor=admin, note=data.note)


@router.post("/{order_id}/cancel", response_model=AdminOrderRead)
def admin_cancel_order(
    order_id: int,
    data: Optional[CancelOrderRequest] = None,
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    order = get_order(session, order_id)
    return cancel_order(
        session, order, user=admin, gateway=gateway, reason=data.reason if data else None
    )


@router.post("/{order_id}/refund", response_model=AdminOrderRead)
def admin_refund_order(
    order_id: int,
    data: Optional[CancelOrderRequest] = None,
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    order = get_order(session, order_id)
    return refund_order(
        session, order, admin=admin, gateway=gateway, reason=data.reason if data else None
    )


@router.post("/{order_id}/reconciled", response_model=AdminOrderRead)
def admin_mark_reconciled(
    order_id: int,
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
):
    order = get_order(session, order_id)
    if not order.needs_reconciliation:
        raise StateConflictError("Order is not flagged for reconciliation", order_id=order.id)

    update_fields(session, order, needs_reconciliation=False)
    log_order_event(
        session,
        order_id=order.id,
        event_type="reconciled",
        label="Payment reconciled manually",
        created_by=f"admin:{admin.id}",
    )
    session.commit()
    session.refresh(order)
    return order


# -------- GRANTS --------

@router.get("/{order_id}/grants", response_model=List[GrantRead])
def admin_list_grants(
    order_id: int,
    session: Session = Depends(get_session),
    _: User = Depends(require_admin),
):
    order = get_order(session, order_id)
    return list_grants(session, order.id)


@router.post("/{order_id}/grants", response_model=List[GrantRead])
def admin_grant_files(
    order_id: int,
    data: GrantFilesRequest,
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
):
    """Release files for an order, e.g. finished customization work"""
    order = get_order(session, order_id)
    created = grant_access(session, order.id, data.design_file_ids, expires_at=data.expires_at)

    if created:
        log_order_event(
            session,
            order_id=order.id,
            event_type="files_granted",
            label=f"{len(created)} file(s) released",
            created_by=f"admin:{admin.id}",
            meta={"files": [g.design_file_id for g in created]},
        )
    session.commit()
    for grant in created:
        session.refresh(grant)
    return created


@router.post("/{order_id}/files", response_model=List[GrantRead], status_code=status.HTTP_201_CREATED)
def admin_add_order_files(
    order_id: int,
    data: AddOrderFilesRequest,
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
):
    """Attach finished custom deliverables (already uploaded to storage) to an order"""
    order = get_order(session, order_id)
    grants = add_order_files(
        session,
        order,
        [DeliverableInput(**f.model_dump()) for f in data.files],
        actor=f"admin:{admin.id}",
        expires_at=data.expires_at,
    )
    session.commit()
    for grant in grants:
        session.refresh(grant)
    return grants


@router.delete("/{order_id}/grants/{design_file_id}", response_model=GrantRead)
def admin_revoke_file(
    order_id: int,
    design_file_id: int,
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
):
    order = get_order(session, order_id)
    grant = revoke_access(session, order.id, design_file_id)
    if grant is None:
        raise NotFoundError("Grant not found", order_id=order.id)

    log_order_event(
        session,
        order_id=order.id,
        event_type="file_revoked",
        label=f"Access to file {design_file_id} revoked",
        created_by=f"admin:{admin.id}",
    )
    session.commit()
    session.refresh(grant)
    return grant


# -------- NOTIFICATIONS --------

@router.post("/{order_id}/notify")
def admin_send_message(
    order_id: int,
    data: CustomMessageRequest,
    session: Session = Depends(get_session),
    _: User = Depends(require_admin),
):
    order = get_order(session, order_id)
    records = dispatch_notification(
        kind=NotificationKind.CUSTOM_MESSAGE,
        order=order,
        session=session,
        extra={"subject": data.subject, "message": data.message},
    )
    return {
        "order_id": order.id,
        "delivered": any(r.status == "sent" for r in records),
        "notifications": [r.id for r in records],
    }


@router.get("/{order_id}/notifications")
def admin_order_notifications(
    order_id: int,
    session: Session = Depends(get_session),
    _: User = Depends(require_admin),
):
    order = get_order(session, order_id)
    return list_notifications(session, order.id)
