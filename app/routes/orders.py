from typing import Optional

from fastapi import APIRouter, Depends, Response, status
from sqlmodel import Session

from app.constants.order_status import OrderStatus
from app.database import get_session
from app.models.user import User
from app.schemas.orders_schemas import (
    CancelOrderRequest,
    FreeOrderResponse,
    OrderCreate,
    OrderRead,
    OrderSummary,
)
from app.services.cancellation_service import cancel_order
from app.services.free_order_service import complete_free_order
from app.services.order_service import (
    OrderItemInput,
    create_order,
    get_order_by_number,
    get_order_for_user,
    list_orders,
)
from app.services.payment_gateway import PaymentGateway, get_payment_gateway
from app.utils.pagination import paginate
from app.dependencies.auth import get_current_user

router = APIRouter()


@router.post("", response_model=OrderRead, status_code=status.HTTP_201_CREATED)
def place_order(
    data: OrderCreate,
    response: Response,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    order, created = create_order(
        session,
        customer=current_user,
        items=[
            OrderItemInput(
                product_id=item.product_id,
                quantity=item.quantity,
                customizations=item.customizations.model_dump() if item.customizations else None,
            )
            for item in data.items
        ],
        discount_code=data.discount_code,
        customer_notes=data.customer_notes,
        idempotency_key=data.idempotency_key,
    )

    if not created:
        response.status_code = status.HTTP_200_OK
    return order


@router.get("")
def my_orders(
    page: int = 1,
    limit: int = 10,
    order_status: Optional[OrderStatus] = None,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return paginate(
        session=session,
        query=list_orders(session, current_user, order_status=order_status),
        page=page,
        limit=limit,
        serializer=OrderSummary.model_validate,
    )


@router.get("/number/{order_number}", response_model=OrderRead)
def order_by_number(
    order_number: str,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return get_order_by_number(session, order_number, current_user)


@router.get("/{order_id}", response_model=OrderRead)
def order_detail(
    order_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return get_order_for_user(session, order_id, current_user)


@router.post("/{order_id}/cancel", response_model=OrderRead)
def cancel_my_order(
    order_id: int,
    data: Optional[CancelOrderRequest] = None,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    order = get_order_for_user(session, order_id, current_user)
    return cancel_order(
        session,
        order,
        user=current_user,
        gateway=gateway,
        reason=data.reason if data else None,
    )


@router.post("/{order_id}/complete-free", response_model=FreeOrderResponse)
def complete_free(
    order_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    order = get_order_for_user(session, order_id, current_user)
    result = complete_free_order(session, order, user=current_user)

    return {
        "route": result.route.value,
        "already_processed": result.already_processed,
        "order": result.order,
    }
