from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.database import get_session
from app.models.user import User
from app.schemas.discount_schemas import DiscountValidateRequest, DiscountValidateResponse
from app.services.discount_service import CartLine, validate_discount
from app.dependencies.auth import get_current_user

router = APIRouter()


@router.post("/validate", response_model=DiscountValidateResponse)
def validate_code(
    data: DiscountValidateRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """Preview a code against the cart. Does not use it up."""
    quote = validate_discount(
        session,
        code=data.code,
        customer_id=current_user.id,
        cart_value=data.cart_value,
        lines=[CartLine(product_id=line.product_id, subtotal=line.subtotal) for line in data.items],
    )

    return {
        "code": quote.code,
        "discount_type": quote.discount_type,
        "value": quote.value,
        "cap": quote.cap,
        "discount_amount": quote.discount_amount,
        "final_total": data.cart_value - quote.discount_amount,
    }
