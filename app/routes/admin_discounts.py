from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.database import get_session
from app.dependencies.auth import require_admin
from app.models.user import User
from app.schemas.discount_schemas import DiscountStatsResponse
from app.services.discount_service import code_stats

router = APIRouter()


@router.get("/{code}/stats", response_model=DiscountStatsResponse)
def discount_code_stats(
    code: str,
    session: Session = Depends(get_session),
    _: User = Depends(require_admin),
):
    return code_stats(session, code)
