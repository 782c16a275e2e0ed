"""
Discount code ledger: eligibility checks, redemption and release.

Validation never consumes a code. A redemption is written only when an
order reaches ``paid`` or ``free``, inside the caller's transaction.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import func, or_, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.exceptions import (
    ExpiredError,
    NotFoundError,
    QuotaExceededError,
    ValidationError,
)
from app.models.discount_code import DiscountCode
from app.models.discount_usage import DiscountUsage
from app.services.pricing import ZERO, calculate_discount, to_money
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CartLine:
    product_id: int
    subtotal: Decimal


@dataclass(frozen=True)
class DiscountQuote:
    code: str
    discount_type: str
    value: Decimal
    cap: Optional[Decimal]
    discount_amount: Decimal
    applicable_amount: Decimal
    eligible_product_ids: Tuple[int, ...] = field(default_factory=tuple)
    apply_to_all_products: bool = True

    def is_eligible(self, product_id: int) -> bool:
        return self.apply_to_all_products or product_id in self.eligible_product_ids


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def get_discount_code(session: Session, code: str) -> Optional[DiscountCode]:
    return session.exec(
        select(DiscountCode).where(DiscountCode.code == normalize_code(code))
    ).first()


def customer_usage_count(session: Session, discount_code_id: int, customer_id: int) -> int:
    return session.exec(
        select(func.count())
        .select_from(DiscountUsage)
        .where(DiscountUsage.discount_code_id == discount_code_id)
        .where(DiscountUsage.customer_id == customer_id)
        .where(DiscountUsage.is_active == True)  # noqa: E712
    ).one()


def _check_limits(session: Session, discount: DiscountCode, customer_id: int) -> int:
    if discount.usage_limit is not None and discount.usage_count >= discount.usage_limit:
        raise QuotaExceededError(
            f"Discount code {discount.code} has reached its usage limit",
            reason="usage_limit_reached",
        )

    used = customer_usage_count(session, discount.id, customer_id)
    if discount.user_usage_limit is not None and used >= discount.user_usage_limit:
        raise QuotaExceededError(
            f"You have already used this code. Limit is {discount.user_usage_limit} per customer",
            reason="already_used",
        )
    return used


def validate_discount(
    session: Session,
    *,
    code: str,
    customer_id: int,
    cart_value,
    lines: Optional[Sequence[CartLine]] = None,
    now: Optional[datetime] = None,
) -> DiscountQuote:
    """
    Check ``code`` for ``customer_id`` against a cart worth ``cart_value``.

    Checks run in a fixed order and the first failure wins: exists and
    active, not started, expired, global limit, per-customer limit,
    minimum amount, and (when cart lines are given) product eligibility.
    """
    now = now or utcnow()
    cart_value = to_money(cart_value)
    if cart_value < ZERO:
        raise ValidationError("Cart value cannot be negative")

    discount = get_discount_code(session, code)
    if discount is None or not discount.is_active:
        raise NotFoundError("Discount code is invalid or inactive", reason="invalid_code")

    if discount.starts_at and discount.starts_at > now:
        raise ValidationError("Discount code is not active yet", reason="not_started")

    if discount.ends_at and discount.ends_at < now:
        raise ExpiredError("Discount code has expired", reason="expired")

    _check_limits(session, discount, customer_id)

    if discount.minimum_order_amount is not None and cart_value < discount.minimum_order_amount:
        raise ValidationError(
            f"Minimum order amount for this code is {to_money(discount.minimum_order_amount)}",
            reason="minimum_not_met",
        )

    applicable = cart_value
    if lines and not discount.apply_to_all_products:
        eligible = [line for line in lines if discount.applies_to(line.product_id)]
        if not eligible:
            raise ValidationError(
                "This code does not apply to the products in your cart",
                reason="not_applicable",
            )
        applicable = min(cart_value, sum((to_money(line.subtotal) for line in eligible), ZERO))

    return DiscountQuote(
        code=discount.code,
        discount_type=discount.discount_type,
        value=discount.discount_value,
        cap=discount.max_discount_amount,
        discount_amount=calculate_discount(discount.rule, applicable),
        applicable_amount=applicable,
        eligible_product_ids=tuple(discount.product_ids or ()),
        apply_to_all_products=discount.apply_to_all_products,
    )


def ensure_redeemable(session: Session, *, code: str, customer_id: int) -> None:
    """Re-check the usage limits before money is taken for an order."""
    discount = get_discount_code(session, code)
    if discount is not None:
        _check_limits(session, discount, customer_id)


def redeem_discount(session: Session, order) -> Optional[DiscountUsage]:
    """
    Record the order's discount redemption and bump the global counter.

    Idempotent per order. Does not commit: the caller commits it together
    with the payment or free-order transition.
    """
    if not order.discount_code:
        return None

    existing = session.exec(
        select(DiscountUsage).where(DiscountUsage.order_id == order.id)
    ).first()
    if existing:
        return existing

    discount = get_discount_code(session, order.discount_code)
    if discount is None:
        logger.warning(
            f"[Order {order.order_number}] discount code {order.discount_code} no longer exists"
        )
        return None

    slot = None
    if discount.user_usage_limit is not None:
        taken = set(
            session.exec(
                select(DiscountUsage.customer_slot)
                .where(DiscountUsage.discount_code_id == discount.id)
                .where(DiscountUsage.customer_id == order.customer_id)
                .where(DiscountUsage.is_active == True)  # noqa: E712
            ).all()
        )
        free_slots = [s for s in range(1, discount.user_usage_limit + 1) if s not in taken]
        if not free_slots:
            raise QuotaExceededError(
                "You have already used this code",
                reason="already_used",
                order_id=order.id,
            )
        slot = free_slots[0]

    usage = DiscountUsage(
        discount_code_id=discount.id,
        code=discount.code,
        customer_id=order.customer_id,
        order_id=order.id,
        order_number=order.order_number,
        discount_amount=order.total_discount,
        order_total=order.subtotal,
        customer_slot=slot,
    )

    try:
        with session.begin_nested():
            result = session.execute(
                update(DiscountCode)
                .where(DiscountCode.id == discount.id)
                .where(
                    or_(
                        DiscountCode.usage_limit.is_(None),
                        DiscountCode.usage_count < DiscountCode.usage_limit,
                    )
                )
                .values(usage_count=DiscountCode.usage_count + 1, updated_at=utcnow())
            )
            if result.rowcount != 1:
                raise QuotaExceededError(
                    f"Discount code {discount.code} has reached its usage limit",
                    reason="usage_limit_reached",
                    order_id=order.id,
                )
            session.add(usage)
            session.flush()
    except IntegrityError:
        raise QuotaExceededError(
            "You have already used this code",
            reason="already_used",
            order_id=order.id,
        )

    session.refresh(discount)
    logger.info(f"[Order {order.order_number}] redeemed discount code {discount.code}")
    return usage


def release_discount(session: Session, order_id: int) -> int:
    """Deactivate the order's redemption so the customer may use the code again."""
    result = session.execute(
        update(DiscountUsage)
        .where(DiscountUsage.order_id == order_id)
        .where(DiscountUsage.is_active == True)  # noqa: E712
        .values(is_active=False, customer_slot=None)
    )
    return result.rowcount


def code_stats(session: Session, code: str) -> dict:
    discount = get_discount_code(session, code)
    if discount is None:
        raise NotFoundError("Discount code not found", reason="invalid_code")

    active_usages: List[DiscountUsage] = session.exec(
        select(DiscountUsage)
        .where(DiscountUsage.discount_code_id == discount.id)
        .where(DiscountUsage.is_active == True)  # noqa: E712
    ).all()

    usage_percentage = None
    if discount.usage_limit:
        usage_percentage = round(discount.usage_count / discount.usage_limit * 100)

    return {
        "code": discount.code,
        "usage_count": discount.usage_count,
        "usage_limit": discount.usage_limit,
        "usage_percentage": usage_percentage,
        "active_redemptions": len(active_usages),
        "unique_customers": len({u.customer_id for u in active_usages}),
        "total_discount_given": sum((u.discount_amount for u in active_usages), ZERO),
    }
