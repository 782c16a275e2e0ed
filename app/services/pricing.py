"""
Money and discount arithmetic.

Pure functions only: no session, no models. Validation, order creation
and every recalculation path share these so that the discount shown at
checkout is the discount persisted on the order.

All amounts are ``Decimal`` rounded to the cent, half away from zero.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional, Sequence


CENT = Decimal("0.01")
ZERO = Decimal("0.00")

PERCENTAGE = "percentage"
FIXED_AMOUNT = "fixed_amount"


def to_money(value) -> Decimal:
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class DiscountRule:
    discount_type: str
    value: Decimal
    max_discount: Optional[Decimal] = None


def calculate_discount(rule: DiscountRule, cart_value) -> Decimal:
    """
    Discount for a cart worth ``cart_value``.

    Fixed amounts never exceed the cart. Percentages are capped first by
    ``max_discount`` and then by the cart value.
    """
    cart_value = to_money(cart_value)
    if cart_value <= ZERO:
        return ZERO

    if rule.discount_type == FIXED_AMOUNT:
        return min(to_money(rule.value), cart_value)

    if rule.discount_type != PERCENTAGE:
        raise ValueError(f"Unknown discount type: {rule.discount_type}")

    amount = to_money(cart_value * Decimal(rule.value) / Decimal(100))
    if rule.max_discount is not None:
        amount = min(amount, to_money(rule.max_discount))
    return min(amount, cart_value)


def distribute_discount(line_subtotals: Sequence[Decimal], total_discount) -> List[Decimal]:
    """
    Split ``total_discount`` across lines in proportion to their subtotals.

    Every share but the last is rounded on its own and the last line takes
    the rounding remainder. No share goes below zero or above its line
    subtotal: whatever a line cannot hold is moved onto earlier lines with
    room, so the shares always add up to the total.
    """
    total_discount = to_money(total_discount)
    if not line_subtotals:
        return []

    caps = [to_money(s) for s in line_subtotals]
    cart_subtotal = sum(caps, ZERO)
    if cart_subtotal <= ZERO or total_discount <= ZERO:
        return [ZERO for _ in line_subtotals]
    total_discount = min(total_discount, cart_subtotal)

    shares = [to_money(cap / cart_subtotal * total_discount) for cap in caps[:-1]]
    shares.append(total_discount - sum(shares, ZERO))

    leftover = ZERO
    for i, cap in enumerate(caps):
        bounded = min(max(shares[i], ZERO), cap)
        leftover += shares[i] - bounded
        shares[i] = bounded

    for i in reversed(range(len(shares))):
        if leftover == ZERO:
            break
        if leftover > ZERO:
            moved = min(caps[i] - shares[i], leftover)
        else:
            moved = -min(shares[i], -leftover)
        shares[i] += moved
        leftover -= moved
    return shares


@dataclass(frozen=True)
class LineInput:
    unit_price: Decimal
    quantity: int
    eligible: bool = True

    @property
    def subtotal(self) -> Decimal:
        return to_money(to_money(self.unit_price) * self.quantity)


@dataclass(frozen=True)
class PricedLine:
    original_price: Decimal
    quantity: int
    discount_amount: Decimal  # per unit, display only
    unit_price: Decimal
    line_total: Decimal
    promo_discount: Decimal  # attributed to the whole line

    @property
    def subtotal(self) -> Decimal:
        return to_money(self.original_price * self.quantity)


def eligible_subtotal(lines: Iterable[LineInput]) -> Decimal:
    return sum((line.subtotal for line in lines if line.eligible), ZERO)


def price_lines(lines: Sequence[LineInput], total_discount=ZERO) -> List[PricedLine]:
    """Price every line, spreading ``total_discount`` over the eligible ones."""
    eligible_idx = [i for i, line in enumerate(lines) if line.eligible]
    shares = distribute_discount([lines[i].subtotal for i in eligible_idx], total_discount)
    share_by_idx = dict(zip(eligible_idx, shares))

    priced = []
    for i, line in enumerate(lines):
        share = share_by_idx.get(i, ZERO)
        line_total = line.subtotal - share
        priced.append(
            PricedLine(
                original_price=to_money(line.unit_price),
                quantity=line.quantity,
                discount_amount=to_money(share / line.quantity),
                unit_price=to_money(line_total / line.quantity),
                line_total=line_total,
                promo_discount=share,
            )
        )
    return priced


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    total_discount: Decimal
    final_total: Decimal

    @classmethod
    def from_items(cls, items) -> "OrderTotals":
        """
        Totals derived from order items (anything with ``original_price``,
        ``quantity`` and ``promo_discount``).

        ``subtotal - total_discount == final_total`` always holds; a discount
        larger than the subtotal is clamped so the total never goes negative.
        """
        subtotal = sum(
            (to_money(to_money(item.original_price) * item.quantity) for item in items), ZERO
        )
        discount = sum((to_money(item.promo_discount or ZERO) for item in items), ZERO)
        discount = min(discount, subtotal)
        return cls(subtotal=subtotal, total_discount=discount, final_total=subtotal - discount)
