from decimal import Decimal

import pytest

from app.services.pricing import (
    DiscountRule,
    LineInput,
    OrderTotals,
    calculate_discount,
    distribute_discount,
    price_lines,
    to_money,
)


def D(value):
    return Decimal(value)


def test_percentage_discount():
    rule = DiscountRule("percentage", D("20"))
    assert calculate_discount(rule, D("100.00")) == D("20.00")


def test_percentage_discount_respects_cap():
    rule = DiscountRule("percentage", D("50"), max_discount=D("15.00"))
    assert calculate_discount(rule, D("100.00")) == D("15.00")


def test_fixed_discount_never_exceeds_cart():
    rule = DiscountRule("fixed_amount", D("10.00"))
    assert calculate_discount(rule, D("6.50")) == D("6.50")
    assert calculate_discount(rule, D("25.00")) == D("10.00")


def test_empty_cart_gets_no_discount():
    assert calculate_discount(DiscountRule("fixed_amount", D("10")), D("0")) == D("0.00")


def test_unknown_discount_type_is_rejected():
    with pytest.raises(ValueError):
        calculate_discount(DiscountRule("bogo", D("1")), D("10"))


def test_rounding_is_half_up():
    assert to_money(D("0.125")) == D("0.13")
    rule = DiscountRule("percentage", D("15"))
    # 15% of 0.10 is 0.015
    assert calculate_discount(rule, D("0.10")) == D("0.02")


def test_distribution_adds_up_to_total():
    shares = distribute_discount([D("10.00"), D("10.00"), D("10.00")], D("10.00"))
    assert shares == [D("3.33"), D("3.33"), D("3.34")]
    assert sum(shares) == D("10.00")


def test_distribution_is_proportional():
    shares = distribute_discount([D("75.00"), D("25.00")], D("20.00"))
    assert shares == [D("15.00"), D("5.00")]


def test_price_lines_skips_ineligible_lines():
    lines = [
        LineInput(unit_price=D("40.00"), quantity=1, eligible=True),
        LineInput(unit_price=D("60.00"), quantity=1, eligible=False),
    ]
    priced = price_lines(lines, D("10.00"))

    assert priced[0].promo_discount == D("10.00")
    assert priced[0].line_total == D("30.00")
    assert priced[1].promo_discount == D("0.00")
    assert priced[1].line_total == D("60.00")


def test_price_lines_per_unit_values():
    priced = price_lines([LineInput(unit_price=D("25.00"), quantity=2)], D("10.00"))[0]

    assert priced.discount_amount == D("5.00")
    assert priced.unit_price == D("20.00")
    assert priced.line_total == D("40.00")


def test_totals_identity_holds():
    priced = price_lines(
        [LineInput(D("19.99"), 3), LineInput(D("5.01"), 1)], D("7.77")
    )
    totals = OrderTotals.from_items(priced)

    assert totals.subtotal == D("64.98")
    assert totals.total_discount == D("7.77")
    assert totals.subtotal - totals.total_discount == totals.final_total


def test_small_last_line_cannot_go_negative():
    shares = distribute_discount([D("1.00"), D("1.00"), D("1.00"), D("0.01")], D("2.00"))

    assert shares == [D("0.66"), D("0.66"), D("0.67"), D("0.01")]
    assert sum(shares) == D("2.00")


def test_negative_remainder_is_taken_from_earlier_lines():
    # A quarter of 0.02 rounds up to 0.01 on each of the first three lines
    shares = distribute_discount([D("1.00")] * 4, D("0.02"))

    assert shares == [D("0.01"), D("0.01"), D("0.00"), D("0.00")]
    assert sum(shares) == D("0.02")


def test_priced_lines_never_go_below_zero():
    lines = [LineInput(D("1.00"), 1), LineInput(D("1.00"), 1), LineInput(D("1.00"), 1), LineInput(D("0.01"), 1)]
    priced = price_lines(lines, D("2.00"))

    for line in priced:
        assert D("0.00") <= line.promo_discount <= line.subtotal
        assert line.line_total >= D("0.00")
        assert line.unit_price >= D("0.00")
    assert sum(line.line_total for line in priced) == D("1.01")
