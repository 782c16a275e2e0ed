import pytest

from app.constants.order_status import OrderStatus, PaymentStatus
from app.exceptions import AccessDeniedError, ValidationError
from app.models.discount_code import DiscountCode
from app.services.entitlement_service import list_grants
from app.services.free_order_service import FreeOrderRoute, complete_free_order, decide_route
from app.services.notification_service import list_notifications


@pytest.fixture
def free_code(make_discount):
    return make_discount("FREEBIE", value="100")


def test_non_customizable_free_order_completes(session, customer, make_product, make_design_file, free_code, place_order):
    product = make_product("15.00")
    design_file = make_design_file(product)
    order = place_order(customer, product, discount_code="FREEBIE")
    assert order.is_free

    result = complete_free_order(session, order, user=customer)

    assert result.route == FreeOrderRoute.AUTO_COMPLETE
    assert order.order_status == OrderStatus.completed
    assert order.payment_status == PaymentStatus.free
    assert [g.design_file_id for g in list_grants(session, order.id)] == [design_file.id]
    assert order.download_links
    session.refresh(free_code)
    assert free_code.usage_count == 1


def test_completing_twice_keeps_same_grants(session, customer, make_product, make_design_file, free_code, place_order):
    product = make_product("15.00")
    make_design_file(product)
    make_design_file(product)
    order = place_order(customer, product, discount_code="FREEBIE")

    complete_free_order(session, order, user=customer)
    grants = [g.id for g in list_grants(session, order.id)]
    again = complete_free_order(session, order, user=customer)

    assert again.already_processed is True
    assert again.route == FreeOrderRoute.AUTO_COMPLETE
    assert [g.id for g in list_grants(session, order.id)] == grants
    assert len(grants) == 2
    assert session.get(DiscountCode, free_code.id).usage_count == 1


def test_customization_data_routes_to_review(session, customer, make_product, make_design_file, free_code, place_order):
    product = make_product("15.00", customization_enabled=True)
    make_design_file(product)
    order = place_order(
        customer,
        product,
        discount_code="FREEBIE",
        customizations={
            "colors": [{"name": "Navy", "hex": "#001F3F"}],
            "customization_notes": "Use our brand font",
        },
    )

    result = complete_free_order(session, order, user=customer)

    assert result.route == FreeOrderRoute.NEEDS_REVIEW
    assert order.order_status == OrderStatus.pending
    assert order.payment_status == PaymentStatus.free
    assert order.customization_needed is True
    assert list_grants(session, order.id) == []
    kinds = [n.trigger_source for n in list_notifications(session, order.id)]
    assert "free_order_needs_review" in kinds


def test_color_pick_alone_still_needs_review(customer, make_product, free_code, place_order):
    product = make_product("15.00", customization_enabled=True)
    order = place_order(
        customer, product, discount_code="FREEBIE", customizations={"colors": [{"hex": "#FFFFFF"}]}
    )

    assert decide_route(order) == FreeOrderRoute.NEEDS_REVIEW


def test_customizable_without_data_grants_and_waits(session, customer, make_product, make_design_file, free_code, place_order):
    product = make_product("15.00", customization_enabled=True)
    general = make_design_file(product)
    make_design_file(product, is_color_variant=True, color_variant_hex="#FF0000")
    order = place_order(customer, product, discount_code="FREEBIE")

    result = complete_free_order(session, order, user=customer)

    assert result.route == FreeOrderRoute.MISSING_CUSTOMIZATION
    assert order.order_status == OrderStatus.processing
    assert order.customization_needed is True
    assert [g.design_file_id for g in list_grants(session, order.id)] == [general.id]
    kinds = [n.trigger_source for n in list_notifications(session, order.id)]
    assert "free_order_missing_customization" in kinds


def test_paid_order_is_not_free(session, customer, make_product, place_order):
    order = place_order(customer, make_product("15.00"))

    with pytest.raises(ValidationError) as exc:
        complete_free_order(session, order, user=customer)
    assert exc.value.reason == "not_free"


def test_only_owner_or_admin(session, make_user, admin, make_product, make_design_file, free_code, place_order):
    product = make_product("15.00")
    make_design_file(product)
    order = place_order(make_user(), product, discount_code="FREEBIE")

    with pytest.raises(AccessDeniedError):
        complete_free_order(session, order, user=make_user())

    result = complete_free_order(session, order, user=admin)
    assert result.route == FreeOrderRoute.AUTO_COMPLETE
