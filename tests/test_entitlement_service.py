import pytest

from app.constants.order_status import OrderStatus
from app.exceptions import StateConflictError, ValidationError
from app.models.design_file import DesignFile
from app.services.entitlement_service import (
    DeliverableInput,
    add_order_files,
    fulfill_items,
    grant_access,
    list_grants,
    resolve_design_files,
    revoke_access,
)


def test_grant_is_unique_per_order_and_file(session, customer, make_product, make_design_file, place_order):
    product = make_product()
    design_file = make_design_file(product)
    order = place_order(customer, product)

    created = grant_access(session, order.id, [design_file.id, design_file.id])
    again = grant_access(session, order.id, [design_file.id])
    session.commit()

    assert len(created) == 1
    assert again == []
    assert len(list_grants(session, order.id)) == 1


def test_color_variants_follow_selected_colors(session, customer, make_product, make_design_file, place_order):
    product = make_product(customization_enabled=True)
    general = make_design_file(product)
    red = make_design_file(product, is_color_variant=True, color_variant_hex="#ff0000")
    make_design_file(product, is_color_variant=True, color_variant_hex="#0000ff")
    make_design_file(product, is_active=False)

    order = place_order(customer, product, customizations={"colors": [{"name": "Red", "hex": "#FF0000"}]})

    files = resolve_design_files(session, order.items[0])
    assert [f.id for f in files] == [general.id, red.id]


def test_fulfill_skips_items_needing_work(session, customer, make_product, make_design_file, place_order):
    plain = make_product()
    custom = make_product(customization_enabled=True)
    plain_file = make_design_file(plain)
    make_design_file(custom)

    order = place_order(customer, plain)
    grants, waiting = fulfill_items(session, order)
    assert [g.design_file_id for g in grants] == [plain_file.id]
    assert waiting is False

    custom_order = place_order(customer, custom, customizations={"uploaded_logo": "uploads/logo.png"})
    grants, waiting = fulfill_items(session, custom_order)
    assert grants == []
    assert waiting is True


def test_revoke_deactivates_grant(session, customer, make_product, make_design_file, place_order):
    product = make_product()
    design_file = make_design_file(product)
    order = place_order(customer, product)
    grant_access(session, order.id, [design_file.id])
    session.commit()

    grant = revoke_access(session, order.id, design_file.id)
    session.commit()

    assert grant.is_active is False
    assert revoke_access(session, order.id, 12345) is None


def _deliverable(product, name="final.zip"):
    return DeliverableInput(
        product_id=product.id,
        file_name=name,
        storage_key=f"orders/custom/{name}",
        file_size=2048,
        mime_type="application/zip",
    )


def test_custom_deliverables_belong_to_one_order(session, make_user, admin, make_product, place_order):
    product = make_product(customization_enabled=True)
    order = place_order(make_user(), product, customizations={"customization_notes": "add our logo"})
    other = place_order(make_user(), product, customizations={"customization_notes": "add our name"})

    grants = add_order_files(session, order, [_deliverable(product)], actor=f"admin:{admin.id}")
    session.commit()

    assert len(grants) == 1
    design_file = session.get(DesignFile, grants[0].design_file_id)
    assert design_file.order_id == order.id
    assert design_file.file_type == "zip"
    assert design_file.is_public is False
    assert order.order_number in design_file.description

    # Another buyer of the same product never resolves this file
    assert resolve_design_files(session, other.items[0]) == []
    assert list_grants(session, other.id) == []


def test_custom_deliverables_need_a_customizable_item(session, customer, admin, make_product, place_order):
    plain = make_product()
    custom = make_product(customization_enabled=True)
    plain_order = place_order(customer, plain)
    custom_order = place_order(customer, custom)

    with pytest.raises(ValidationError) as exc:
        add_order_files(session, plain_order, [_deliverable(plain)], actor="admin:1")
    assert exc.value.reason == "not_customizable"

    with pytest.raises(ValidationError) as exc:
        add_order_files(session, custom_order, [_deliverable(plain)], actor="admin:1")
    assert exc.value.reason == "product_not_in_order"


def test_custom_deliverables_refused_for_closed_orders(session, customer, make_product, place_order):
    product = make_product(customization_enabled=True)
    order = place_order(customer, product)
    order.order_status = OrderStatus.cancelled

    with pytest.raises(StateConflictError) as exc:
        add_order_files(session, order, [_deliverable(product)], actor="admin:1")
    assert exc.value.reason == "not_deliverable"
