from datetime import timedelta

import pytest
from sqlalchemy import update

from app.exceptions import AccessDeniedError, ExpiredError, NotFoundError, QuotaExceededError
from app.models.order_design_file import OrderDesignFile
from app.services.download_service import authorize_download
from app.services.entitlement_service import get_grant, grant_access, revoke_access
from app.services.free_order_service import complete_free_order
from app.utils.clock import utcnow


@pytest.fixture
def purchased(session, customer, make_product, make_design_file, make_discount, place_order):
    """A completed free order holding one grant for a file with three downloads."""
    make_discount("FREEBIE", value="100")
    product = make_product("12.00")
    design_file = make_design_file(product, max_downloads=3)
    order = place_order(customer, product, discount_code="FREEBIE")
    complete_free_order(session, order, user=customer)
    return order, design_file


def test_download_counts_against_quota(session, customer, purchased):
    order, design_file = purchased

    remaining = [
        authorize_download(session, user=customer, design_file_id=design_file.id).remaining
        for _ in range(3)
    ]

    assert remaining == [2, 1, 0]
    grant = get_grant(session, order.id, design_file.id)
    assert grant.download_count == 3
    assert grant.first_downloaded_at is not None

    with pytest.raises(QuotaExceededError) as exc:
        authorize_download(session, user=customer, design_file_id=design_file.id)
    assert exc.value.reason == "quota_exhausted"

    session.refresh(grant)
    assert grant.download_count == 3


def test_file_without_grant_is_denied(session, customer, make_product, make_design_file, purchased):
    other_file = make_design_file(make_product())

    with pytest.raises(AccessDeniedError) as exc:
        authorize_download(session, user=customer, design_file_id=other_file.id)
    assert exc.value.reason == "access_denied"

    # Unknown ids look the same as files the customer does not own
    with pytest.raises(AccessDeniedError):
        authorize_download(session, user=customer, design_file_id=9999)


def test_other_customer_is_denied(session, make_user, purchased):
    _, design_file = purchased

    with pytest.raises(AccessDeniedError):
        authorize_download(session, user=make_user(), design_file_id=design_file.id)


def test_unpaid_order_grant_is_denied(session, customer, make_product, make_design_file, place_order):
    product = make_product()
    design_file = make_design_file(product)
    order = place_order(customer, product)
    grant_access(session, order.id, [design_file.id])
    session.commit()

    with pytest.raises(AccessDeniedError):
        authorize_download(session, user=customer, design_file_id=design_file.id)


def test_revoked_grant_is_denied(session, customer, purchased):
    order, design_file = purchased
    revoke_access(session, order.id, design_file.id)
    session.commit()

    with pytest.raises(AccessDeniedError):
        authorize_download(session, user=customer, design_file_id=design_file.id)


def test_expired_download_window(session, customer, purchased):
    order, design_file = purchased

    with pytest.raises(ExpiredError) as exc:
        authorize_download(
            session,
            user=customer,
            design_file_id=design_file.id,
            now=order.download_expiry + timedelta(minutes=1),
        )
    assert exc.value.reason == "access_expired"


def test_expired_file(session, customer, purchased):
    _, design_file = purchased
    design_file.expires_at = utcnow() - timedelta(days=1)
    session.add(design_file)
    session.commit()

    with pytest.raises(ExpiredError):
        authorize_download(session, user=customer, design_file_id=design_file.id)


def test_admin_bypasses_ownership_and_quota(session, admin, purchased):
    order, design_file = purchased

    for _ in range(5):
        ticket = authorize_download(session, user=admin, design_file_id=design_file.id)
        assert ticket.grant is None

    assert get_grant(session, order.id, design_file.id).download_count == 0

    with pytest.raises(NotFoundError):
        authorize_download(session, user=admin, design_file_id=9999)


def test_racing_download_at_the_limit_is_refused(session, customer, purchased):
    order, design_file = purchased
    grant = get_grant(session, order.id, design_file.id)
    assert grant.download_count == 0

    # Other requests use up the quota after this session read the grant
    session.expire_on_commit = False
    session.execute(
        update(OrderDesignFile)
        .where(OrderDesignFile.id == grant.id)
        .values(download_count=3)
        .execution_options(synchronize_session=False)
    )
    session.commit()
    session.expire_on_commit = True
    assert grant.download_count == 0

    with pytest.raises(QuotaExceededError) as exc:
        authorize_download(session, user=customer, design_file_id=design_file.id)
    assert exc.value.reason == "quota_exhausted"

    session.refresh(grant)
    assert grant.download_count == 3
