import os

os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["SQLALCHEMY_DATABASE_URL"] = "sqlite://"
os.environ["ENV"] = "test"
os.environ["BREVO_API_KEY"] = ""

from decimal import Decimal
from itertools import count

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

from app import models  # noqa: F401
from app.database import engine, get_session
from app.main import app
from app.models.design_file import DesignFile
from app.models.discount_code import DiscountCode
from app.models.product import Product
from app.models.user import User
from app.services.order_service import OrderItemInput, create_order
from app.services.payment_gateway import CaptureResult, PaymentIntent, RefundResult, get_payment_gateway
from app.services.r2_client import StoredObject, get_file_storage
from app.utils.token import create_access_token

_ids = count(1)


class FakeGateway:
    key_id = "rzp_test_key"

    def __init__(self):
        self.intents = []
        self.captures = []
        self.refunds = []
        self.decline = False
        self.refund_fails = False
        self.captured_amount = None

    def create_intent(self, *, amount, currency, receipt, notes):
        intent = PaymentIntent(intent_id=f"order_{len(self.intents) + 1}", amount=amount, currency=currency)
        self.intents.append(intent)
        return intent

    def confirm_capture(self, *, intent_id, payment_id, signature, amount, currency):
        self.captures.append(payment_id)
        if self.decline:
            return CaptureResult(success=False, error="card_declined")
        return CaptureResult(
            success=True,
            transaction_id=payment_id,
            payer_email="payer@example.com",
            amount=self.captured_amount if self.captured_amount is not None else amount,
        )

    def refund(self, *, transaction_id, amount):
        self.refunds.append((transaction_id, amount))
        if self.refund_fails:
            return RefundResult(success=False, error="provider down")
        return RefundResult(success=True, reference_id=f"rfnd_{len(self.refunds)}")


class FakeStorage:
    def __init__(self):
        self.opened = []

    def open(self, key):
        self.opened.append(key)
        data = f"contents of {key}".encode()
        return StoredObject(body=iter([data]), size=len(data), mime_type="application/zip")


@pytest.fixture
def session():
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def client(session, gateway, storage):
    def _get_session():
        try:
            yield session
        finally:
            session.rollback()

    app.dependency_overrides[get_session] = _get_session
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_file_storage] = lambda: storage
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(session):
    def _make(role="user", **kwargs):
        n = next(_ids)
        user = User(
            first_name=kwargs.pop("first_name", "Test"),
            last_name=kwargs.pop("last_name", f"User{n}"),
            username=f"user{n}",
            email=kwargs.pop("email", f"user{n}@example.com"),
            password="not-used",
            role=role,
            **kwargs,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make


@pytest.fixture
def customer(make_user):
    return make_user()


@pytest.fixture
def admin(make_user):
    return make_user(role="admin")


@pytest.fixture
def make_product(session):
    def _make(price="100.00", customization_enabled=False, **kwargs):
        n = next(_ids)
        product = Product(
            name=kwargs.pop("name", f"Poster {n}"),
            slug=f"poster-{n}",
            price=Decimal(price),
            customization_enabled=customization_enabled,
            **kwargs,
        )
        session.add(product)
        session.commit()
        session.refresh(product)
        return product

    return _make


@pytest.fixture
def make_design_file(session):
    def _make(product, **kwargs):
        n = next(_ids)
        design_file = DesignFile(
            product_id=product.id,
            file_name=kwargs.pop("file_name", f"design-{n}.zip"),
            storage_key=f"designs/{product.id}/design-{n}.zip",
            file_type="zip",
            file_size=1024,
            mime_type="application/zip",
            **kwargs,
        )
        session.add(design_file)
        session.commit()
        session.refresh(design_file)
        return design_file

    return _make


@pytest.fixture
def make_discount(session):
    def _make(code, discount_type="percentage", value="20", **kwargs):
        discount = DiscountCode(
            code=code.upper(),
            discount_type=discount_type,
            discount_value=Decimal(value),
            **kwargs,
        )
        session.add(discount)
        session.commit()
        session.refresh(discount)
        return discount

    return _make


@pytest.fixture
def place_order(session):
    def _place(customer, *products, discount_code=None, customizations=None, **kwargs):
        items = [
            OrderItemInput(product_id=p.id, customizations=customizations)
            for p in products
        ]
        order, _ = create_order(
            session,
            customer=customer,
            items=items,
            discount_code=discount_code,
            **kwargs,
        )
        return order

    return _place


@pytest.fixture
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(user.id, role=user.role)}"}

    return _headers
