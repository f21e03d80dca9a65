# tests/conftest.py
"""
Shared fixtures: a throwaway SQLite database, the Flask test client, session login
helpers and a stub Barion gateway.
"""

import os
import tempfile

import pytest

_DB_DIR = tempfile.mkdtemp(prefix="storefront-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["STRUCTURED_LOGS_ENABLED"] = "false"
os.environ["SUPER_ADMIN_TOKEN"] = "test-super-admin-token"
os.environ["BARION_POSKEY"] = ""
os.environ["STRIPE_SECRET_KEY"] = ""
os.environ["STRIPE_WEBHOOK_SECRET"] = ""

from werkzeug.security import generate_password_hash  # noqa: E402

from storefront.database import Base, SessionLocal, engine  # noqa: E402
from storefront.main import app as flask_app  # noqa: E402
from storefront.models import Product, User  # noqa: E402
from storefront.observability import reset_metrics  # noqa: E402


class StubBarionClient:
    """Records payment starts and answers state queries with a fixed status."""

    def __init__(self, status="Succeeded", payment_id="barion-pay-1"):
        self.status = status
        self.payment_id = payment_id
        self.started = []
        self.state_queries = []

    def start_payment(self, payment_request_id, items, delivery_fee, total, redirect_url, callback_url):
        self.started.append(
            {
                "payment_request_id": payment_request_id,
                "items": list(items),
                "delivery_fee": delivery_fee,
                "total": total,
                "redirect_url": redirect_url,
                "callback_url": callback_url,
            }
        )
        return {
            "PaymentId": self.payment_id,
            "Status": "Prepared",
            "GatewayUrl": f"https://secure.test.barion.com/Pay?Id={self.payment_id}",
            "QRUrl": f"https://api.test.barion.com/qr/generate?paymentId={self.payment_id}",
        }

    def get_payment_state(self, payment_id):
        self.state_queries.append(payment_id)
        return {"PaymentId": payment_id, "Status": self.status}


@pytest.fixture(autouse=True)
def fresh_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    reset_metrics()
    flask_app.config.update(
        TESTING=True,
        BARION_CLIENT=None,
        STRIPE_SECRET_KEY="",
        STRIPE_WEBHOOK_SECRET="",
    )
    yield


@pytest.fixture
def app():
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user():
    def _make_user(email="customer@example.com", role="customer", password="customer123"):
        session = SessionLocal()
        try:
            user = User(email=email, passwordHash=generate_password_hash(password), role=role)
            session.add(user)
            session.commit()
            return user.userID
        finally:
            session.close()

    return _make_user


@pytest.fixture
def login():
    def _login(client, user_id):
        with client.session_transaction() as sess:
            sess["user_id"] = user_id

    return _login


@pytest.fixture
def customer_id(make_user):
    return make_user()


@pytest.fixture
def admin_id(make_user):
    return make_user(email="admin@webshop.com", role="admin", password="admin123")


@pytest.fixture
def customer_client(client, login, customer_id):
    login(client, customer_id)
    return client


@pytest.fixture
def admin_client(client, login, admin_id):
    login(client, admin_id)
    return client


@pytest.fixture
def barion_stub(app):
    stub = StubBarionClient()
    app.config["BARION_CLIENT"] = stub
    return stub


@pytest.fixture
def product_id():
    session = SessionLocal()
    try:
        product = Product(
            sku="ROSTI-NARANCS-250",
            name="Rosti narancslé",
            base_price_huf=1490,
            on_sale=False,
            discount_threshold=5,
            discount_percentage=10,
        )
        session.add(product)
        session.commit()
        return product.productID
    finally:
        session.close()


@pytest.fixture
def cart_payload(product_id):
    return {
        "items": [{"id": product_id, "name": "Rosti narancslé", "price": 1490, "quantity": 2}],
        "deliveryFee": 1500,
        "total": 4480,
        "deliveryMethod": "own-delivery",
        "deliveryData": {"deliveryAddress": "1062 Budapest, Andrássy út 12"},
    }


@pytest.fixture
def billing_data():
    return {
        "type": "private",
        "firstName": "Anna",
        "lastName": "Kiss",
        "billingAddress": {
            "postcode": "1062",
            "city": "Budapest",
            "streetName": "Andrássy",
            "streetType": "út",
            "houseNum": "12",
        },
        "isShippingSame": True,
        "contactPhone": "+36301234567",
        "emailCC1": "anna@example.com",
    }


@pytest.fixture
def order_state_payload(billing_data):
    return {
        "quantity": 10,
        "schedule": [0, 1],
        "paymentPlan": "full",
        "paymentMethod": "transfer",
        "billingData": billing_data,
        "appliedCoupon": None,
        "isCustomQuantity": False,
    }
