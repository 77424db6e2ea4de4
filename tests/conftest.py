import mongomock
import pytest
from mongoengine import connect, disconnect

from Models.orderModel import Order
from Models.productModel import Product, Inventory
from Models.userModel import User, Role
from Services.orderService import OrderService
from Services.receiptService import ReceiptService
from Utils.appError import StorageError
from Utils.jwt_utils import create_access_token
from Utils.storage import ReceiptStorage

TEST_DB = "fruitpanda_test"


class RecordingNotifier:
    """Stands in for the SMTP notifier and remembers every call."""

    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    def __call__(self, order, payment, receipt_url):
        self.calls.append((order, payment, receipt_url))
        if self.fail:
            raise ConnectionRefusedError("SMTP server unavailable")
        return True


class BrokenStorage(ReceiptStorage):
    def save(self, pdf_bytes, filename):
        raise StorageError("Could not store receipt PDF: disk full")


# ============================
# Database
# ============================
@pytest.fixture
def db():
    disconnect(alias="default")
    connection = connect(
        db=TEST_DB,
        host="mongodb://localhost",
        mongo_client_class=mongomock.MongoClient,
        alias="default",
    )
    yield connection
    connection.drop_database(TEST_DB)
    disconnect(alias="default")


# ============================
# Users / catalog
# ============================
@pytest.fixture
def customer(db):
    return User(name="Rahim Uddin", email="rahim@example.com", phone="01712345678").save()


@pytest.fixture
def other_customer(db):
    return User(name="Karim Ahmed", email="karim@example.com", phone="01812345678").save()


@pytest.fixture
def admin(db):
    return User(name="Admin", email="admin@fruitpanda.com", role=Role.ADMIN).save()


@pytest.fixture
def seller(db):
    return User(name="Mango Farm", email="seller@example.com", role=Role.SELLER).save()


@pytest.fixture
def mango(db, seller):
    return Product(
        name="Himsagar Mango", name_bn="হিমসাগর আম", price=150, seller=seller,
        inventory=Inventory(stock=50, reserved=0),
    ).save()


# ============================
# Services
# ============================
@pytest.fixture
def storage(tmp_path):
    return ReceiptStorage(str(tmp_path / "receipts"))


@pytest.fixture
def receipt_service(storage):
    return ReceiptService(storage)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def order_service(db, receipt_service, notifier):
    return OrderService(receipt_service, notifier=notifier, frontend_url="https://fruitpanda.test")


# ============================
# Payload helpers
# ============================
def make_items(*lines):
    """lines: (name, price, quantity) tuples."""
    return [
        {
            "productInfo": {"name": name, "nameBn": None, "image": f"/images/{name.lower()}.jpg"},
            "price": price,
            "quantity": quantity,
            "weight": "1kg",
        }
        for name, price, quantity in lines
    ]


def make_address(**overrides):
    address = {
        "fullName": "Rahim Uddin",
        "phone": "01712345678",
        "address": "House 12, Road 5, Dhanmondi",
        "city": "Dhaka",
        "area": "Dhanmondi",
    }
    address.update(overrides)
    return address


@pytest.fixture
def place_order(order_service):
    def _place(user, lines=(("Mango", 150, 2), ("Lychee", 250, 2)), method="bkash", **address):
        return order_service.create_order(user, make_items(*lines), make_address(**address), method)
    return _place


@pytest.fixture
def paid_order(db, place_order):
    """Orders marked paid directly, the way historic data looks before backfill."""
    def _paid(user, **kwargs):
        order = place_order(user, **kwargs)
        Order.objects(id=order.id).update_one(
            set__payment__status="paid",
            set__payment__transaction_id=f"TXN-{order.order_number[-6:]}",
            set__payment__paid_at=order.created_at,
        )
        return Order.objects.get(id=order.id)
    return _paid


# ============================
# Flask app
# ============================
@pytest.fixture
def app(db, tmp_path, notifier):
    from app import create_app

    app = create_app({
        "TESTING": True,
        "APP_ENV": "test",
        "CONNECT_DB": False,
        "RATELIMIT_ENABLED": False,
        "JWT_SECRET": "test-secret",
        "LOG_DIR": str(tmp_path / "logs"),
        "RECEIPTS_DIR": str(tmp_path / "receipts"),
        "SMTP_ENABLED": False,
    }, notifier=notifier)
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers(app):
    def _headers(user):
        with app.app_context():
            token = create_access_token(user.id, user.role_value)
        return {"Authorization": f"Bearer {token}"}
    return _headers
