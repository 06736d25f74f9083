import os

# Settings are read at import time; configure before importing the app.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-secret")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("PAYMENT_GATEWAY", "fake")

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from app.gateway.fake_adapter import FakeGateway
from app.models.cart import CartItem  # noqa: F401
from app.models.order import Order, OrderItem  # noqa: F401
from app.models.product import Product
from app.repositories.cart_repo import CartRepository
from app.repositories.order_repo import OrderRepository
from app.repositories.product_repo import ProductRepository
from app.schemas.order import OrderCreate, ShippingAddress
from app.services.cart_service import CartService
from app.services.order_service import OrderService
from app.services.payment_service import PaymentService
from app.services.stock_oracle import StockOracle
from app.services.stock_reservation import StockReservations

BUYER = "user_2buyer0000000000000000001"
OTHER_BUYER = "user_2other0000000000000000002"


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture()
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture()
def gateway():
    return FakeGateway()


@pytest.fixture()
def product_repo():
    return ProductRepository()


@pytest.fixture()
def cart_repo():
    return CartRepository()


@pytest.fixture()
def order_repo():
    return OrderRepository()


@pytest.fixture()
def cart_service(cart_repo, product_repo):
    return CartService(cart_repo, StockOracle(product_repo))


@pytest.fixture()
def order_service(order_repo, cart_repo, cart_service, product_repo):
    return OrderService(order_repo, cart_repo, cart_service, StockReservations(product_repo))


@pytest.fixture()
def payment_service(order_repo, order_service, gateway):
    return PaymentService(order_repo, order_service, lambda: gateway)


@pytest.fixture()
def make_product(session, product_repo):
    def _make(name="Ceramic mug", price=1000, stock=5, active=True):
        return product_repo.create(
            session,
            Product(name=name, price=price, stock_quantity=stock, is_active=active),
        )

    return _make


@pytest.fixture()
def checkout_payload():
    return OrderCreate(
        shipping_address=ShippingAddress(
            recipient_name="Kim Minji",
            phone="010-1234-5678",
            postal_code="06236",
            address_line="123 Teheran-ro, Gangnam-gu, Seoul",
            detail_line="Apt 101-1002",
        ),
        note="Leave at the door",
    )


@pytest.fixture()
def placed_order(session, make_product, cart_service, order_service, checkout_payload):
    """Order of 2 x 1000 + 1 x 500 = 2500, still pending."""
    p1 = make_product(name="Ceramic mug", price=1000, stock=5)
    p2 = make_product(name="Linen towel", price=500, stock=5)
    cart_service.add(session, BUYER, p1.id, 2)
    cart_service.add(session, BUYER, p2.id, 1)
    result = order_service.build(session, BUYER, checkout_payload)
    return result.order_id
