# app/routers/deps.py
"""
Service wiring shared by the routers.

Services are stateless; one instance per process is enough.
"""

from app.core.config import get_settings
from app.gateway.factory import get_gateway
from app.repositories.cart_repo import CartRepository
from app.repositories.order_repo import OrderRepository
from app.repositories.product_repo import ProductRepository
from app.services.cart_service import CartService
from app.services.order_service import OrderService
from app.services.payment_service import PaymentService
from app.services.stock_oracle import StockOracle
from app.services.stock_reservation import StockReservations

settings = get_settings()

cart_repo = CartRepository()
order_repo = OrderRepository()
product_repo = ProductRepository()

stock_oracle = StockOracle(product_repo)
cart_service = CartService(cart_repo, stock_oracle)
order_service = OrderService(
    order_repo,
    cart_repo,
    cart_service,
    StockReservations(product_repo),
    reserve_stock=settings.STOCK_RESERVATION_ENABLED,
)
payment_service = PaymentService(order_repo, order_service, get_gateway)
