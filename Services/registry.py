from dataclasses import dataclass

from flask import current_app

from Services.orderService import OrderService
from Services.receiptService import ReceiptService
from Utils.email import PaymentConfirmationNotifier
from Utils.storage import ReceiptStorage

EXTENSION_KEY = "fruitpanda"


@dataclass
class Services:
    orders: OrderService
    receipts: ReceiptService


def build_services(config, storage=None, notifier=None, renderer=None) -> Services:
    """Wire the services from app config; collaborators can be swapped in."""
    storage = storage or ReceiptStorage(config.get("RECEIPTS_DIR", "receipts"))
    receipts = ReceiptService(storage, renderer) if renderer else ReceiptService(storage)
    orders = OrderService(
        receipts,
        notifier=notifier or PaymentConfirmationNotifier(config),
        delivery_fee=float(config.get("DELIVERY_FEE", 60)),
        free_delivery_threshold=float(config.get("FREE_DELIVERY_THRESHOLD", 1000)),
        frontend_url=config.get("FRONTEND_URL", "http://localhost:5173"),
    )
    return Services(orders=orders, receipts=receipts)


def init_services(app, **overrides) -> Services:
    services = build_services(app.config, **overrides)
    app.extensions[EXTENSION_KEY] = services
    return services


def get_services() -> Services:
    return current_app.extensions[EXTENSION_KEY]
