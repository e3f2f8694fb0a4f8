"""
Order status lifecycle and the storefront checkout handoff.

An order starts ``Pending`` and an admin moves it exactly once, either to
``Selesai`` (accept) or ``Dibatalkan`` (reject). Both are terminal.
"""
import logging
from typing import Dict, Optional
from urllib.parse import quote

from .errors import GatewayError, TransitionError
from .models import Order, OrderStatus, Product
from .money import format_currency

logger = logging.getLogger(__name__)

ACCEPT = "accept"
REJECT = "reject"

TRANSITIONS: Dict[OrderStatus, Dict[str, OrderStatus]] = {
    OrderStatus.PENDING: {ACCEPT: OrderStatus.SELESAI, REJECT: OrderStatus.DIBATALKAN},
    OrderStatus.SELESAI: {},
    OrderStatus.DIBATALKAN: {},
}


def allowed_actions(status: OrderStatus) -> Dict[str, OrderStatus]:
    return TRANSITIONS[status]


def next_status(status: OrderStatus, action: str) -> OrderStatus:
    try:
        return TRANSITIONS[status][action]
    except KeyError:
        raise TransitionError(f"Cannot {action} an order that is {status.value}") from None


class OrderLifecycle:
    """Applies accept/reject to cached orders and keeps the detail view in step."""

    def __init__(self, gateway, store, notifier):
        self.gateway = gateway
        self.store = store
        self.notifier = notifier
        self.detail: Optional[Order] = None

    def open_detail(self, order_id: int) -> Optional[Order]:
        self.detail = self.store.snapshot.find("orders", order_id)
        return self.detail

    def close_detail(self):
        self.detail = None

    def apply(self, order_id: int, action: str) -> bool:
        order = self.store.snapshot.find("orders", order_id)
        if order is None:
            self.notifier.error(f"Order #{order_id} tidak ditemukan")
            return False
        try:
            status = next_status(order.status, action)
        except TransitionError as exc:
            logger.info("Refused order #%d: %s", order_id, exc)
            self.notifier.error(f"Pesanan ini telah {order.status.value.lower()}.")
            return False

        try:
            self.gateway.update("orders", order_id, {"status": status.value})
        except GatewayError as exc:
            logger.warning("Status update for order #%d failed: %s", order_id, exc.message)
            self.notifier.error("Gagal update status")
            return False

        patched = self.store.patch_order_status(order_id, status)
        if self.detail is not None and self.detail.id == order_id:
            self.detail = patched or self.detail.model_copy(update={"status": status})
        logger.info("Order #%d moved to %s", order_id, status.value)
        self.notifier.success(f"Status order #{order_id} diubah ke {status.value}")
        return True

    def accept(self, order_id: int) -> bool:
        return self.apply(order_id, ACCEPT)

    def reject(self, order_id: int) -> bool:
        return self.apply(order_id, REJECT)


def whatsapp_message(order: Order) -> str:
    return (
        "Halo Upgradeats!\n\n"
        f"Saya *{order.customer_name}* mau pesan:\n"
        f"Menu: *{order.product_name}*\n"
        f"Jumlah: *{order.qty}*\n"
        f"Total: *{format_currency(order.total_price)}*\n\n"
        "Mohon diproses ya!"
    )


def whatsapp_link(number: str, order: Order) -> str:
    return f"https://wa.me/{number}?text={quote(whatsapp_message(order))}"


def place_order(gateway, product: Product, customer_name: str, qty: int) -> Order:
    """Store a Pending order for ``product``; the customer then confirms over WhatsApp."""
    order = Order.place(customer_name, product, qty)
    row = gateway.insert("orders", order.to_row())
    logger.info("Order placed for %s x%d (#%s)", product.name, qty, row.get("id"))
    return Order.model_validate({**order.to_row(), **row})
