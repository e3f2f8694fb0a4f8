from urllib.parse import parse_qs, urlparse

import pytest

from upgradeats.errors import TransitionError
from upgradeats.models import Order, OrderStatus, Product
from upgradeats.orders import (
    ACCEPT,
    REJECT,
    TRANSITIONS,
    allowed_actions,
    next_status,
    place_order,
    whatsapp_link,
)


@pytest.fixture
def order_42(gateway, dashboard):
    gateway.seed("orders", id=42, customer_name="Andi", product_name="Puding Cokelat", qty=1, total_price="Rp 10.000", status="Pending")
    dashboard.store.refresh()
    return 42


def test_pending_orders_can_be_accepted_or_rejected():
    assert next_status(OrderStatus.PENDING, ACCEPT) is OrderStatus.SELESAI
    assert next_status(OrderStatus.PENDING, REJECT) is OrderStatus.DIBATALKAN


@pytest.mark.parametrize("status", [OrderStatus.SELESAI, OrderStatus.DIBATALKAN])
def test_terminal_states_have_no_transitions(status):
    assert status.is_terminal
    assert allowed_actions(status) == {}
    for action in (ACCEPT, REJECT):
        with pytest.raises(TransitionError):
            next_status(status, action)


def test_every_transition_leaves_pending():
    for source, actions in TRANSITIONS.items():
        for target in actions.values():
            assert source is OrderStatus.PENDING
            assert target.is_terminal


def test_reject_updates_gateway_and_cache(dashboard, gateway, order_42):
    assert dashboard.orders.reject(order_42) is True

    assert gateway.calls_for("update") == [("update", "orders", 42, {"status": "Dibatalkan"})]
    assert dashboard.store.snapshot.find("orders", 42).status is OrderStatus.DIBATALKAN
    assert dashboard.notifier.current().message == "Status order #42 diubah ke Dibatalkan"


def test_second_action_is_refused_without_gateway_call(dashboard, gateway, order_42):
    dashboard.orders.reject(order_42)
    calls = len(gateway.calls)

    assert dashboard.orders.accept(order_42) is False
    assert dashboard.orders.reject(order_42) is False

    assert len(gateway.calls) == calls
    assert dashboard.store.snapshot.find("orders", 42).status is OrderStatus.DIBATALKAN
    assert dashboard.notifier.current().message == "Pesanan ini telah dibatalkan."


def test_failed_update_leaves_order_pending(dashboard, gateway, order_42):
    gateway.fail[("update", "orders")] = "network down"

    assert dashboard.orders.accept(order_42) is False

    assert dashboard.store.snapshot.find("orders", 42).status is OrderStatus.PENDING
    assert dashboard.notifier.current().message == "Gagal update status"


def test_open_detail_follows_the_status_change(dashboard, order_42):
    detail = dashboard.orders.open_detail(order_42)
    assert detail.status is OrderStatus.PENDING

    dashboard.orders.accept(order_42)

    assert dashboard.orders.detail.id == 42
    assert dashboard.orders.detail.status is OrderStatus.SELESAI


def test_unknown_order(dashboard, gateway):
    assert dashboard.orders.accept(999) is False
    assert gateway.calls_for("update") == []


def test_place_order_stores_pending_order(gateway):
    product = Product(id=2, name="Nasi Ayam Bakar", price="Rp 20.000", category="Best Seller", image_url="x")

    order = place_order(gateway, product, "Siti", 2)

    assert order.status is OrderStatus.PENDING
    assert order.total_price == 40000
    assert order.id is not None
    (_, table, row), = gateway.calls_for("insert")
    assert table == "orders"
    assert row == {
        "customer_name": "Siti",
        "product_name": "Nasi Ayam Bakar",
        "qty": 2,
        "total_price": "Rp 40.000",
        "status": "Pending",
    }


def test_whatsapp_link_carries_order_summary():
    order = Order(customer_name="Siti", product_name="Salad Wrap", qty=2, total_price=30000)

    link = whatsapp_link("6285832841485", order)

    parsed = urlparse(link)
    assert parsed.netloc == "wa.me"
    assert parsed.path == "/6285832841485"
    text = parse_qs(parsed.query)["text"][0]
    assert "*Siti*" in text
    assert "*Salad Wrap*" in text
    assert "Rp 30.000" in text
