import threading

from conftest import FakeGateway, seed_catalog

from upgradeats.models import OrderStatus
from upgradeats.notifications import ERROR
from upgradeats.orders import OrderLifecycle
from upgradeats.store import DataStore


def test_refresh_loads_every_collection(store, gateway):
    assert store.refresh() is True

    queried = {call[1] for call in gateway.calls_for("query")}
    assert queried == {"products", "orders", "team_members", "features", "feedbacks"}
    assert len(store.snapshot.products) == 3
    assert store.stats.total_menus == 3
    assert store.stats.total_orders == 2
    assert store.stats.revenue == 52000


def test_orders_come_newest_first(store):
    store.refresh()
    assert [order.customer_name for order in store.snapshot.orders] == ["Siti", "Budi"]


def test_one_failed_query_keeps_previous_snapshot(store, gateway, notifier):
    store.refresh()
    before = store.snapshot
    gateway.seed("products", name="Salad Wrap", price="Rp 15.000", category="Segar Alami", image_url="x")
    gateway.fail[("query", "feedbacks")] = "connection reset"

    assert store.refresh() is False

    assert store.snapshot is before
    assert len(store.snapshot.products) == 3
    toast = notifier.current()
    assert toast.kind == ERROR
    assert "connection reset" in toast.message


def test_malformed_rows_keep_previous_snapshot(store, gateway, notifier):
    store.refresh()
    before = store.snapshot
    gateway.seed("team_members", name="Tanpa Peran")

    assert store.refresh() is False
    assert store.snapshot is before
    assert notifier.current().kind == ERROR


class SlowGateway(FakeGateway):
    def __init__(self):
        super().__init__()
        self.release = threading.Event()

    def query(self, table, order_by="id", descending=False):
        if table == "feedbacks":
            self.release.wait(5)
        return super().query(table, order_by, descending)


def test_slow_refresh_times_out(notifier):
    gateway = SlowGateway()
    seed_catalog(gateway)
    store = DataStore(gateway, notifier, timeout=0.1)
    try:
        assert store.refresh() is False
    finally:
        gateway.release.set()

    assert store.snapshot.version == 0
    assert "timed out" in notifier.current().message


class RacingGateway(FakeGateway):
    """Starts a second refresh while the first one is still fetching."""

    def __init__(self):
        super().__init__()
        self.store = None
        self.nested_result = None

    def query(self, table, order_by="id", descending=False):
        if table == "products" and self.store is not None:
            store, self.store = self.store, None
            self.nested_result = store.refresh()
        return super().query(table, order_by, descending)


def test_older_refresh_does_not_overwrite_newer(notifier):
    gateway = RacingGateway()
    seed_catalog(gateway)
    store = DataStore(gateway, notifier, timeout=2.0)
    gateway.store = store

    assert store.refresh() is False

    assert gateway.nested_result is True
    assert store.snapshot.version == 2


def test_patch_order_status_replaces_cached_order(store):
    store.refresh()
    pending = next(order for order in store.snapshot.orders if order.status is OrderStatus.PENDING)

    patched = store.patch_order_status(pending.id, OrderStatus.SELESAI)

    assert patched.status is OrderStatus.SELESAI
    assert store.snapshot.find("orders", pending.id).status is OrderStatus.SELESAI
    assert len(store.snapshot.orders) == 2


def test_patch_unknown_order_is_a_no_op(store):
    store.refresh()
    before = store.snapshot
    assert store.patch_order_status(999, OrderStatus.SELESAI) is None
    assert store.snapshot is before


class BlockingOrdersGateway(FakeGateway):
    """Holds the orders query open until released."""

    def __init__(self):
        super().__init__()
        self.block = False
        self.started = threading.Event()
        self.release = threading.Event()

    def query(self, table, order_by="id", descending=False):
        rows = super().query(table, order_by, descending)
        if table == "orders" and self.block:
            self.started.set()
            self.release.wait(5)
        return rows


def test_refresh_in_flight_does_not_undo_a_status_change(notifier):
    gateway = BlockingOrdersGateway()
    seed_catalog(gateway)
    store = DataStore(gateway, notifier, timeout=5.0)
    store.refresh()
    lifecycle = OrderLifecycle(gateway, store, notifier)
    pending = next(order for order in store.snapshot.orders if order.status is OrderStatus.PENDING)

    gateway.block = True
    results = []
    worker = threading.Thread(target=lambda: results.append(store.refresh()))
    worker.start()
    assert gateway.started.wait(5)

    assert lifecycle.accept(pending.id) is True
    gateway.release.set()
    worker.join(5)

    assert results == [False]
    assert store.snapshot.find("orders", pending.id).status is OrderStatus.SELESAI
    assert lifecycle.accept(pending.id) is False
    assert len(gateway.calls_for("update")) == 1
