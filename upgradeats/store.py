"""
In-memory snapshot of the five admin collections.

The store is refreshed as a whole: five queries go out together, and the new
snapshot replaces the old one only when every query succeeded. Each refresh
takes a token so that a slow refresh finishing after a newer one cannot
overwrite it.
"""
import logging
import threading
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, Optional, Tuple

from pydantic import ValidationError

from .errors import GatewayError, GatewayTimeout
from .models import MODELS, TABLES, Order, OrderStatus, Product, Record
from .money import parse_currency
from .notifications import Notifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Stats:
    revenue: int = 0
    total_orders: int = 0
    total_menus: int = 0


def compute_stats(orders: Iterable, products: Iterable) -> Stats:
    """Dashboard totals.

    ``total_orders`` counts every order, cancelled ones included.
    """
    orders = list(orders)
    revenue = 0
    for order in orders:
        value = order.get("total_price") if isinstance(order, Mapping) else order.total_price
        revenue += parse_currency(value)
    return Stats(revenue=revenue, total_orders=len(orders), total_menus=len(list(products)))


@dataclass(frozen=True)
class Snapshot:
    collections: Dict[str, Tuple[Record, ...]] = field(
        default_factory=lambda: {table: () for table in TABLES}
    )
    stats: Stats = field(default_factory=Stats)
    version: int = 0

    def collection(self, table: str) -> Tuple[Record, ...]:
        return self.collections[table]

    def find(self, table: str, record_id: int) -> Optional[Record]:
        for record in self.collections[table]:
            if record.id == record_id:
                return record
        return None

    @property
    def products(self) -> Tuple[Product, ...]:
        return self.collections["products"]

    @property
    def orders(self) -> Tuple[Order, ...]:
        return self.collections["orders"]


class DataStore:
    def __init__(self, gateway, notifier: Notifier, timeout: float = 10.0):
        self.gateway = gateway
        self.notifier = notifier
        self.timeout = timeout
        self._lock = threading.Lock()
        self._issued = 0
        self._snapshot = Snapshot()

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    @property
    def stats(self) -> Stats:
        return self._snapshot.stats

    def collection(self, table: str) -> Tuple[Record, ...]:
        return self._snapshot.collection(table)

    def _fetch_all(self) -> Dict[str, list]:
        executor = ThreadPoolExecutor(max_workers=len(TABLES), thread_name_prefix="refresh")
        try:
            futures = {}
            for table in TABLES:
                order_by, descending = MODELS[table].order_by
                futures[table] = executor.submit(self.gateway.query, table, order_by, descending)
            _, pending = wait(futures.values(), timeout=self.timeout)
            if pending:
                raise GatewayTimeout(f"Request timed out after {self.timeout:g}s")
            return {table: future.result() for table, future in futures.items()}
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def refresh(self) -> bool:
        """Reload every collection; returns whether a new snapshot was committed."""
        with self._lock:
            self._issued += 1
            token = self._issued

        try:
            rows = self._fetch_all()
            collections = {
                table: tuple(MODELS[table].model_validate(row) for row in rows[table])
                for table in TABLES
            }
        except GatewayError as exc:
            logger.warning("Refresh %d failed: %s", token, exc.message)
            self.notifier.error(f"Gagal memuat data: {exc.message}")
            return False
        except ValidationError as exc:
            logger.warning("Refresh %d returned malformed rows: %s", token, exc)
            self.notifier.error(f"Gagal memuat data: {exc.error_count()} baris tidak valid")
            return False

        with self._lock:
            if token != self._issued:
                logger.warning("Discarding refresh %d, refresh %d is newer", token, self._issued)
                return False
            self._snapshot = Snapshot(
                collections=collections,
                stats=compute_stats(collections["orders"], collections["products"]),
                version=token,
            )
        logger.info(
            "Refresh %d committed: %s",
            token,
            ", ".join(f"{table}={len(records)}" for table, records in collections.items()),
        )
        return True

    def patch_order_status(self, order_id: int, status: OrderStatus) -> Optional[Order]:
        """Swap in a copy of one cached order carrying ``status``."""
        with self._lock:
            current = self._snapshot
            patched = None
            orders = []
            for order in current.orders:
                if order.id == order_id:
                    order = patched = order.model_copy(update={"status": status})
                orders.append(order)
            if patched is None:
                return None
            # A refresh already in flight read the rows before this write.
            self._issued += 1
            collections = dict(current.collections)
            collections["orders"] = tuple(orders)
            self._snapshot = replace(current, collections=collections)
        return patched
