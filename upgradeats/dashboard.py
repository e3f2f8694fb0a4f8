import logging
import threading
import time
from collections import OrderedDict
from secrets import token_hex
from typing import List, Optional, Tuple

from .errors import GatewayError
from .gateway import AuthSession
from .listing import ListView
from .mutations import MutationOrchestrator
from .notifications import Notifier
from .orders import OrderLifecycle
from .store import DataStore

logger = logging.getLogger(__name__)


class Dashboard:
    """Everything one signed-in admin sees: cache, list state, forms, toasts."""

    def __init__(self, gateway, session: AuthSession, timeout: float = 10.0):
        self.gateway = gateway
        self.session = session
        self.notifier = Notifier()
        self.store = DataStore(gateway, self.notifier, timeout=timeout)
        self.list_view = ListView()
        self.mutations = MutationOrchestrator(gateway, self.store, self.notifier, self.list_view)
        self.orders = OrderLifecycle(gateway, self.store, self.notifier)

    @property
    def auth_session(self) -> AuthSession:
        """Tokens in use for this mount; the gateway may have rotated them."""
        return self.gateway.current_session() or self.session

    def switch_tab(self, tab: str):
        self.list_view.switch_tab(tab)
        self.mutations.close_form()
        self.mutations.cancel()
        self.orders.close_detail()

    def records(self) -> List:
        table = self.list_view.table
        return list(self.store.collection(table)) if table else []

    def visible(self) -> List:
        return self.list_view.visible(self.records())


class SessionGuard:
    """Admits an admin into the dashboard once per mount."""

    def __init__(self, gateway, timeout: float = 10.0):
        self.gateway = gateway
        self.timeout = timeout

    def resolve(self, access_token: Optional[str], refresh_token: Optional[str]) -> Optional[AuthSession]:
        try:
            return self.gateway.get_session(access_token, refresh_token)
        except GatewayError as exc:
            logger.warning("Session lookup failed, treating as signed out: %s", exc.message)
            return None

    def mount(self, access_token: Optional[str], refresh_token: Optional[str]) -> Optional[Dashboard]:
        session = self.resolve(access_token, refresh_token)
        if session is None:
            return None
        try:
            gateway = self.gateway.bind(session)
        except GatewayError as exc:
            logger.warning("Could not bind session for %s: %s", session.email, exc.message)
            return None
        dashboard = Dashboard(gateway, session, timeout=self.timeout)
        dashboard.store.refresh()
        logger.info("Dashboard mounted for %s", session.email)
        return dashboard


class DashboardRegistry:
    """Live mounts, least recently used first.

    Mounts idle for longer than ``idle_seconds`` are dropped, and the oldest
    mount goes once ``max_mounts`` is reached. A dropped mount is rebuilt by
    the session guard on the admin's next request.
    """

    def __init__(self, max_mounts: int = 32, idle_seconds: float = 3600.0, clock=time.monotonic):
        self.max_mounts = max_mounts
        self.idle_seconds = idle_seconds
        self.clock = clock
        self._mounts: "OrderedDict[str, Tuple[Dashboard, float]]" = OrderedDict()
        self._lock = threading.Lock()

    def _sweep(self, now: float):
        while self._mounts:
            mount_id, (_, last_seen) = next(iter(self._mounts.items()))
            if now - last_seen < self.idle_seconds:
                break
            del self._mounts[mount_id]
            logger.info("Dropped idle dashboard mount %s", mount_id[:8])

    def add(self, dashboard: Dashboard) -> str:
        mount_id = token_hex(16)
        with self._lock:
            now = self.clock()
            self._sweep(now)
            while len(self._mounts) >= self.max_mounts:
                evicted, _ = self._mounts.popitem(last=False)
                logger.info("Evicted dashboard mount %s", evicted[:8])
            self._mounts[mount_id] = (dashboard, now)
        return mount_id

    def get(self, mount_id: Optional[str]) -> Optional[Dashboard]:
        if not mount_id:
            return None
        with self._lock:
            now = self.clock()
            self._sweep(now)
            entry = self._mounts.get(mount_id)
            if entry is None:
                return None
            self._mounts[mount_id] = (entry[0], now)
            self._mounts.move_to_end(mount_id)
            return entry[0]

    def discard(self, mount_id: Optional[str]) -> Optional[Dashboard]:
        if not mount_id:
            return None
        with self._lock:
            entry = self._mounts.pop(mount_id, None)
        return entry[0] if entry else None

    def __len__(self):
        with self._lock:
            return len(self._mounts)
