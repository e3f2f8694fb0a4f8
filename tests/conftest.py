from datetime import datetime, timedelta, timezone

import pytest

from upgradeats import create_app
from upgradeats.dashboard import Dashboard
from upgradeats.errors import AuthError, GatewayError
from upgradeats.gateway import AuthSession, Gateway, SqliteGateway
from upgradeats.models import TABLES
from upgradeats.notifications import Notifier
from upgradeats.store import DataStore

ADMIN_EMAIL = "admin@upgradeats.id"
ADMIN_PASSWORD = "admin123"

EPOCH = datetime(2025, 3, 1, 8, 0, tzinfo=timezone.utc)


class FakeGateway(Gateway):
    """In-memory gateway that records calls and can be told to fail."""

    def __init__(self):
        self.tables = {table: [] for table in TABLES}
        self.calls = []
        self.fail = {}
        self.auth_down = False
        self.rotate_tokens = False
        self.sessions = {}
        self._next_id = 1
        self._clock = EPOCH

    def _check(self, op, table=None):
        message = self.fail.get((op, table)) or self.fail.get(op)
        if message:
            raise GatewayError(message)

    def seed(self, table, **row):
        row.setdefault("id", self._next_id)
        self._next_id = max(self._next_id, row["id"]) + 1
        if table in ("orders", "feedbacks"):
            self._clock += timedelta(minutes=1)
            row.setdefault("created_at", self._clock.isoformat())
        self.tables[table].append(dict(row))
        return row

    def calls_for(self, op):
        return [call for call in self.calls if call[0] == op]

    def query(self, table, order_by="id", descending=False):
        self.calls.append(("query", table, order_by, descending))
        self._check("query", table)
        rows = [dict(row) for row in self.tables[table]]
        return sorted(rows, key=lambda row: row.get(order_by) or "", reverse=descending)

    def get(self, table, record_id):
        self.calls.append(("get", table, record_id))
        self._check("get", table)
        for row in self.tables[table]:
            if row["id"] == record_id:
                return dict(row)
        return None

    def insert(self, table, row):
        self.calls.append(("insert", table, dict(row)))
        self._check("insert", table)
        return dict(self.seed(table, **row))

    def update(self, table, record_id, patch):
        self.calls.append(("update", table, record_id, dict(patch)))
        self._check("update", table)
        for row in self.tables[table]:
            if row["id"] == record_id:
                row.update(patch)
                return
        raise GatewayError(f"{table} #{record_id} not found")

    def delete(self, table, ids):
        ids = list(ids)
        self.calls.append(("delete", table, ids))
        self._check("delete", table)
        self.tables[table] = [row for row in self.tables[table] if row["id"] not in ids]

    def sign_in(self, email, password):
        self.calls.append(("sign_in", email))
        if self.auth_down:
            raise AuthError("Failed to fetch")
        if email != ADMIN_EMAIL or password != ADMIN_PASSWORD:
            raise AuthError("Invalid login credentials", bad_credentials=True)
        session = AuthSession(f"access-{len(self.sessions)}", "refresh", email)
        self.sessions[session.access_token] = session
        return session

    def get_session(self, access_token, refresh_token):
        self.calls.append(("get_session", access_token))
        if self.auth_down:
            raise AuthError("Failed to fetch")
        session = self.sessions.get(access_token)
        if session is not None and self.rotate_tokens:
            del self.sessions[access_token]
            session = AuthSession(access_token + "-rotated", "refresh-rotated", session.email)
            self.sessions[session.access_token] = session
        return session

    def sign_out(self, access_token, refresh_token):
        self.calls.append(("sign_out", access_token))
        self.sessions.pop(access_token, None)


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def seed_catalog(gateway):
    gateway.seed("products", name="Salad Buah Segar", price="Rp 12.000", category="Segar Alami", image_url="http://x/salad.jpg")
    gateway.seed("products", name="Nasi Ayam Bakar", price="Rp 20.000", category="Best Seller", image_url="http://x/ayam.jpg")
    gateway.seed("products", name="Puding Cokelat", price="Rp 10.000", category="Dessert", image_url="http://x/puding.jpg")
    gateway.seed("orders", customer_name="Budi", product_name="Salad Buah Segar", qty=1, total_price="Rp 12.000", status="Pending")
    gateway.seed("orders", customer_name="Siti", product_name="Nasi Ayam Bakar", qty=2, total_price="Rp 40.000", status="Selesai")
    gateway.seed("team_members", name="Rani", role="Founder", image_url="http://x/rani.jpg", quote="Makan sehat.")
    gateway.seed("features", title="Higienis", text="Dapur bersih.", icon="ShieldCheck")
    gateway.seed("feedbacks", message="Tambah menu vegan dong")


@pytest.fixture
def gateway():
    fake = FakeGateway()
    seed_catalog(fake)
    return fake


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier(clock):
    return Notifier(clock=clock)


@pytest.fixture
def store(gateway, notifier):
    return DataStore(gateway, notifier, timeout=2.0)


@pytest.fixture
def dashboard(gateway):
    board = Dashboard(gateway, AuthSession("access", "refresh", ADMIN_EMAIL), timeout=2.0)
    board.store.refresh()
    return board


@pytest.fixture
def sqlite_gateway(tmp_path):
    local = SqliteGateway(str(tmp_path / "upgradeats.db"), timeout=2.0)
    local.init_db(ADMIN_EMAIL, ADMIN_PASSWORD)
    return local


@pytest.fixture
def app(gateway):
    app = create_app(
        {
            "TESTING": True,
            "SECRET_KEY": "test",
            "GATEWAY": gateway,
            "GATEWAY_TIMEOUT": 2.0,
            "WHATSAPP_NUMBER": "6280000000000",
        }
    )
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_client(client):
    response = client.post(
        "/admin/login", data={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD}
    )
    assert response.status_code == 302
    return client
