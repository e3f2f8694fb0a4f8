import logging
import sqlite3
from datetime import datetime, timezone
from secrets import token_hex
from typing import Iterable, List, Optional

from werkzeug.security import check_password_hash, generate_password_hash

from ..errors import AuthError, GatewayError
from ..models import TABLES
from .base import AuthSession, Gateway

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid login credentials"

SCHEMA = """
CREATE TABLE IF NOT EXISTS products (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    price TEXT NOT NULL,
    category TEXT NOT NULL,
    image_url TEXT NOT NULL,
    description TEXT
);

CREATE TABLE IF NOT EXISTS orders (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    customer_name TEXT NOT NULL,
    product_name TEXT NOT NULL,
    qty INTEGER NOT NULL DEFAULT 1,
    total_price TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'Pending',
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS team_members (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    role TEXT NOT NULL,
    image_url TEXT NOT NULL,
    quote TEXT
);

CREATE TABLE IF NOT EXISTS features (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    text TEXT NOT NULL,
    icon TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS feedbacks (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    message TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS admin_users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    email TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS auth_sessions (
    access_token TEXT PRIMARY KEY,
    refresh_token TEXT NOT NULL,
    email TEXT NOT NULL,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);
"""

SEED_PRODUCTS = [
    ("Salad Buah Segar", "Rp 12.000", "Segar Alami", "/static/img/salad-buah.jpg", "Potongan buah musiman dengan saus yogurt."),
    ("Nasi Ayam Bakar Madu", "Rp 20.000", "Best Seller", "/static/img/ayam-bakar.jpg", "Ayam bakar madu, nasi merah, lalapan."),
    ("Smoothie Bowl Mangga", "Rp 18.000", "Segar Alami", "/static/img/smoothie-bowl.jpg", "Mangga, pisang, granola, chia seed."),
    ("Puding Cokelat Oat", "Rp 10.000", "Dessert", "/static/img/puding-oat.jpg", "Puding cokelat rendah gula dengan oat."),
]

SEED_FEATURES = [
    ("Higienis", "Dimasak di dapur yang bersih dan terkontrol.", "ShieldCheck"),
    ("Bahan Alami", "Sayur dan buah segar dari petani lokal.", "Leaf"),
    ("Antar Cepat", "Sampai ke gedung kampus sebelum kelas dimulai.", "Clock"),
]

SEED_TEAM = [
    ("Rani Pratiwi", "Founder", "/static/img/team-rani.jpg", "Makan sehat tidak harus mahal."),
    ("Dimas Saputra", "Head Chef", "/static/img/team-dimas.jpg", "Rasa dulu, baru kalori."),
]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SqliteGateway(Gateway):
    """Local stand-in for the hosted service, backed by a sqlite file."""

    def __init__(self, db_path: str, timeout: float = 10.0):
        self.db_path = db_path
        self.timeout = timeout

    def _connect(self):
        conn = sqlite3.connect(self.db_path, timeout=self.timeout)
        conn.row_factory = sqlite3.Row
        return conn

    def _columns(self, conn, table: str) -> set:
        if table not in TABLES:
            raise GatewayError(f"Unknown table: {table}")
        cursor = conn.execute(f"PRAGMA table_info({table})")
        return {row[1] for row in cursor.fetchall()}

    def _checked(self, conn, table: str, row: dict) -> dict:
        columns = self._columns(conn, table)
        unknown = set(row) - columns
        if unknown:
            raise GatewayError(f"Unknown column(s) for {table}: {', '.join(sorted(unknown))}")
        return row

    def init_db(self, admin_email: str, admin_password: str):
        conn = self._connect()
        try:
            cursor = conn.cursor()
            cursor.executescript(SCHEMA)

            cursor.execute("SELECT COUNT(*) FROM products")
            if cursor.fetchone()[0] == 0:
                cursor.executemany(
                    """
                    INSERT INTO products (name, price, category, image_url, description)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    SEED_PRODUCTS,
                )

            cursor.execute("SELECT COUNT(*) FROM features")
            if cursor.fetchone()[0] == 0:
                cursor.executemany(
                    "INSERT INTO features (title, text, icon) VALUES (?, ?, ?)",
                    SEED_FEATURES,
                )

            cursor.execute("SELECT COUNT(*) FROM team_members")
            if cursor.fetchone()[0] == 0:
                cursor.executemany(
                    "INSERT INTO team_members (name, role, image_url, quote) VALUES (?, ?, ?, ?)",
                    SEED_TEAM,
                )

            cursor.execute("SELECT COUNT(*) FROM admin_users")
            if cursor.fetchone()[0] == 0:
                cursor.execute(
                    "INSERT INTO admin_users (email, password_hash) VALUES (?, ?)",
                    (admin_email.lower(), generate_password_hash(admin_password)),
                )
            conn.commit()
        finally:
            conn.close()

    def query(self, table: str, order_by: str = "id", descending: bool = False) -> List[dict]:
        try:
            conn = self._connect()
            try:
                if order_by not in self._columns(conn, table):
                    raise GatewayError(f"Cannot order {table} by {order_by}")
                direction = "DESC" if descending else "ASC"
                rows = conn.execute(
                    f"SELECT * FROM {table} ORDER BY {order_by} {direction}, id {direction}"
                ).fetchall()
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise GatewayError(str(exc)) from exc
        logger.debug("Loaded %d row(s) from %s", len(rows), table)
        return [dict(row) for row in rows]

    def get(self, table: str, record_id: int) -> Optional[dict]:
        try:
            conn = self._connect()
            try:
                self._columns(conn, table)
                row = conn.execute(f"SELECT * FROM {table} WHERE id = ?", (record_id,)).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise GatewayError(str(exc)) from exc
        return dict(row) if row else None

    def insert(self, table: str, row: dict) -> dict:
        try:
            conn = self._connect()
            try:
                data = dict(self._checked(conn, table, row))
                data.pop("id", None)
                if "created_at" in self._columns(conn, table):
                    data["created_at"] = _now()
                names = ", ".join(data)
                placeholders = ", ".join("?" for _ in data)
                cursor = conn.execute(
                    f"INSERT INTO {table} ({names}) VALUES ({placeholders})",
                    tuple(data.values()),
                )
                conn.commit()
                inserted = conn.execute(
                    f"SELECT * FROM {table} WHERE id = ?", (cursor.lastrowid,)
                ).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise GatewayError(str(exc)) from exc
        return dict(inserted)

    def update(self, table: str, record_id: int, patch: dict) -> None:
        data = {key: value for key, value in patch.items() if key not in ("id", "created_at")}
        if not data:
            return
        try:
            conn = self._connect()
            try:
                self._checked(conn, table, data)
                assignments = ", ".join(f"{name} = ?" for name in data)
                cursor = conn.execute(
                    f"UPDATE {table} SET {assignments} WHERE id = ?",
                    (*data.values(), record_id),
                )
                if cursor.rowcount == 0:
                    raise GatewayError(f"{table} #{record_id} not found")
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise GatewayError(str(exc)) from exc

    def delete(self, table: str, ids: Iterable[int]) -> None:
        ids = list(ids)
        if not ids:
            return
        placeholders = ",".join("?" for _ in ids)
        try:
            conn = self._connect()
            try:
                self._columns(conn, table)
                conn.execute(f"DELETE FROM {table} WHERE id IN ({placeholders})", ids)
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise GatewayError(str(exc)) from exc

    def sign_in(self, email: str, password: str) -> AuthSession:
        email = (email or "").strip().lower()
        try:
            conn = self._connect()
            try:
                admin_user = conn.execute(
                    "SELECT * FROM admin_users WHERE email = ?", (email,)
                ).fetchone()
                if not admin_user or not check_password_hash(admin_user["password_hash"], password or ""):
                    raise AuthError(INVALID_CREDENTIALS, bad_credentials=True)
                session = AuthSession(
                    access_token=token_hex(24),
                    refresh_token=token_hex(24),
                    email=admin_user["email"],
                )
                conn.execute(
                    "INSERT INTO auth_sessions (access_token, refresh_token, email) VALUES (?, ?, ?)",
                    (session.access_token, session.refresh_token, session.email),
                )
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise AuthError(str(exc)) from exc
        return session

    def get_session(self, access_token: Optional[str], refresh_token: Optional[str]) -> Optional[AuthSession]:
        if not access_token:
            return None
        try:
            conn = self._connect()
            try:
                row = conn.execute(
                    "SELECT * FROM auth_sessions WHERE access_token = ?", (access_token,)
                ).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise AuthError(str(exc)) from exc
        if not row:
            return None
        return AuthSession(row["access_token"], row["refresh_token"], row["email"])

    def sign_out(self, access_token: Optional[str], refresh_token: Optional[str]) -> None:
        if not access_token:
            return
        try:
            conn = self._connect()
            try:
                conn.execute("DELETE FROM auth_sessions WHERE access_token = ?", (access_token,))
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise AuthError(str(exc)) from exc
