import logging
import threading
from typing import Callable, Iterable, List, Optional

import httpx
from postgrest.exceptions import APIError
from supabase import ClientOptions, create_client
from supabase_auth.errors import AuthError as SupabaseAuthError

from ..errors import AuthError, GatewayError, GatewayTimeout
from .base import AuthSession, Gateway

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid login credentials"
JWT_EXPIRED_CODE = "PGRST301"


def _session_from(session) -> Optional[AuthSession]:
    if session is None:
        return None
    email = session.user.email if session.user else ""
    return AuthSession(session.access_token, session.refresh_token, email or "")


def _jwt_expired(exc: APIError) -> bool:
    return exc.code == JWT_EXPIRED_CODE or "jwt expired" in (exc.message or "").lower()


def _auth_call(call: Callable):
    try:
        return call()
    except SupabaseAuthError as exc:
        raise AuthError(exc.message or type(exc).__name__) from exc
    except httpx.HTTPError as exc:
        raise AuthError(str(exc)) from exc


class SupabaseGateway(Gateway):
    """Gateway over a hosted Supabase project.

    Auth state in supabase-py lives on the client object, so every signed-in
    admin gets a client of its own through :meth:`bind`; the unbound gateway
    only serves anonymous storefront reads and writes. A bound gateway
    refreshes its session once when PostgREST reports an expired JWT and
    retries the request.
    """

    def __init__(self, url: str, key: str, timeout: float = 10.0, client=None, session: Optional[AuthSession] = None):
        self.url = url
        self.key = key
        self.timeout = timeout
        self.client = client or self._new_client()
        self.session = session
        self._refresh_lock = threading.Lock()

    def _new_client(self):
        options = ClientOptions(
            postgrest_client_timeout=self.timeout,
            auto_refresh_token=False,
            persist_session=False,
        )
        return create_client(self.url, self.key, options=options)

    def _send(self, build):
        try:
            return build().execute()
        except httpx.TimeoutException as exc:
            raise GatewayTimeout(f"Request timed out after {self.timeout:g}s") from exc
        except httpx.HTTPError as exc:
            raise GatewayError(str(exc)) from exc

    def _execute(self, build):
        """Run the request made by ``build``; it is rebuilt after a token refresh."""
        used = self.session
        try:
            return self._send(build)
        except APIError as exc:
            if self.session is None or not _jwt_expired(exc):
                raise GatewayError(exc.message or str(exc)) from exc
            logger.info("Access token expired for %s, refreshing", self.session.email)
        self._refresh_session(used)
        try:
            return self._send(build)
        except APIError as exc:
            raise GatewayError(exc.message or str(exc)) from exc

    def _refresh_session(self, stale: AuthSession):
        with self._refresh_lock:
            if self.session is not stale:
                return
            self._rotate()

    def _rotate(self):
        response = _auth_call(lambda: self.client.auth.refresh_session(self.session.refresh_token))
        refreshed = _session_from(response.session)
        if refreshed is None:
            raise AuthError("Session expired")
        self.session = refreshed

    def query(self, table: str, order_by: str = "id", descending: bool = False) -> List[dict]:
        response = self._execute(
            lambda: self.client.table(table).select("*").order(order_by, desc=descending)
        )
        logger.debug("Loaded %d row(s) from %s", len(response.data or []), table)
        return response.data or []

    def get(self, table: str, record_id: int) -> Optional[dict]:
        response = self._execute(
            lambda: self.client.table(table).select("*").eq("id", record_id).limit(1)
        )
        return response.data[0] if response.data else None

    def insert(self, table: str, row: dict) -> dict:
        response = self._execute(lambda: self.client.table(table).insert(row))
        return response.data[0] if response.data else dict(row)

    def update(self, table: str, record_id: int, patch: dict) -> None:
        data = {key: value for key, value in patch.items() if key not in ("id", "created_at")}
        self._execute(lambda: self.client.table(table).update(data).eq("id", record_id))

    def delete(self, table: str, ids: Iterable[int]) -> None:
        ids = list(ids)
        if ids:
            self._execute(lambda: self.client.table(table).delete().in_("id", ids))

    def sign_in(self, email: str, password: str) -> AuthSession:
        client = self._new_client()
        try:
            response = client.auth.sign_in_with_password({"email": email, "password": password})
        except SupabaseAuthError as exc:
            raise AuthError(exc.message, bad_credentials=exc.message == INVALID_CREDENTIALS) from exc
        except httpx.HTTPError as exc:
            raise AuthError(str(exc)) from exc
        session = _session_from(response.session)
        if session is None:
            raise AuthError(INVALID_CREDENTIALS, bad_credentials=True)
        return session

    def get_session(self, access_token: Optional[str], refresh_token: Optional[str]) -> Optional[AuthSession]:
        if not access_token or not refresh_token:
            return None
        client = self._new_client()
        # set_session rotates both tokens when the access token has expired.
        _auth_call(lambda: client.auth.set_session(access_token, refresh_token))
        return _session_from(_auth_call(client.auth.get_session))

    def sign_out(self, access_token: Optional[str], refresh_token: Optional[str]) -> None:
        if not access_token or not refresh_token:
            return
        client = self._new_client()
        _auth_call(lambda: client.auth.set_session(access_token, refresh_token))
        _auth_call(client.auth.sign_out)

    def bind(self, session: AuthSession) -> "SupabaseGateway":
        client = self._new_client()
        response = _auth_call(lambda: client.auth.set_session(session.access_token, session.refresh_token))
        bound = _session_from(response.session) or session
        return SupabaseGateway(self.url, self.key, timeout=self.timeout, client=client, session=bound)

    def current_session(self) -> Optional[AuthSession]:
        return self.session
