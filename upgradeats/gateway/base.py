from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, List, Optional


@dataclass(frozen=True)
class AuthSession:
    access_token: str
    refresh_token: str
    email: str


class Gateway(ABC):
    """Table-style access to the data service plus its session auth.

    Rows cross this boundary as plain dicts. Every failure is raised as a
    ``GatewayError`` (or a subclass); callers never see library exceptions.
    """

    @abstractmethod
    def query(self, table: str, order_by: str = "id", descending: bool = False) -> List[dict]:
        ...

    @abstractmethod
    def get(self, table: str, record_id: int) -> Optional[dict]:
        ...

    @abstractmethod
    def insert(self, table: str, row: dict) -> dict:
        ...

    @abstractmethod
    def update(self, table: str, record_id: int, patch: dict) -> None:
        ...

    @abstractmethod
    def delete(self, table: str, ids: Iterable[int]) -> None:
        ...

    @abstractmethod
    def sign_in(self, email: str, password: str) -> AuthSession:
        ...

    @abstractmethod
    def get_session(self, access_token: Optional[str], refresh_token: Optional[str]) -> Optional[AuthSession]:
        ...

    @abstractmethod
    def sign_out(self, access_token: Optional[str], refresh_token: Optional[str]) -> None:
        ...

    def bind(self, session: AuthSession) -> "Gateway":
        """Gateway that issues table calls on behalf of ``session``."""
        return self

    def current_session(self) -> Optional[AuthSession]:
        """Session a bound gateway is using now, if it tracks one."""
        return None
