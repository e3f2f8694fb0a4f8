from .base import AuthSession, Gateway
from .local import SqliteGateway
from .remote import SupabaseGateway

__all__ = ["AuthSession", "Gateway", "SqliteGateway", "SupabaseGateway"]
