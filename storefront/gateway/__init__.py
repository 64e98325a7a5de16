from typing import Optional

from sqlalchemy.orm import sessionmaker

from storefront.core.session import SessionProvider
from storefront.db.session import SessionLocal
from storefront.gateway.auth import AuthGateway
from storefront.gateway.storage import StorageGateway
from storefront.gateway.tables import TableGateway

__all__ = ["Gateway", "AuthGateway", "StorageGateway", "TableGateway"]


class Gateway:
    def __init__(
        self,
        session_factory: Optional[sessionmaker] = None,
        storage: Optional[StorageGateway] = None,
        provider: Optional[SessionProvider] = None,
    ):
        self._session_factory = session_factory or SessionLocal
        self.auth = AuthGateway(self._session_factory, provider or SessionProvider())
        self.storage = storage or StorageGateway()

    def table(self, name: str) -> TableGateway:
        return TableGateway(self._session_factory, name)
