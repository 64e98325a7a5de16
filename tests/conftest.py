"""Shared fixtures: an in-memory SQLite store, an in-memory bucket and an HTTP client."""

import os

# settings are read at import time
os.environ["POSTGRES_DSN"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["S3_PUBLIC_URL"] = "http://cdn.test"
os.environ["LOG_LEVEL"] = "WARNING"

from decimal import Decimal
from typing import Dict, Iterable, List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from storefront.core.config import settings
from storefront.db.models import Product, User, UserRole
from storefront.db.session import Base, engine_kwargs
from storefront.errors import GatewayError
from storefront.gateway import Gateway
from storefront.security.utils import create_access_token, hash_password


class MemoryStorage:
    """Bucket double with the StorageGateway interface.

    ``fail_after`` makes the n+1-th upload fail; ``fail_remove`` makes every
    removal fail.
    """

    def __init__(self, fail_after: Optional[int] = None, fail_remove: bool = False):
        self.objects: Dict[str, dict] = {}
        self.removed: List[str] = []
        self.fail_after = fail_after
        self.fail_remove = fail_remove
        self.uploads = 0

    async def upload(self, path, data, *, content_type=None, cache_control=None, upsert=False):
        if self.fail_after is not None and self.uploads >= self.fail_after:
            raise GatewayError("Storage unavailable: connection reset")
        if not upsert and path in self.objects:
            raise GatewayError("The resource already exists", code="Duplicate")
        self.uploads += 1
        self.objects[path] = {"data": data, "content_type": content_type, "cache_control": cache_control}
        return path

    async def remove(self, paths: Iterable[str]):
        if self.fail_remove:
            raise GatewayError("Access Denied.", code="AccessDenied")
        for p in paths:
            self.objects.pop(p, None)
            self.removed.append(p)

    def public_url(self, path: str) -> str:
        return f"http://cdn.test/{settings.S3_BUCKET}/{path}"


@pytest.fixture
def engine():
    eng = create_engine("sqlite://", **engine_kwargs("sqlite://"))
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def gateway(session_factory, storage):
    return Gateway(session_factory, storage)


@pytest.fixture
def add_product(session_factory):
    """Insert a product row directly and return its id."""

    def _add(name, category=None, *, price=None, item_type="product", is_active=True, sort_order=0, images=None, **extra):
        with session_factory() as db:
            obj = Product(
                name=name,
                category=category,
                price=None if price is None else Decimal(str(price)),
                item_type=item_type,
                is_active=is_active,
                sort_order=sort_order,
                images=images or [],
                **extra,
            )
            db.add(obj)
            db.commit()
            return obj.id

    return _add


@pytest.fixture
def make_user(session_factory):
    """Create a user (optionally with roles) and return ``(id, email, password)``."""

    def _make(email="cliente@newagro.com.br", password="segredo123", roles=()):
        with session_factory() as db:
            user = User(email=email, password_hash=hash_password(password))
            db.add(user)
            db.flush()
            for role in roles:
                db.add(UserRole(user_id=user.id, role=role))
            db.commit()
            return user.id, email, password

    return _make


@pytest.fixture
def admin_token(make_user):
    user_id, email, _ = make_user("admin@newagro.com.br", roles=(settings.ADMIN_ROLE,))
    token, _ = create_access_token(user_id, email)
    return token


@pytest.fixture
def client(session_factory, storage):
    from fastapi.testclient import TestClient

    from storefront.api.deps import get_session_factory, get_storage
    from storefront.main import app

    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_storage] = lambda: storage
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
