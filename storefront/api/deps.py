from functools import lru_cache
from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import sessionmaker

from storefront.core.config import settings
from storefront.db.session import SessionLocal
from storefront.errors import GatewayError
from storefront.gateway import Gateway
from storefront.gateway.storage import StorageGateway
from storefront.schemas import AuthUser

security = HTTPBearer(auto_error=False)

def get_session_factory() -> sessionmaker:
    return SessionLocal

@lru_cache
def get_storage() -> StorageGateway:
    return StorageGateway()

async def get_gateway(
    request: Request,
    creds: Optional[HTTPAuthorizationCredentials] = Depends(security),
    session_factory: sessionmaker = Depends(get_session_factory),
    storage: StorageGateway = Depends(get_storage),
) -> Gateway:
    """A gateway whose session is the caller's bearer token or session cookie."""
    gateway = Gateway(session_factory, storage)
    token = creds.credentials if creds else request.cookies.get(settings.SESSION_COOKIE)
    if token:
        await gateway.auth.restore(token)
    return gateway

async def get_current_user(gateway: Gateway = Depends(get_gateway)) -> AuthUser:
    try:
        user = await gateway.auth.get_user()
    except GatewayError as exc:
        raise HTTPException(status_code=502, detail=exc.message)
    if not user: raise HTTPException(status_code=401, detail='Not authenticated')
    return user

async def require_admin(user: AuthUser = Depends(get_current_user), gateway: Gateway = Depends(get_gateway)) -> AuthUser:
    try:
        ok = await gateway.auth.has_role(user.id, settings.ADMIN_ROLE)
    except GatewayError as exc:
        raise HTTPException(status_code=502, detail=exc.message)
    if not ok: raise HTTPException(status_code=403, detail='Forbidden')
    return user
