# storefront/gateway/auth.py
from typing import Optional
import logging

import jwt
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from starlette.concurrency import run_in_threadpool

from storefront.core.session import AuthListener, SessionProvider, Subscription
from storefront.db.models import User, UserRole
from storefront.errors import GatewayError
from storefront.gateway.tables import describe
from storefront.schemas import AuthSession, AuthUser
from storefront.security.utils import create_access_token, decode_token, hash_password, verify_password

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def _session_from_token(token: str) -> Optional[AuthSession]:
    try:
        claims = decode_token(token)
    except jwt.PyJWTError:
        return None
    if claims.get("type") != "access" or not claims.get("sub"):
        return None
    return AuthSession(
        access_token=token,
        user=AuthUser(id=claims["sub"], email=claims.get("email", "")),
        expires_at=claims["exp"],
    )


class AuthGateway:
    """Identity service: email/password accounts, JWT sessions and role checks."""

    def __init__(self, session_factory: sessionmaker, provider: SessionProvider):
        self._session_factory = session_factory
        self.provider = provider

    async def _run(self, fn):
        def _call():
            with self._session_factory() as db:
                try:
                    return fn(db)
                except SQLAlchemyError as exc:
                    db.rollback()
                    raise GatewayError(describe(exc)) from exc
        return await run_in_threadpool(_call)

    async def restore(self, access_token: str) -> Optional[AuthSession]:
        """Adopt a token presented by the client (cookie or bearer header)."""
        session = _session_from_token(access_token)
        if session is not None:
            await self.provider.set(session, "INITIAL_SESSION")
        return session

    async def get_user(self) -> Optional[AuthUser]:
        current = self.provider.current
        if current is None:
            return None
        # re-validate: the token may have expired since it was adopted
        if _session_from_token(current.access_token) is None:
            return None
        exists = await self._run(lambda db: db.get(User, current.user.id) is not None)
        return current.user if exists else None

    async def sign_up(self, email: str, password: str) -> AuthUser:
        email = email.strip().lower()
        if len(password) < MIN_PASSWORD_LENGTH:
            raise GatewayError(f"Password should be at least {MIN_PASSWORD_LENGTH} characters")

        def _create(db):
            if db.execute(select(User.id).where(User.email == email)).first():
                raise GatewayError("User already registered")
            user = User(email=email, password_hash=hash_password(password))
            db.add(user); db.commit(); db.refresh(user)
            return AuthUser(id=user.id, email=user.email)
        user = await self._run(_create)
        logger.info("registered user id=%s", user.id)
        return user

    async def sign_in(self, email: str, password: str) -> AuthSession:
        email = email.strip().lower()
        user = await self._run(lambda db: db.execute(select(User).where(User.email == email)).scalars().first())
        if not user or not await run_in_threadpool(verify_password, password, user.password_hash):
            logger.info("sign-in rejected for %s", email)
            raise GatewayError("Invalid login credentials")
        token, exp = create_access_token(user.id, user.email)
        session = AuthSession(access_token=token, user=AuthUser(id=user.id, email=user.email), expires_at=exp)
        await self.provider.set(session, "SIGNED_IN")
        return session

    async def sign_out(self) -> None:
        await self.provider.set(None, "SIGNED_OUT")

    async def has_role(self, user_id: str, role: str) -> bool:
        stmt = select(UserRole.id).where(UserRole.user_id == user_id, UserRole.role == role)
        return await self._run(lambda db: db.execute(stmt).first() is not None)

    def on_auth_state_change(self, listener: AuthListener) -> Subscription:
        return self.provider.subscribe(listener)
