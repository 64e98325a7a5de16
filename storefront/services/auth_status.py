import logging
from typing import Optional

from storefront.core.config import settings
from storefront.core.session import AuthEvent, Subscription
from storefront.errors import GatewayError
from storefront.schemas import AuthSession, AuthUser, Notice

logger = logging.getLogger(__name__)

SIGNED_OUT_NOTICE = Notice(title="Você saiu da sua conta.")


class AuthStatus:
    """Subscribes to session changes on mount and unsubscribes on unmount."""

    def __init__(self, gateway):
        self._gateway = gateway
        self._subscription: Optional[Subscription] = None
        self.user: Optional[AuthUser] = None
        self.is_admin = False

    @property
    def mounted(self) -> bool:
        return self._subscription is not None and self._subscription.active

    async def mount(self) -> "AuthStatus":
        self._subscription = self._gateway.auth.on_auth_state_change(self._on_change)
        await self.sync()
        return self

    def unmount(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    async def sync(self) -> None:
        try:
            self.user = await self._gateway.auth.get_user()
            self.is_admin = bool(self.user) and await self._gateway.auth.has_role(self.user.id, settings.ADMIN_ROLE)
        except GatewayError as exc:
            logger.warning("could not resolve signed-in user: %s", exc.message)
            self.user, self.is_admin = None, False

    async def _on_change(self, event: AuthEvent, session: Optional[AuthSession]) -> None:
        if session is None:
            self.user, self.is_admin = None, False
            return
        await self.sync()

    async def logout(self) -> Notice:
        await self._gateway.auth.sign_out()
        return SIGNED_OUT_NOTICE

    def as_dict(self) -> dict:
        return {
            "signed_in": self.user is not None,
            "email": self.user.email if self.user else None,
            "is_admin": self.is_admin,
        }
