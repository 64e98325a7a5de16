# storefront/core/session.py
from typing import Awaitable, Callable, List, Literal, Optional, Union
import inspect
import logging

from storefront.schemas import AuthSession

logger = logging.getLogger(__name__)

AuthEvent = Literal["INITIAL_SESSION", "SIGNED_IN", "SIGNED_OUT"]
AuthListener = Callable[[AuthEvent, Optional[AuthSession]], Union[None, Awaitable[None]]]


class Subscription:
    """Handle returned by SessionProvider.subscribe; unsubscribe on teardown."""

    def __init__(self, provider: "SessionProvider", listener: AuthListener):
        self._provider = provider
        self._listener = listener
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self._provider._discard(self._listener)
            self.active = False


class SessionProvider:
    """
    Holds the current auth session and tells subscribers when it changes.
    Listeners may be plain callables or coroutine functions.
    """

    def __init__(self):
        self._session: Optional[AuthSession] = None
        self._listeners: List[AuthListener] = []

    @property
    def current(self) -> Optional[AuthSession]:
        return self._session

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def subscribe(self, listener: AuthListener) -> Subscription:
        self._listeners.append(listener)
        return Subscription(self, listener)

    def _discard(self, listener: AuthListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    async def set(self, session: Optional[AuthSession], event: AuthEvent) -> None:
        self._session = session
        logger.debug("auth event=%s user=%s listeners=%d", event, session.user.id if session else None, len(self._listeners))
        # copy: listeners may unsubscribe while being notified
        for listener in list(self._listeners):
            result = listener(event, session)
            if inspect.isawaitable(result):
                await result
