from typing import Optional


class StorefrontError(Exception):
    """Base class for every error the storefront raises on purpose."""


class GatewayError(StorefrontError):
    """The store, auth service or bucket answered with an error.

    ``message`` is user-facing and surfaced verbatim.
    """

    def __init__(self, message: str, *, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code


class NotFound(StorefrontError):
    """A single-entity lookup matched zero rows."""


class InvalidIdentifier(StorefrontError):
    """An item identifier could not be parsed into the store's key type."""


class DraftValidationError(StorefrontError):
    """A draft failed local validation; nothing was sent to the gateway."""


class DraftNotSaved(StorefrontError):
    """The operation needs a persisted item but the draft has no id yet."""
