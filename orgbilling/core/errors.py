from __future__ import annotations

from starlette import status


class BillingError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "", *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(BillingError):
    """Bad or missing input, including unknown plan names."""

    status_code = 422


class ConflictError(ValidationError):
    status_code = status.HTTP_409_CONFLICT


class NotFoundError(BillingError):
    status_code = status.HTTP_404_NOT_FOUND


class AuthError(BillingError):
    """Webhook signature could not be verified."""

    status_code = status.HTTP_400_BAD_REQUEST


class ProviderError(BillingError):
    """A Stripe API call failed.

    ``code`` mirrors Stripe's error code (``resource_missing`` and friends) so
    callers can branch on it without importing the SDK.
    """

    def __init__(self, message: str = "", *, code: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message, status_code=status_code)
        self.code = code

    @property
    def resource_missing(self) -> bool:
        return self.code == "resource_missing"


class PersistenceError(BillingError):
    pass


class SerializationError(PersistenceError):
    pass
