"""Error taxonomy shared by the API clients and the sync worker."""

from typing import Optional


class RelayError(Exception):
    """Base class for all errors raised by this project."""


class ConfigurationError(RelayError):
    """Required configuration is missing or invalid."""


class ExternalAPIError(RelayError):
    """An external HTTP call failed with a non-retryable outcome."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    @property
    def retryable(self) -> bool:
        return False


class TransientNetworkError(ExternalAPIError):
    """Timeout, connection failure or retryable HTTP status."""

    @property
    def retryable(self) -> bool:
        return True


class AuthInvalidError(RelayError):
    """The stored refresh token was rejected; the account must re-authorize."""


class PersistenceError(RelayError):
    """Wraps any storage failure."""


class FormatError(RelayError):
    """Ciphertext envelope is malformed."""


class AuthenticationError(RelayError):
    """Ciphertext integrity tag did not verify."""
