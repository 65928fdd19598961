"""
Credential Manager for linked eBay accounts.

Returns a usable access token per account, refreshing it through the OAuth
refresh grant when the cached one is missing or about to expire, and keeps
both tokens encrypted at rest.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Callable, Mapping, Optional

from ebay_api.api.client import EbayAPIClient
from ebay_api.config.constants import (
    ACCESS_TOKEN_LEEWAY_SECONDS,
    HTTP_BACKOFF_SECONDS,
    INVALID_GRANT_STATUSES,
    TOKEN_REFRESH_RETRIES,
)
from ebay_api.core.crypto import decrypt_secret, encrypt_secret
from ebay_api.core.errors import (
    AuthenticationError,
    AuthInvalidError,
    ExternalAPIError,
    FormatError,
    PersistenceError,
    TransientNetworkError,
)
from ebay_api.core.logger import setup_logger
from ebay_api.models.ebay import TokenResponse
from ebay_api.models.records import Account
from ebay_worker.repositories.base import SyncRepository

logger = setup_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CredentialManager:
    """Hands out valid access tokens for linked accounts."""

    def __init__(
        self,
        repository: SyncRepository,
        api_clients: Mapping[str, EbayAPIClient],
        encryption_key: str,
        default_scopes: str = "",
        retries: int = TOKEN_REFRESH_RETRIES,
        backoff_seconds: float = HTTP_BACKOFF_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """
        Initialize credential manager.

        Args:
            repository: Persistence boundary
            api_clients: eBay API clients keyed by environment
            encryption_key: Secret used to encrypt tokens at rest
            default_scopes: Scopes requested for accounts that stored none
            retries: Additional refresh attempts on transient failures
        """
        self.repository = repository
        self.api_clients = api_clients
        self.encryption_key = encryption_key
        self.default_scopes = default_scopes
        self.retries = retries
        self.backoff_seconds = backoff_seconds
        self.clock = clock

    def _client_for(self, account: Account) -> EbayAPIClient:
        client = self.api_clients.get(account.environment)
        if client is None:
            raise ExternalAPIError(f"No eBay API client for environment '{account.environment}'")
        return client

    def _cached_access_token(self, account: Account) -> Optional[str]:
        if not account.access_token_enc or not account.access_token_expires_at:
            return None

        remaining = account.access_token_expires_at - self.clock()
        if remaining.total_seconds() <= ACCESS_TOKEN_LEEWAY_SECONDS:
            return None

        try:
            return decrypt_secret(account.access_token_enc, self.encryption_key)
        except (FormatError, AuthenticationError) as e:
            logger.warning(
                f"Stored access token could not be decrypted, refreshing: {e}",
                extra={"account_id": account.id},
            )
            return None

    async def _refresh_with_retry(self, account: Account, refresh_token: str) -> TokenResponse:
        client = self._client_for(account)
        scopes = account.scopes or self.default_scopes
        attempt = 0
        while True:
            try:
                return await client.refresh_access_token(refresh_token, scopes)
            except TransientNetworkError as e:
                if attempt >= self.retries:
                    raise
                delay = self.backoff_seconds * (2 ** attempt)
                attempt += 1
                logger.warning(
                    f"Token refresh failed ({e}), retry {attempt}/{self.retries} in {delay:.2f}s",
                    extra={"account_id": account.id},
                )
                await asyncio.sleep(delay)
            except ExternalAPIError as e:
                if e.status_code in INVALID_GRANT_STATUSES:
                    raise AuthInvalidError(
                        f"Refresh token rejected (HTTP {e.status_code}); account must re-authorize"
                    ) from e
                raise

    async def get_valid_access_token(self, account: Account) -> str:
        """
        Return a usable access token for the account.

        Raises:
            AuthInvalidError: The refresh token is rejected or undecryptable
            TransientNetworkError: Refresh retries exhausted
        """
        cached = self._cached_access_token(account)
        if cached:
            return cached

        try:
            refresh_token = decrypt_secret(account.refresh_token_enc, self.encryption_key)
        except (FormatError, AuthenticationError) as e:
            raise AuthInvalidError(f"Stored refresh token could not be decrypted: {e}") from e

        token = await self._refresh_with_retry(account, refresh_token)
        expires_at = self.clock() + timedelta(seconds=token.expires_in)
        access_token_enc = encrypt_secret(token.access_token, self.encryption_key)

        try:
            await self.repository.update_access_token(account.id, access_token_enc, expires_at)
        except PersistenceError as e:
            logger.error(
                f"Failed to persist refreshed access token: {e}",
                extra={"account_id": account.id},
            )
        else:
            account.access_token_enc = access_token_enc
            account.access_token_expires_at = expires_at

        logger.info(
            "Access token refreshed",
            extra={"account_id": account.id, "expires_at": expires_at.isoformat()},
        )
        return token.access_token
