"""eBay Sell Fulfillment API and OAuth refresh client."""

import base64
from datetime import datetime, timezone
from typing import List, Optional, Sequence
from urllib.parse import quote

import httpx

from ebay_api.api.http import request_json
from ebay_api.config.constants import (
    HTTP_RETRIES,
    HTTP_TIMEOUT_SECONDS,
    ORDER_PAGE_SIZE,
    SYNCED_FULFILLMENT_STATUSES,
)
from ebay_api.core.logger import setup_logger
from ebay_api.models.ebay import (
    EbayOrder,
    GetOrdersResponse,
    GetShippingFulfillmentsResponse,
    ShippingFulfillment,
    TokenResponse,
)

logger = setup_logger(__name__)


def get_api_base_url(environment: str) -> str:
    return "https://api.sandbox.ebay.com" if environment == "sandbox" else "https://api.ebay.com"


def get_oauth_token_url(environment: str) -> str:
    return f"{get_api_base_url(environment)}/identity/v1/oauth2/token"


def build_orders_filter(
    last_modified_from: datetime,
    fulfillment_statuses: Optional[Sequence[str]] = SYNCED_FULFILLMENT_STATUSES,
) -> str:
    """
    Build the getOrders filter expression.

    Example:
        lastmodifieddate:[2024-01-01T00:00:00.000Z..],orderfulfillmentstatus:{FULFILLED|IN_PROGRESS}
    """
    from_utc = last_modified_from.astimezone(timezone.utc)
    from_iso = from_utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{from_utc.microsecond // 1000:03d}Z"
    expression = f"lastmodifieddate:[{from_iso}..]"
    if fulfillment_statuses:
        expression += ",orderfulfillmentstatus:{" + "|".join(fulfillment_statuses) + "}"
    return expression


class EbayAPIClient:
    """Async HTTP client for the eBay Sell Fulfillment API."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        environment: str = "production",
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = HTTP_TIMEOUT_SECONDS,
        retries: int = HTTP_RETRIES,
    ):
        """Initialize API client with application credentials."""
        self.client_id = client_id
        self.client_secret = client_secret
        self.environment = environment
        self.base_url = get_api_base_url(environment)
        self.timeout = timeout
        self.retries = retries
        self._owns_client = http_client is None
        self.client = http_client or httpx.AsyncClient()

    def _basic_auth_header(self) -> str:
        token = base64.b64encode(f"{self.client_id}:{self.client_secret}".encode("utf-8")).decode("ascii")
        return f"Basic {token}"

    async def _get(self, url: str, access_token: str, params: Optional[dict] = None):
        return await request_json(
            self.client,
            "GET",
            url,
            headers={"Authorization": f"Bearer {access_token}"},
            params=params,
            timeout=self.timeout,
            retries=self.retries,
        )

    async def refresh_access_token(self, refresh_token: str, scopes: str) -> TokenResponse:
        """
        Exchange a refresh token for a new access token.

        Raises:
            ExternalAPIError: with status 400/401 when the refresh token is rejected
            TransientNetworkError: retries exhausted
        """
        logger.info("Refreshing eBay access token", extra={"environment": self.environment})
        data = await request_json(
            self.client,
            "POST",
            get_oauth_token_url(self.environment),
            headers={
                "Authorization": self._basic_auth_header(),
                "Content-Type": "application/x-www-form-urlencoded",
            },
            data={
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "scope": scopes,
            },
            timeout=self.timeout,
            retries=self.retries,
        )
        return TokenResponse.model_validate(data)

    async def list_orders(
        self,
        access_token: str,
        filter_expression: str,
        limit: int = ORDER_PAGE_SIZE,
        offset: int = 0,
    ) -> List[EbayOrder]:
        """Fetch one page of orders matching the filter."""
        data = await self._get(
            f"{self.base_url}/sell/fulfillment/v1/order",
            access_token,
            params={"filter": filter_expression, "limit": str(limit), "offset": str(offset)},
        )
        return GetOrdersResponse.model_validate(data or {}).orders

    async def list_fulfillments(self, access_token: str, order_id: str) -> List[ShippingFulfillment]:
        """Fetch the shipping fulfillments of one order."""
        url = f"{self.base_url}/sell/fulfillment/v1/order/{quote(order_id, safe='')}/shipping_fulfillment"
        data = await self._get(url, access_token)
        return GetShippingFulfillmentsResponse.model_validate(data or {}).fulfillments

    async def close(self) -> None:
        """Close HTTP client connection."""
        if self._owns_client:
            await self.client.aclose()
