"""JSON-over-HTTP helper with timeout, bounded retries and failure classification."""

import asyncio
from typing import Any, Dict, Iterable, Optional

import httpx

from ebay_api.config.constants import (
    HTTP_BACKOFF_SECONDS,
    HTTP_RETRIES,
    HTTP_TIMEOUT_SECONDS,
    RETRYABLE_STATUS_CODES,
)
from ebay_api.core.errors import ExternalAPIError, TransientNetworkError
from ebay_api.core.logger import setup_logger

logger = setup_logger(__name__)


async def request_json(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    params: Optional[Dict[str, Any]] = None,
    json: Any = None,
    data: Optional[Dict[str, str]] = None,
    timeout: float = HTTP_TIMEOUT_SECONDS,
    retries: int = HTTP_RETRIES,
    retry_status_codes: Iterable[int] = RETRYABLE_STATUS_CODES,
    backoff_seconds: float = HTTP_BACKOFF_SECONDS,
) -> Any:
    """
    Send a request and decode the JSON body.

    Retryable statuses, timeouts and connection errors are retried up to
    ``retries`` times with exponential backoff. Any other non-2xx response
    fails immediately.

    Returns:
        Decoded JSON body, or None for an empty body

    Raises:
        TransientNetworkError: retries exhausted
        ExternalAPIError: non-retryable status or undecodable body
    """
    retry_status_codes = set(retry_status_codes)

    for attempt in range(retries + 1):
        try:
            response = await client.request(
                method,
                url,
                headers=headers,
                params=params,
                json=json,
                data=data,
                timeout=timeout,
            )

            status = response.status_code
            if status in retry_status_codes:
                raise TransientNetworkError(f"Retryable HTTP {status}", status_code=status, body=response.text[:500])
            if not response.is_success:
                raise ExternalAPIError(
                    f"HTTP {status} calling {method} {url}",
                    status_code=status,
                    body=response.text[:500],
                )

            if not response.content:
                return None
            try:
                return response.json()
            except ValueError as e:
                raise ExternalAPIError(f"Invalid JSON from {method} {url}", status_code=status) from e

        except (httpx.TimeoutException, httpx.TransportError, TransientNetworkError) as e:
            error = e if isinstance(e, TransientNetworkError) else TransientNetworkError(
                f"{type(e).__name__} calling {method} {url}: {e}"
            )
            if attempt >= retries:
                logger.error(f"{method} {url} failed after {attempt + 1} attempts: {error}")
                if error is e:
                    raise
                raise error from e

            retry_delay = backoff_seconds * (2 ** attempt)
            logger.warning(
                f"{method} {url} failed, retrying in {retry_delay:.2f}s (attempt {attempt + 1}/{retries + 1})",
                extra={"status_code": error.status_code},
            )
            await asyncio.sleep(retry_delay)
