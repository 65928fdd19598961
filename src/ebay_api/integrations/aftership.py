"""AfterShip Tracking API client.

Auth header ``as-api-key``; carriers are auto-detected on creation and the
provider reference is the carrier slug AfterShip assigns.
"""

import re
from typing import Optional
from urllib.parse import quote

import httpx

from ebay_api.api.http import request_json
from ebay_api.config.constants import (
    HTTP_RETRIES,
    HTTP_TIMEOUT_SECONDS,
    PROVIDER_AFTERSHIP,
    SUMMARY_SEPARATOR,
)
from ebay_api.core.errors import ExternalAPIError
from ebay_api.core.logger import setup_logger
from ebay_api.integrations.tracking_provider import TrackingProvider, join_summary, parse_timestamp
from ebay_api.models.tracking import (
    AfterShipTracking,
    AfterShipTrackingListResponse,
    AfterShipTrackingResponse,
    TrackingSnapshot,
)

logger = setup_logger(__name__)

BASE_URL = "https://api.aftership.com/tracking/2025-07"

# meta.code AfterShip returns when creating a tracking it already has
TRACKING_ALREADY_EXISTS = 4003
_META_CODE = re.compile(r'"code"\s*:\s*(\d+)')


def _is_already_exists(error: ExternalAPIError) -> bool:
    if error.status_code != 400 or not error.body:
        return False
    return any(int(code) == TRACKING_ALREADY_EXISTS for code in _META_CODE.findall(error.body))


class AfterShipClient(TrackingProvider):
    """Carrier auto-detecting provider keyed by api-key header."""

    name = PROVIDER_AFTERSHIP

    def __init__(
        self,
        api_key: str,
        http_client: Optional[httpx.AsyncClient] = None,
        base_url: str = BASE_URL,
        timeout: float = HTTP_TIMEOUT_SECONDS,
        retries: int = HTTP_RETRIES,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self.retries = retries
        self._owns_client = http_client is None
        self.client = http_client or httpx.AsyncClient()

    def parse_reference(self, value: Optional[str]) -> Optional[str]:
        slug = (value or "").strip()
        return slug or None

    async def register(self, tracking_number: str, carrier_code: Optional[str] = None) -> Optional[str]:
        body = {"tracking_number": tracking_number}
        if carrier_code:
            body["slug"] = carrier_code.lower()

        try:
            data = await request_json(
                self.client,
                "POST",
                f"{self.base_url}/trackings",
                headers={"as-api-key": self.api_key, "Content-Type": "application/json"},
                json=body,
                timeout=self.timeout,
                retries=self.retries,
            )
        except ExternalAPIError as e:
            if not _is_already_exists(e):
                raise
            logger.info(
                "AfterShip already tracks this number, looking up its slug",
                extra={"tracking_number": tracking_number},
            )
            return await self._find_existing_slug(tracking_number)

        parsed = AfterShipTrackingResponse.model_validate(data)
        return parsed.data.slug or None

    async def _find_existing_slug(self, tracking_number: str) -> Optional[str]:
        data = await request_json(
            self.client,
            "GET",
            f"{self.base_url}/trackings",
            headers={"as-api-key": self.api_key},
            params={"tracking_numbers": tracking_number},
            timeout=self.timeout,
            retries=self.retries,
        )
        if not data:
            return None

        parsed = AfterShipTrackingListResponse.model_validate(data)
        for tracking in parsed.data.trackings:
            if tracking.tracking_number == tracking_number and tracking.slug:
                return tracking.slug
        return None

    async def fetch(self, reference: str, tracking_number: str) -> Optional[AfterShipTracking]:
        url = f"{self.base_url}/trackings/{quote(reference, safe='')}/{quote(tracking_number, safe='')}"
        data = await request_json(
            self.client,
            "GET",
            url,
            headers={"as-api-key": self.api_key},
            timeout=self.timeout,
            retries=self.retries,
        )
        if not data:
            return None
        return AfterShipTrackingResponse.model_validate(data).data

    def summarize(self, live: AfterShipTracking) -> TrackingSnapshot:
        return get_tracking_last_checkpoint(live)

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()


def get_tracking_last_checkpoint(tracking: AfterShipTracking) -> TrackingSnapshot:
    """Extract the latest checkpoint, preferring ``last_checkpoint`` over the list tail."""
    last = tracking.last_checkpoint
    if last is None and tracking.checkpoints:
        last = tracking.checkpoints[-1]

    tag = tracking.tag or (last.tag if last else None)
    delivered_at = parse_timestamp(tracking.delivered_at or tracking.shipment_delivery_date)

    return TrackingSnapshot(
        checkpoint_at=parse_timestamp(last.checkpoint_time) if last else None,
        tag=tag,
        summary=join_summary(last.message if last else None, last.location if last else None, SUMMARY_SEPARATOR),
        delivered_at=delivered_at,
        carrier_name=tracking.slug,
    )
