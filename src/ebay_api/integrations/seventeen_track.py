"""17TRACK Tracking API v2.4 client.

Auth header ``17token``; base URL https://api.17track.net/track/v2.4.
The provider reference is the numeric 17TRACK carrier id.
"""

from datetime import datetime
from typing import List, Optional

import httpx

from ebay_api.api.http import request_json
from ebay_api.config.constants import (
    HTTP_RETRIES,
    HTTP_TIMEOUT_SECONDS,
    PROVIDER_SEVENTEEN_TRACK,
    SUMMARY_SEPARATOR,
)
from ebay_api.core.logger import setup_logger
from ebay_api.integrations.tracking_provider import TrackingProvider, join_summary, parse_timestamp
from ebay_api.models.tracking import (
    SeventeenTrackEvent,
    SeventeenTrackRegisterResponse,
    SeventeenTrackTrackInfo,
    SeventeenTrackTrackInfoResponse,
    TrackingSnapshot,
)

logger = setup_logger(__name__)

BASE_URL = "https://api.17track.net/track/v2.4"


class SeventeenTrackClient(TrackingProvider):
    """Multi-carrier provider requiring explicit carrier ids."""

    name = PROVIDER_SEVENTEEN_TRACK

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

    async def _post(self, path: str, body: list):
        return await request_json(
            self.client,
            "POST",
            f"{self.base_url}{path}",
            headers={"17token": self.api_key, "Content-Type": "application/json"},
            json=body,
            timeout=self.timeout,
            retries=self.retries,
        )

    def parse_reference(self, value: Optional[str]) -> Optional[str]:
        if not value:
            return None
        try:
            carrier = int(value)
        except (TypeError, ValueError):
            return None
        return str(carrier) if carrier > 0 else None

    async def register(self, tracking_number: str, carrier_code: Optional[str] = None) -> Optional[str]:
        data = await self._post("/register", [{"number": tracking_number}])
        parsed = SeventeenTrackRegisterResponse.model_validate(data)

        for accepted in parsed.data.accepted:
            if accepted.number == tracking_number:
                return str(accepted.carrier)

        for rejected in parsed.data.rejected:
            if rejected.number == tracking_number:
                logger.info(
                    f"17TRACK rejected registration: {rejected.error.message}",
                    extra={"tracking_number": tracking_number, "error_code": rejected.error.code},
                )
        return None

    async def fetch(self, reference: str, tracking_number: str) -> Optional[SeventeenTrackTrackInfo]:
        data = await self._post("/gettrackinfo", [{"number": tracking_number, "carrier": int(reference)}])
        parsed = SeventeenTrackTrackInfoResponse.model_validate(data)

        for accepted in parsed.data.accepted:
            if accepted.number == tracking_number and accepted.track_info is not None:
                return accepted.track_info

        logger.debug(
            f"17TRACK returned no track_info (code={parsed.code})",
            extra={"tracking_number": tracking_number, "carrier": reference},
        )
        return None

    def summarize(self, live: SeventeenTrackTrackInfo) -> TrackingSnapshot:
        return get_tracking_last_checkpoint(live)

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()


def _event_time(event: Optional[SeventeenTrackEvent]) -> Optional[datetime]:
    if event is None:
        return None
    return parse_timestamp(event.time_utc or event.time_iso)


def _all_events(track_info: SeventeenTrackTrackInfo) -> List[SeventeenTrackEvent]:
    events: List[SeventeenTrackEvent] = []
    providers = track_info.tracking.providers if track_info.tracking else []
    for provider in providers:
        events.extend(provider.events)
    return events


def _carrier_name(track_info: SeventeenTrackTrackInfo) -> Optional[str]:
    providers = track_info.tracking.providers if track_info.tracking else []
    for provider in providers:
        if provider.provider and provider.provider.name:
            return provider.provider.name
    return None


def get_tracking_last_checkpoint(track_info: SeventeenTrackTrackInfo) -> TrackingSnapshot:
    """
    Extract the newest checkpoint from all carrier providers.

    The delivered time is the newest event staged as delivered, falling back
    to the latest event (or checkpoint) time when the overall status says
    delivered.
    """
    events = _all_events(track_info)

    best_event = None
    best_at = None
    for event in events:
        event_at = _event_time(event)
        if event_at is None:
            continue
        if best_at is None or event_at > best_at:
            best_at = event_at
            best_event = event

    summary = join_summary(
        best_event.description if best_event else None,
        best_event.location if best_event else None,
        SUMMARY_SEPARATOR,
    )

    latest = track_info.latest_status
    tag = (
        (latest.status if latest else None)
        or (latest.sub_status if latest else None)
        or (best_event.stage if best_event else None)
        or (best_event.sub_status if best_event else None)
    )

    delivered_times = [
        event_at
        for event in events
        if (event.stage or "").lower() == "delivered" or (event.sub_status or "").lower() == "delivered"
        for event_at in [_event_time(event)]
        if event_at is not None
    ]

    delivered_at = max(delivered_times) if delivered_times else None
    if delivered_at is None and tag and tag.lower() == "delivered":
        delivered_at = _event_time(track_info.latest_event) or best_at

    return TrackingSnapshot(
        checkpoint_at=best_at,
        tag=tag,
        summary=summary,
        delivered_at=delivered_at,
        carrier_name=_carrier_name(track_info),
    )
