"""Tracking provider capability interface and configuration-driven selection."""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from ebay_api.config.constants import PROVIDER_AFTERSHIP, PROVIDER_SEVENTEEN_TRACK
from ebay_api.core.errors import ConfigurationError
from ebay_api.core.logger import setup_logger
from ebay_api.models.tracking import TrackingSnapshot

logger = setup_logger(__name__)


class TrackingProvider(ABC):
    """Abstract tracking provider.

    The tracking synchronizer only talks to this interface, so providers can
    be swapped through configuration.
    """

    name: str = ""

    @abstractmethod
    def parse_reference(self, value: Optional[str]) -> Optional[str]:
        """Validate a stored provider reference.

        Returns:
            The reference if it is usable, otherwise None
        """

    @abstractmethod
    async def register(self, tracking_number: str, carrier_code: Optional[str] = None) -> Optional[str]:
        """Register a tracking number with the provider.

        Returns:
            Provider reference (carrier id, slug) or None if not recognized
        """

    @abstractmethod
    async def fetch(self, reference: str, tracking_number: str) -> Optional[Any]:
        """Fetch the live tracking state, or None if the provider has none."""

    @abstractmethod
    def summarize(self, live: Any) -> TrackingSnapshot:
        """Extract the latest checkpoint state from a live response."""

    async def close(self) -> None:
        """Release provider resources."""


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp, assuming UTC when no offset is given."""
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def join_summary(message: Optional[str], location: Optional[str], separator: str) -> Optional[str]:
    parts = [part.strip() for part in (message, location) if part and part.strip()]
    return separator.join(parts) if parts else None


def create_tracking_provider(settings, http_client: Optional[httpx.AsyncClient] = None) -> Optional[TrackingProvider]:
    """
    Create the configured tracking provider.

    Returns:
        Provider instance, or None when tracking is disabled or has no API key
    """
    from ebay_api.integrations.aftership import AfterShipClient
    from ebay_api.integrations.seventeen_track import SeventeenTrackClient

    provider = (settings.tracking_provider or "").strip().lower()
    timeout = settings.http_timeout_seconds
    retries = settings.http_retries

    if provider in ("", "none"):
        logger.info("Tracking sync disabled (TRACKING_PROVIDER=none)")
        return None

    if provider == PROVIDER_SEVENTEEN_TRACK:
        if not settings.seventeentrack_api_key:
            logger.info("Tracking sync disabled (SEVENTEENTRACK_API_KEY not set)")
            return None
        return SeventeenTrackClient(settings.seventeentrack_api_key, http_client=http_client, timeout=timeout, retries=retries)

    if provider == PROVIDER_AFTERSHIP:
        if not settings.aftership_api_key:
            logger.info("Tracking sync disabled (AFTERSHIP_API_KEY not set)")
            return None
        return AfterShipClient(settings.aftership_api_key, http_client=http_client, timeout=timeout, retries=retries)

    raise ConfigurationError(f"Unknown TRACKING_PROVIDER: {settings.tracking_provider}")
