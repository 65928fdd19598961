"""Tracking worker wiring and lifecycle."""

from typing import Dict, Optional

import httpx

from ebay_api.api.client import EbayAPIClient
from ebay_api.config.settings import Settings
from ebay_api.core.errors import ConfigurationError
from ebay_api.core.logger import setup_logger
from ebay_api.db import get_engine, get_session_factory, init_db
from ebay_api.integrations.discord import DiscordTransport
from ebay_api.integrations.tracking_provider import TrackingProvider, create_tracking_provider
from ebay_worker.repositories.sql_repository import SQLRepository
from ebay_worker.services.credential_manager import CredentialManager
from ebay_worker.services.notification_fanout import NotificationFanout
from ebay_worker.services.order_sync import OrderSynchronizer
from ebay_worker.services.reconciliation_scheduler import ReconciliationScheduler
from ebay_worker.services.reconciliation_service import ReconciliationService
from ebay_worker.services.tracking_sync import TrackingSynchronizer

logger = setup_logger(__name__)

EBAY_ENVIRONMENTS = ("production", "sandbox")


class TrackingWorker:
    """Background worker exposing only a start/stop lifecycle."""

    def __init__(
        self,
        engine,
        http_client: httpx.AsyncClient,
        scheduler: ReconciliationScheduler,
        create_tables: bool = False,
    ):
        self.engine = engine
        self.http_client = http_client
        self.scheduler = scheduler
        self.create_tables = create_tables
        self._started = False
        self._stopped = False

    async def start(self) -> None:
        if self._started:
            logger.warning("Tracking worker already started")
            return

        if self.create_tables:
            await init_db(self.engine)

        await self.scheduler.start()
        self._started = True
        logger.info("Tracking worker started")

    async def stop(self) -> None:
        """Stop scheduling, drain the in-flight sweep and release resources."""
        if self._stopped:
            return
        self._stopped = True

        await self.scheduler.stop()
        await self.http_client.aclose()
        await self.engine.dispose()
        logger.info("Tracking worker stopped")


def create_worker(
    settings: Settings,
    http_client: Optional[httpx.AsyncClient] = None,
    create_tables: bool = False,
) -> TrackingWorker:
    """
    Build the worker from configuration.

    Steps:
    1. Validate required settings
    2. Create database engine and repository
    3. Create eBay, tracking provider and Discord clients on one HTTP client
    4. Create services and scheduler

    Raises:
        ConfigurationError: Required settings are missing
    """
    missing = settings.missing_required()
    if missing:
        raise ConfigurationError(f"Missing required settings: {', '.join(missing)}")

    logger.info("Initializing tracking worker...")

    engine = get_engine(settings.database_url)
    repository = SQLRepository(get_session_factory(engine))

    http_client = http_client or httpx.AsyncClient(timeout=settings.http_timeout_seconds)

    api_clients: Dict[str, EbayAPIClient] = {
        environment: EbayAPIClient(
            client_id=settings.ebay_client_id,
            client_secret=settings.ebay_client_secret,
            environment=environment,
            http_client=http_client,
            timeout=settings.http_timeout_seconds,
            retries=settings.http_retries,
        )
        for environment in EBAY_ENVIRONMENTS
    }

    provider: Optional[TrackingProvider] = create_tracking_provider(settings, http_client=http_client)
    transport = DiscordTransport(
        settings.discord_token,
        http_client=http_client,
        timeout=settings.http_timeout_seconds,
        retries=settings.http_retries,
    )

    credential_manager = CredentialManager(
        repository,
        api_clients,
        settings.token_encryption_key,
        default_scopes=settings.ebay_oauth_scopes,
    )
    order_sync = OrderSynchronizer(
        repository,
        api_clients,
        provider_name=provider.name if provider else settings.tracking_provider,
    )
    tracking_sync = (
        TrackingSynchronizer(repository, provider, NotificationFanout(transport)) if provider else None
    )
    service = ReconciliationService(repository, credential_manager, order_sync, tracking_sync)

    scheduler = ReconciliationScheduler(
        service,
        mode=settings.sync_schedule_mode,
        tz_name=settings.sync_timezone,
        hour=settings.sync_hour,
        minute=settings.sync_minute,
        interval_seconds=settings.sync_interval_seconds,
    )

    logger.info(
        f"Tracking worker ready (provider={provider.name if provider else 'none'}, "
        f"schedule={settings.sync_schedule_mode})"
    )
    return TrackingWorker(engine, http_client, scheduler, create_tables=create_tables)
