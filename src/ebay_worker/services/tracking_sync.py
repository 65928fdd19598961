"""
Tracking Synchronizer.

Polls the configured tracking provider for every tracking number of an
account, persists checkpoint progress and notifies subscribers about
notification-worthy transitions.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional

from ebay_api.core.errors import PersistenceError
from ebay_api.core.logger import setup_logger
from ebay_api.integrations.tracking_provider import TrackingProvider
from ebay_api.models.records import Account, NotificationTarget, ShipmentTracking
from ebay_api.models.tracking import TrackingSnapshot
from ebay_worker.repositories.base import SyncRepository
from ebay_worker.services.event_detector import CheckpointState, TrackingEventType, detect_tracking_event
from ebay_worker.services.notification_fanout import FanoutResult, NotificationFanout
from ebay_worker.services.tracking_message import TrackingNotification, build_tracking_embed

logger = setup_logger(__name__)


@dataclass
class TrackingSyncResult:
    """Result of one account's tracking walk."""

    trackings_checked: int = 0
    trackings_skipped: int = 0
    events_detected: int = 0
    events_suppressed: int = 0
    errors: List[str] = field(default_factory=list)
    fanout: Optional[FanoutResult] = None


def should_suppress_delivered(
    event_type: TrackingEventType,
    tracking: ShipmentTracking,
    snapshot: TrackingSnapshot,
    last_tracking_sync_at: Optional[datetime],
) -> bool:
    """
    Hide historical deliveries discovered late.

    A delivered event is suppressed when the row never recorded a delivery
    and either the account never completed a tracking sync, or the delivery
    happened at or before max(last tracking sync, row creation).
    """
    if event_type != TrackingEventType.DELIVERED or tracking.delivered_at is not None:
        return False
    if last_tracking_sync_at is None:
        return True

    cutoff = max(last_tracking_sync_at, tracking.created_at)
    guard_at = snapshot.delivered_at or snapshot.checkpoint_at
    return guard_at is not None and guard_at <= cutoff


class TrackingSynchronizer:
    """Polls tracking state and turns transitions into notifications."""

    def __init__(
        self,
        repository: SyncRepository,
        provider: TrackingProvider,
        fanout: NotificationFanout,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.repository = repository
        self.provider = provider
        self.fanout = fanout
        self.clock = clock

    async def sync_trackings(self, account: Account) -> TrackingSyncResult:
        """
        Sync all tracking numbers of an account.

        Steps:
        1. Load tracking rows and notification targets
        2. For each row: resolve the provider reference, fetch, detect, persist
        3. Fan out the batch of rendered notifications
        4. Stamp the tracking sync marker

        Raises:
            PersistenceError: Tracking rows could not be loaded
        """
        result = TrackingSyncResult()
        trackings = await self.repository.list_shipment_trackings(account.id)

        try:
            targets: List[NotificationTarget] = await self.repository.list_notification_targets(account)
        except PersistenceError as e:
            logger.warning(f"Failed to load notification targets: {e}", extra={"account_id": account.id})
            targets = []

        notifications: List[TrackingNotification] = []
        for tracking in trackings:
            try:
                notification = await self._sync_tracking(account, tracking, result)
                if notification:
                    notifications.append(notification)
            except Exception as e:
                error_msg = f"Tracking sync failed for {tracking.tracking_number}: {e}"
                logger.warning(
                    error_msg,
                    extra={"account_id": account.id, "tracking_number": tracking.tracking_number},
                    exc_info=True,
                )
                result.errors.append(error_msg)

        if notifications:
            result.fanout = await self.fanout.notify(targets, notifications)

        synced_at = self.clock()
        try:
            await self.repository.update_sync_markers(account.id, last_tracking_sync_at=synced_at)
            account.last_tracking_sync_at = synced_at
        except PersistenceError as e:
            logger.warning(f"Failed to update last_tracking_sync_at: {e}", extra={"account_id": account.id})

        logger.info(
            f"Tracking sync completed: {result.trackings_checked} checked, {result.events_detected} events, "
            f"{result.events_suppressed} suppressed, {len(result.errors)} errors",
            extra={"account_id": account.id},
        )
        return result

    async def _register(self, tracking: ShipmentTracking) -> Optional[str]:
        try:
            return await self.provider.register(tracking.tracking_number, tracking.carrier_code)
        except Exception as e:
            logger.warning(
                f"Failed to register tracking with {self.provider.name}: {e}",
                extra={"tracking_number": tracking.tracking_number},
            )
            return None

    async def _save_reference(self, tracking: ShipmentTracking, reference: str) -> None:
        try:
            await self.repository.update_tracking_progress(tracking.id, provider_ref=reference)
            tracking.provider_ref = reference
        except PersistenceError as e:
            logger.warning(
                f"Failed to persist tracking provider reference: {e}",
                extra={"tracking_number": tracking.tracking_number},
            )

    async def _sync_tracking(
        self,
        account: Account,
        tracking: ShipmentTracking,
        result: TrackingSyncResult,
    ) -> Optional[TrackingNotification]:
        stored_ref = None
        if tracking.provider == self.provider.name:
            stored_ref = self.provider.parse_reference(tracking.provider_ref)

        reference = stored_ref or await self._register(tracking)
        if not reference:
            result.trackings_skipped += 1
            return None

        if reference != tracking.provider_ref:
            await self._save_reference(tracking, reference)

        live = await self.provider.fetch(reference, tracking.tracking_number)
        if live is None and stored_ref:
            # Stored reference may be stale
            refreshed = await self._register(tracking)
            if refreshed and refreshed != reference:
                reference = refreshed
                await self._save_reference(tracking, reference)
                live = await self.provider.fetch(reference, tracking.tracking_number)

        if live is None:
            result.trackings_skipped += 1
            return None

        result.trackings_checked += 1
        snapshot = self.provider.summarize(live)

        previous = CheckpointState(tracking.delivered_at, tracking.last_checkpoint_at, tracking.last_tag)
        current = CheckpointState(snapshot.delivered_at, snapshot.checkpoint_at, snapshot.tag)
        event_type = detect_tracking_event(previous, current)

        notification = None
        if should_suppress_delivered(event_type, tracking, snapshot, account.last_tracking_sync_at):
            result.events_suppressed += 1
            logger.info(
                "Suppressed historical delivered event",
                extra={"account_id": account.id, "tracking_number": tracking.tracking_number},
            )
        elif event_type != TrackingEventType.NONE:
            result.events_detected += 1
            notification = TrackingNotification(
                event_type=event_type,
                embed=build_tracking_embed(
                    event_type,
                    order_id=tracking.order_id,
                    tracking_number=tracking.tracking_number,
                    carrier=snapshot.carrier_name or tracking.carrier_code,
                    checkpoint_at=snapshot.checkpoint_at,
                    delivered_at=snapshot.delivered_at,
                    tag=snapshot.tag,
                    summary=snapshot.summary,
                    now=self.clock(),
                ),
            )

        try:
            await self.repository.save_tracking_snapshot(
                tracking.id,
                provider_ref=reference,
                last_checkpoint_at=snapshot.checkpoint_at,
                delivered_at=snapshot.delivered_at,
                last_tag=snapshot.tag,
                last_checkpoint_summary=snapshot.summary,
            )
        except PersistenceError as e:
            logger.warning(
                f"Failed to persist tracking progress: {e}",
                extra={"tracking_number": tracking.tracking_number},
            )

        return notification
