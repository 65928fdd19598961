"""
Notification Fan-out.

Delivers one account's batch of tracking notifications to every guild
channel and direct-message recipient resolved for the account. Each
destination is isolated: a failure in one never prevents delivery to the
others.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ebay_api.config.constants import MESSAGES_PER_CHUNK
from ebay_api.core.logger import setup_logger
from ebay_api.integrations.notification_transport import NotificationTransport
from ebay_api.models.records import NotificationTarget
from ebay_worker.services.event_detector import TrackingEventType
from ebay_worker.services.tracking_message import TrackingNotification

logger = setup_logger(__name__)


@dataclass
class ChannelDestination:
    guild_id: str
    channel_id: str
    role_ids: List[str] = field(default_factory=list)
    subscriber_ids: List[str] = field(default_factory=list)


@dataclass
class FanoutResult:
    channels_delivered: int = 0
    channels_skipped: int = 0
    channels_failed: int = 0
    dms_delivered: int = 0
    dms_failed: int = 0


def chunk_embeds(embeds: Sequence[Dict[str, Any]], size: int = MESSAGES_PER_CHUNK) -> List[List[Dict[str, Any]]]:
    return [list(embeds[i:i + size]) for i in range(0, len(embeds), size)]


def group_channel_destinations(targets: Sequence[NotificationTarget]) -> List[ChannelDestination]:
    """Merge targets sharing a (guild, channel) pair."""
    destinations: Dict[Tuple[str, str], ChannelDestination] = {}
    for target in targets:
        if not target.send_channel or not target.notify_channel_id:
            continue
        key = (target.guild_id, target.notify_channel_id)
        destination = destinations.setdefault(key, ChannelDestination(*key))
        if target.mention_role_id and target.mention_role_id not in destination.role_ids:
            destination.role_ids.append(target.mention_role_id)
        if target.discord_user_id not in destination.subscriber_ids:
            destination.subscriber_ids.append(target.discord_user_id)
    return list(destinations.values())


def collect_dm_recipients(targets: Sequence[NotificationTarget]) -> List[str]:
    recipients: List[str] = []
    for target in targets:
        if target.send_dm and target.discord_user_id not in recipients:
            recipients.append(target.discord_user_id)
    return recipients


def build_channel_header(destination: ChannelDestination, ping_subscribers: bool) -> Optional[str]:
    """Role mentions, plus subscriber mentions when the batch contains a delay."""
    mentions = [f"<@&{role_id}>" for role_id in destination.role_ids]
    if ping_subscribers:
        mentions.extend(f"<@{user_id}>" for user_id in destination.subscriber_ids)
    return " ".join(mentions) or None


class NotificationFanout:
    """Sends tracking notification batches through a notification transport."""

    def __init__(self, transport: NotificationTransport, chunk_size: int = MESSAGES_PER_CHUNK):
        self.transport = transport
        self.chunk_size = chunk_size

    async def notify(
        self,
        targets: Sequence[NotificationTarget],
        notifications: Sequence[TrackingNotification],
    ) -> FanoutResult:
        """
        Deliver notifications to all channel and DM destinations.

        Channel sends run concurrently, then DM sends run concurrently; each
        destination's outcome is collected independently.
        """
        result = FanoutResult()
        if not notifications or not targets:
            return result

        chunks = chunk_embeds([notification.embed for notification in notifications], self.chunk_size)
        ping_subscribers = any(n.event_type == TrackingEventType.DELAY for n in notifications)

        destinations = group_channel_destinations(targets)
        outcomes = await asyncio.gather(
            *(
                self._send_to_channel(destination, build_channel_header(destination, ping_subscribers), chunks)
                for destination in destinations
            ),
            return_exceptions=True,
        )
        for destination, outcome in zip(destinations, outcomes):
            if isinstance(outcome, BaseException):
                result.channels_failed += 1
                logger.warning(
                    f"Failed to send channel notification: {outcome}",
                    extra={"guild_id": destination.guild_id, "channel_id": destination.channel_id},
                )
            elif outcome:
                result.channels_delivered += 1
            else:
                result.channels_skipped += 1

        recipients = collect_dm_recipients(targets)
        outcomes = await asyncio.gather(
            *(self._send_to_user(user_id, chunks) for user_id in recipients),
            return_exceptions=True,
        )
        for user_id, outcome in zip(recipients, outcomes):
            if isinstance(outcome, BaseException):
                result.dms_failed += 1
                logger.warning(f"Failed to send DM notification: {outcome}", extra={"user_id": user_id})
            else:
                result.dms_delivered += 1

        logger.info(
            f"Notifications sent: {result.channels_delivered} channel(s), {result.dms_delivered} DM(s), "
            f"{result.channels_skipped} skipped, {result.channels_failed + result.dms_failed} failed"
        )
        return result

    async def _send_to_channel(
        self,
        destination: ChannelDestination,
        header: Optional[str],
        chunks: List[List[Dict[str, Any]]],
    ) -> bool:
        """Send all chunks to one channel. Returns False if the channel was skipped."""
        log_extra = {"guild_id": destination.guild_id, "channel_id": destination.channel_id}

        channel = await self.transport.fetch_channel(destination.channel_id)
        if channel is None:
            logger.warning("Notification channel not found", extra=log_extra)
            return False

        if not channel.is_text:
            logger.warning("Notification channel not text-based", extra=log_extra)
            return False

        if not await self.transport.can_send(channel):
            logger.warning("Missing permissions to send notification", extra=log_extra)
            return False

        for index, chunk in enumerate(chunks):
            await self.transport.send_channel_message(channel.id, header if index == 0 else None, chunk)
        return True

    async def _send_to_user(self, user_id: str, chunks: List[List[Dict[str, Any]]]) -> None:
        for chunk in chunks:
            await self.transport.send_direct_message(user_id, None, chunk)
