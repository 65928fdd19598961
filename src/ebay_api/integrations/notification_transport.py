"""Notification transport capability interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class ChannelInfo:
    """A resolved destination channel."""

    id: str
    guild_id: Optional[str]
    is_text: bool


class NotificationTransport(ABC):
    """Destination resolution and message delivery.

    Fan-out depends only on these four capabilities, not on a specific chat
    platform's full API.
    """

    @abstractmethod
    async def fetch_channel(self, channel_id: str) -> Optional[ChannelInfo]:
        """Resolve a channel, or None if it does not exist / is not visible."""

    @abstractmethod
    async def can_send(self, channel: ChannelInfo) -> bool:
        """Check view, send and embed permissions in a guild channel."""

    @abstractmethod
    async def send_channel_message(
        self, channel_id: str, content: Optional[str], embeds: List[Dict[str, Any]]
    ) -> None:
        """Send one message to a channel."""

    @abstractmethod
    async def send_direct_message(
        self, user_id: str, content: Optional[str], embeds: List[Dict[str, Any]]
    ) -> None:
        """Send one direct message to a user."""

    async def close(self) -> None:
        """Release transport resources."""
