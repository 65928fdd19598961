#!/usr/bin/env python3
"""
Discord Notifications over the REST API (v10)

Resolves guild channels, checks the bot's effective permissions and sends
messages with embeds to channels and direct messages.
"""

from typing import Any, Dict, List, Optional

import httpx

from ebay_api.api.http import request_json
from ebay_api.config.constants import HTTP_RETRIES, HTTP_TIMEOUT_SECONDS
from ebay_api.core.errors import ExternalAPIError
from ebay_api.core.logger import setup_logger
from ebay_api.integrations.notification_transport import ChannelInfo, NotificationTransport

logger = setup_logger(__name__)

API_BASE_URL = "https://discord.com/api/v10"

# Channel types that accept messages (DM types 1 and 3 excluded)
TEXT_CHANNEL_TYPES = {0, 2, 5, 10, 11, 12, 13}
THREAD_CHANNEL_TYPES = {10, 11, 12}

# Permission bits
ADMINISTRATOR = 1 << 3
VIEW_CHANNEL = 1 << 10
SEND_MESSAGES = 1 << 11
EMBED_LINKS = 1 << 14
REQUIRED_PERMISSIONS = VIEW_CHANNEL | SEND_MESSAGES | EMBED_LINKS
ALL_PERMISSIONS = (1 << 53) - 1

# Overwrite types
OVERWRITE_ROLE = 0
OVERWRITE_MEMBER = 1


def compute_channel_permissions(
    user_id: str,
    guild: Dict[str, Any],
    member: Dict[str, Any],
    overwrites: List[Dict[str, Any]],
) -> int:
    """
    Compute a member's effective permissions in a channel.

    Follows Discord's documented order: @everyone role, member roles,
    administrator short-circuit, then @everyone / role / member overwrites.
    """
    guild_id = str(guild["id"])
    if str(guild.get("owner_id")) == str(user_id):
        return ALL_PERMISSIONS

    roles = {str(role["id"]): int(role.get("permissions", 0)) for role in guild.get("roles", [])}
    member_roles = [str(role_id) for role_id in member.get("roles", [])]

    permissions = roles.get(guild_id, 0)
    for role_id in member_roles:
        permissions |= roles.get(role_id, 0)

    if permissions & ADMINISTRATOR:
        return ALL_PERMISSIONS

    by_id = {str(overwrite["id"]): overwrite for overwrite in overwrites}

    everyone = by_id.get(guild_id)
    if everyone:
        permissions &= ~int(everyone.get("deny", 0))
        permissions |= int(everyone.get("allow", 0))

    allow = deny = 0
    for role_id in member_roles:
        overwrite = by_id.get(role_id)
        if overwrite and int(overwrite.get("type", OVERWRITE_ROLE)) == OVERWRITE_ROLE:
            allow |= int(overwrite.get("allow", 0))
            deny |= int(overwrite.get("deny", 0))
    permissions &= ~deny
    permissions |= allow

    own = by_id.get(str(user_id))
    if own and int(own.get("type", OVERWRITE_MEMBER)) == OVERWRITE_MEMBER:
        permissions &= ~int(own.get("deny", 0))
        permissions |= int(own.get("allow", 0))

    return permissions


class DiscordTransport(NotificationTransport):
    """Send notifications to Discord channels and DMs."""

    def __init__(
        self,
        bot_token: str,
        http_client: Optional[httpx.AsyncClient] = None,
        base_url: str = API_BASE_URL,
        timeout: float = HTTP_TIMEOUT_SECONDS,
        retries: int = HTTP_RETRIES,
    ):
        """
        Initialize Discord transport.

        Args:
            bot_token: Discord bot token
            http_client: Shared HTTP client (created if omitted)
        """
        self.bot_token = bot_token
        self.base_url = base_url
        self.timeout = timeout
        self.retries = retries
        self._owns_client = http_client is None
        self.client = http_client or httpx.AsyncClient()
        self._bot_user_id: Optional[str] = None
        self._raw_channels: Dict[str, Dict[str, Any]] = {}

    async def _request(self, method: str, path: str, json: Any = None):
        return await request_json(
            self.client,
            method,
            f"{self.base_url}{path}",
            headers={"Authorization": f"Bot {self.bot_token}"},
            json=json,
            timeout=self.timeout,
            retries=self.retries,
        )

    async def _get_bot_user_id(self) -> str:
        if self._bot_user_id is None:
            me = await self._request("GET", "/users/@me")
            self._bot_user_id = str(me["id"])
        return self._bot_user_id

    async def fetch_channel(self, channel_id: str) -> Optional[ChannelInfo]:
        try:
            raw = await self._request("GET", f"/channels/{channel_id}")
        except ExternalAPIError as e:
            if e.status_code in (403, 404):
                return None
            raise

        guild_id = raw.get("guild_id")
        channel = ChannelInfo(
            id=str(raw["id"]),
            guild_id=str(guild_id) if guild_id else None,
            is_text=int(raw.get("type", -1)) in TEXT_CHANNEL_TYPES,
        )
        # Held only until can_send consumes it
        if channel.is_text:
            self._raw_channels[channel.id] = raw
        return channel

    async def can_send(self, channel: ChannelInfo) -> bool:
        raw = self._raw_channels.pop(channel.id, None)
        if not channel.guild_id:
            return False

        raw = raw or await self._request("GET", f"/channels/{channel.id}")
        # Threads inherit overwrites from their parent channel
        if int(raw.get("type", -1)) in THREAD_CHANNEL_TYPES and raw.get("parent_id"):
            raw = await self._request("GET", f"/channels/{raw['parent_id']}")

        bot_user_id = await self._get_bot_user_id()
        guild = await self._request("GET", f"/guilds/{channel.guild_id}")
        member = await self._request("GET", f"/guilds/{channel.guild_id}/members/{bot_user_id}")

        permissions = compute_channel_permissions(
            bot_user_id, guild, member, raw.get("permission_overwrites") or []
        )
        return permissions & REQUIRED_PERMISSIONS == REQUIRED_PERMISSIONS

    async def send_channel_message(
        self, channel_id: str, content: Optional[str], embeds: List[Dict[str, Any]]
    ) -> None:
        payload: Dict[str, Any] = {
            "embeds": embeds,
            "allowed_mentions": {"parse": ["roles", "users"]},
        }
        if content:
            payload["content"] = content
        await self._request("POST", f"/channels/{channel_id}/messages", json=payload)

    async def send_direct_message(
        self, user_id: str, content: Optional[str], embeds: List[Dict[str, Any]]
    ) -> None:
        dm_channel = await self._request("POST", "/users/@me/channels", json={"recipient_id": user_id})
        await self.send_channel_message(str(dm_channel["id"]), content, embeds)

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()
