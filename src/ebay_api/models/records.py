"""Domain records exchanged between the repository and the sync services."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class Account:
    """A linked eBay seller identity with its stored credentials."""

    id: str
    discord_user_id: str
    ebay_user_id: str
    environment: str
    scopes: str
    refresh_token_enc: str
    access_token_enc: Optional[str] = None
    access_token_expires_at: Optional[datetime] = None
    refresh_token_expires_at: Optional[datetime] = None
    last_order_sync_at: Optional[datetime] = None
    last_tracking_sync_at: Optional[datetime] = None


@dataclass
class Order:
    id: str
    ebay_account_id: str
    order_id: str
    fulfillment_status: str
    summary: str
    order_created_at: Optional[datetime] = None
    last_modified_at: Optional[datetime] = None
    buyer_username: Optional[str] = None


@dataclass
class ShipmentTracking:
    id: str
    ebay_account_id: str
    order_id: str
    tracking_number: str
    provider: str
    created_at: datetime
    fulfillment_id: Optional[str] = None
    carrier_code: Optional[str] = None
    provider_ref: Optional[str] = None
    last_checkpoint_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    last_tag: Optional[str] = None
    last_checkpoint_summary: Optional[str] = None


@dataclass(frozen=True)
class NotificationTarget:
    """One guild link of an account joined with the guild's settings."""

    guild_id: str
    discord_user_id: str
    notify_channel_id: Optional[str] = None
    mention_role_id: Optional[str] = None
    send_channel: bool = True
    send_dm: bool = True
