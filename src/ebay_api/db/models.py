"""SQLAlchemy models for linked accounts, orders and shipment trackings."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EbayAccount(Base):
    """
    A linked eBay seller identity owned by a Discord user.

    Tokens are stored only as encrypted envelopes.
    """

    __tablename__ = "ebay_accounts"
    __table_args__ = (UniqueConstraint("environment", "discord_user_id", name="uq_ebay_accounts_env_user"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    discord_user_id: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    ebay_user_id: Mapped[str] = mapped_column(String(255), nullable=False, default="unknown")
    environment: Mapped[str] = mapped_column(String(16), nullable=False, default="production")
    scopes: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # Credentials
    access_token_enc: Mapped[str] = mapped_column(Text, nullable=True)
    access_token_expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)
    refresh_token_enc: Mapped[str] = mapped_column(Text, nullable=False)
    refresh_token_expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)

    # Sync markers
    last_order_sync_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)
    last_tracking_sync_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )


class Order(Base):
    """An eBay order seen by order sync."""

    __tablename__ = "orders"
    __table_args__ = (UniqueConstraint("ebay_account_id", "order_id", name="uq_orders_account_order"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    ebay_account_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("ebay_accounts.id"), nullable=False, index=True
    )
    order_id: Mapped[str] = mapped_column(String(64), nullable=False)
    order_created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)
    last_modified_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)
    fulfillment_status: Mapped[str] = mapped_column(String(32), nullable=False)
    buyer_username: Mapped[str] = mapped_column(String(255), nullable=True)
    summary: Mapped[str] = mapped_column(Text, nullable=False, default="Order")


class ShipmentTracking(Base):
    """
    One tracking number attached to an order fulfillment.

    Progress fields (last_checkpoint_at, delivered_at, last_tag,
    last_checkpoint_summary) are owned by tracking sync.
    """

    __tablename__ = "shipment_trackings"
    __table_args__ = (
        UniqueConstraint("ebay_account_id", "tracking_number", name="uq_trackings_account_number"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    ebay_account_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("ebay_accounts.id"), nullable=False, index=True
    )
    order_id: Mapped[str] = mapped_column(String(64), nullable=False)
    fulfillment_id: Mapped[str] = mapped_column(String(64), nullable=True)
    carrier_code: Mapped[str] = mapped_column(String(64), nullable=True)
    tracking_number: Mapped[str] = mapped_column(String(128), nullable=False)
    provider: Mapped[str] = mapped_column(String(32), nullable=False)
    provider_ref: Mapped[str] = mapped_column(String(128), nullable=True)

    # Progress
    last_checkpoint_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)
    delivered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)
    last_tag: Mapped[str] = mapped_column(String(64), nullable=True)
    last_checkpoint_summary: Mapped[str] = mapped_column(Text, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )


class GuildSettings(Base):
    """Per-guild notification preferences."""

    __tablename__ = "guild_settings"

    guild_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    notify_channel_id: Mapped[str] = mapped_column(String(32), nullable=True)
    mention_role_id: Mapped[str] = mapped_column(String(32), nullable=True)
    send_channel: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    send_dm: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class GuildEbayAccount(Base):
    """Links a Discord user in a guild to one of their eBay accounts."""

    __tablename__ = "guild_ebay_accounts"
    __table_args__ = (UniqueConstraint("guild_id", "discord_user_id", name="uq_guild_links_guild_user"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    guild_id: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    discord_user_id: Mapped[str] = mapped_column(String(32), nullable=False)
    ebay_account_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("ebay_accounts.id"), nullable=False, index=True
    )
