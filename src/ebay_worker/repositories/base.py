"""Abstract base repository for account, order and tracking storage."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from ebay_api.models.records import Account, NotificationTarget, Order, ShipmentTracking


class SyncRepository(ABC):
    """Abstract persistence boundary for the sync worker.

    Every failure is raised as PersistenceError so services never see
    backend-specific exceptions.
    """

    # Accounts

    @abstractmethod
    async def list_accounts(self) -> List[Account]:
        """List all linked accounts."""
        pass

    @abstractmethod
    async def get_account(self, account_id: str) -> Optional[Account]:
        pass

    @abstractmethod
    async def upsert_account(
        self,
        discord_user_id: str,
        environment: str,
        ebay_user_id: str,
        scopes: str,
        refresh_token_enc: str,
        refresh_token_expires_at: Optional[datetime] = None,
        access_token_enc: Optional[str] = None,
        access_token_expires_at: Optional[datetime] = None,
    ) -> Account:
        """Insert or update the account keyed by (environment, discord_user_id).

        Returns:
            The stored account
        """
        pass

    @abstractmethod
    async def update_access_token(self, account_id: str, access_token_enc: str, expires_at: datetime) -> None:
        """Persist a freshly encrypted access token and its expiry."""
        pass

    @abstractmethod
    async def update_sync_markers(
        self,
        account_id: str,
        last_order_sync_at: Optional[datetime] = None,
        last_tracking_sync_at: Optional[datetime] = None,
    ) -> None:
        """Stamp sync markers. None values leave the stored marker unchanged."""
        pass

    @abstractmethod
    async def delete_account(self, account_id: str) -> bool:
        """Remove an account with its guild links, trackings and orders.

        Returns:
            True if the account existed
        """
        pass

    # Orders

    @abstractmethod
    async def upsert_order(
        self,
        account_id: str,
        order_id: str,
        fulfillment_status: str,
        summary: str,
        order_created_at: Optional[datetime] = None,
        last_modified_at: Optional[datetime] = None,
        buyer_username: Optional[str] = None,
    ) -> Order:
        """Insert or update an order keyed by (account, order_id).

        On conflict only last_modified_at, fulfillment_status,
        buyer_username and summary are updated.
        """
        pass

    @abstractmethod
    async def get_order(self, account_id: str, order_id: str) -> Optional[Order]:
        pass

    # Shipment trackings

    @abstractmethod
    async def upsert_shipment_tracking(
        self,
        account_id: str,
        order_id: str,
        tracking_number: str,
        provider: str,
        fulfillment_id: Optional[str] = None,
        carrier_code: Optional[str] = None,
    ) -> ShipmentTracking:
        """Insert or update a tracking keyed by (account, tracking_number).

        On conflict only order_id, fulfillment_id, carrier_code and provider
        are updated; progress fields are left untouched.
        """
        pass

    @abstractmethod
    async def list_shipment_trackings(self, account_id: str) -> List[ShipmentTracking]:
        pass

    @abstractmethod
    async def update_tracking_progress(
        self,
        tracking_id: str,
        provider_ref: Optional[str] = None,
        last_checkpoint_at: Optional[datetime] = None,
        delivered_at: Optional[datetime] = None,
        last_tag: Optional[str] = None,
        last_checkpoint_summary: Optional[str] = None,
    ) -> None:
        """Update progress fields; None values are skipped."""
        pass

    @abstractmethod
    async def save_tracking_snapshot(
        self,
        tracking_id: str,
        provider_ref: str,
        last_checkpoint_at: Optional[datetime],
        delivered_at: Optional[datetime],
        last_tag: Optional[str],
        last_checkpoint_summary: Optional[str],
    ) -> None:
        """Overwrite all progress fields with the provider's latest state, None included."""
        pass

    # Guilds

    @abstractmethod
    async def list_notification_targets(self, account: Account) -> List[NotificationTarget]:
        """Resolve where notifications for an account should go.

        When the account's eBay user id is known, targets of every account
        sharing (environment, ebay_user_id) are returned; otherwise targets
        linked to the account id.
        """
        pass

    @abstractmethod
    async def upsert_guild_settings(
        self,
        guild_id: str,
        notify_channel_id: Optional[str] = None,
        mention_role_id: Optional[str] = None,
        send_channel: bool = True,
        send_dm: bool = True,
    ) -> None:
        pass

    @abstractmethod
    async def link_guild_account(self, guild_id: str, discord_user_id: str, account_id: str) -> None:
        """Link a guild member to one of their accounts (one link per member per guild)."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if storage backend is accessible.

        Returns:
            True if healthy, False otherwise
        """
        pass
