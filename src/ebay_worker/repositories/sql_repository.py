"""SQLAlchemy repository implementation (PostgreSQL in production, SQLite in tests)."""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from sqlalchemy import delete, select, text, update
from sqlalchemy.exc import SQLAlchemyError

from ebay_api.core.errors import PersistenceError
from ebay_api.core.logger import setup_logger
from ebay_api.db.models import EbayAccount, GuildEbayAccount, GuildSettings
from ebay_api.db.models import Order as OrderRow
from ebay_api.db.models import ShipmentTracking as TrackingRow
from ebay_api.models.records import Account, NotificationTarget, Order, ShipmentTracking
from ebay_worker.repositories.base import SyncRepository

logger = setup_logger(__name__)

UNKNOWN_EBAY_USER_ID = "unknown"


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes read back from the database as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _to_account(row: EbayAccount) -> Account:
    return Account(
        id=row.id,
        discord_user_id=row.discord_user_id,
        ebay_user_id=row.ebay_user_id,
        environment=row.environment,
        scopes=row.scopes,
        refresh_token_enc=row.refresh_token_enc,
        access_token_enc=row.access_token_enc,
        access_token_expires_at=_aware(row.access_token_expires_at),
        refresh_token_expires_at=_aware(row.refresh_token_expires_at),
        last_order_sync_at=_aware(row.last_order_sync_at),
        last_tracking_sync_at=_aware(row.last_tracking_sync_at),
    )


def _to_order(row: OrderRow) -> Order:
    return Order(
        id=row.id,
        ebay_account_id=row.ebay_account_id,
        order_id=row.order_id,
        fulfillment_status=row.fulfillment_status,
        summary=row.summary,
        order_created_at=_aware(row.order_created_at),
        last_modified_at=_aware(row.last_modified_at),
        buyer_username=row.buyer_username,
    )


def _to_tracking(row: TrackingRow) -> ShipmentTracking:
    return ShipmentTracking(
        id=row.id,
        ebay_account_id=row.ebay_account_id,
        order_id=row.order_id,
        tracking_number=row.tracking_number,
        provider=row.provider,
        created_at=_aware(row.created_at),
        fulfillment_id=row.fulfillment_id,
        carrier_code=row.carrier_code,
        provider_ref=row.provider_ref,
        last_checkpoint_at=_aware(row.last_checkpoint_at),
        delivered_at=_aware(row.delivered_at),
        last_tag=row.last_tag,
        last_checkpoint_summary=row.last_checkpoint_summary,
    )


class SQLRepository(SyncRepository):
    """SQLAlchemy async storage implementation."""

    def __init__(self, session_factory):
        """Initialize SQL repository.

        Args:
            session_factory: Async session factory from ebay_api.db.get_session_factory
        """
        self.session_factory = session_factory

    @asynccontextmanager
    async def _session(self, operation: str):
        """Open a session, translating storage failures into PersistenceError."""
        try:
            async with self.session_factory() as session:
                yield session
        except SQLAlchemyError as e:
            logger.error(f"Database error during {operation}: {e}")
            raise PersistenceError(f"{operation} failed: {e}") from e

    # Accounts

    async def list_accounts(self) -> List[Account]:
        async with self._session("list_accounts") as session:
            result = await session.execute(select(EbayAccount).order_by(EbayAccount.created_at))
            return [_to_account(row) for row in result.scalars().all()]

    async def get_account(self, account_id: str) -> Optional[Account]:
        async with self._session("get_account") as session:
            row = await session.get(EbayAccount, account_id)
            return _to_account(row) if row else None

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
        async with self._session("upsert_account") as session:
            query = select(EbayAccount).where(
                EbayAccount.environment == environment,
                EbayAccount.discord_user_id == discord_user_id,
            )
            row = (await session.execute(query)).scalar_one_or_none()
            if row is None:
                row = EbayAccount(discord_user_id=discord_user_id, environment=environment)
                session.add(row)

            row.ebay_user_id = ebay_user_id or UNKNOWN_EBAY_USER_ID
            row.scopes = scopes
            row.refresh_token_enc = refresh_token_enc
            row.refresh_token_expires_at = refresh_token_expires_at
            row.access_token_enc = access_token_enc
            row.access_token_expires_at = access_token_expires_at

            await session.commit()
            await session.refresh(row)
            return _to_account(row)

    async def update_access_token(self, account_id: str, access_token_enc: str, expires_at: datetime) -> None:
        async with self._session("update_access_token") as session:
            await session.execute(
                update(EbayAccount)
                .where(EbayAccount.id == account_id)
                .values(access_token_enc=access_token_enc, access_token_expires_at=expires_at)
            )
            await session.commit()

    async def update_sync_markers(
        self,
        account_id: str,
        last_order_sync_at: Optional[datetime] = None,
        last_tracking_sync_at: Optional[datetime] = None,
    ) -> None:
        values = {}
        if last_order_sync_at is not None:
            values["last_order_sync_at"] = last_order_sync_at
        if last_tracking_sync_at is not None:
            values["last_tracking_sync_at"] = last_tracking_sync_at
        if not values:
            return

        async with self._session("update_sync_markers") as session:
            await session.execute(update(EbayAccount).where(EbayAccount.id == account_id).values(**values))
            await session.commit()

    async def delete_account(self, account_id: str) -> bool:
        async with self._session("delete_account") as session:
            async with session.begin():
                await session.execute(delete(GuildEbayAccount).where(GuildEbayAccount.ebay_account_id == account_id))
                await session.execute(delete(TrackingRow).where(TrackingRow.ebay_account_id == account_id))
                await session.execute(delete(OrderRow).where(OrderRow.ebay_account_id == account_id))
                result = await session.execute(delete(EbayAccount).where(EbayAccount.id == account_id))

        deleted = result.rowcount > 0
        if deleted:
            logger.info("Deleted account and its data", extra={"account_id": account_id})
        return deleted

    # Orders

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
        async with self._session("upsert_order") as session:
            query = select(OrderRow).where(OrderRow.ebay_account_id == account_id, OrderRow.order_id == order_id)
            row = (await session.execute(query)).scalar_one_or_none()
            if row is None:
                row = OrderRow(
                    ebay_account_id=account_id,
                    order_id=order_id,
                    order_created_at=order_created_at,
                )
                session.add(row)

            row.last_modified_at = last_modified_at
            row.fulfillment_status = fulfillment_status
            row.buyer_username = buyer_username
            row.summary = summary

            await session.commit()
            await session.refresh(row)
            return _to_order(row)

    async def get_order(self, account_id: str, order_id: str) -> Optional[Order]:
        async with self._session("get_order") as session:
            query = select(OrderRow).where(OrderRow.ebay_account_id == account_id, OrderRow.order_id == order_id)
            row = (await session.execute(query)).scalar_one_or_none()
            return _to_order(row) if row else None

    # Shipment trackings

    async def upsert_shipment_tracking(
        self,
        account_id: str,
        order_id: str,
        tracking_number: str,
        provider: str,
        fulfillment_id: Optional[str] = None,
        carrier_code: Optional[str] = None,
    ) -> ShipmentTracking:
        async with self._session("upsert_shipment_tracking") as session:
            query = select(TrackingRow).where(
                TrackingRow.ebay_account_id == account_id,
                TrackingRow.tracking_number == tracking_number,
            )
            row = (await session.execute(query)).scalar_one_or_none()
            if row is None:
                row = TrackingRow(ebay_account_id=account_id, tracking_number=tracking_number)
                session.add(row)
            elif row.provider != provider:
                # A reference from another provider is meaningless
                row.provider_ref = None

            row.order_id = order_id
            row.fulfillment_id = fulfillment_id
            row.carrier_code = carrier_code
            row.provider = provider

            await session.commit()
            await session.refresh(row)
            return _to_tracking(row)

    async def list_shipment_trackings(self, account_id: str) -> List[ShipmentTracking]:
        async with self._session("list_shipment_trackings") as session:
            query = (
                select(TrackingRow)
                .where(TrackingRow.ebay_account_id == account_id)
                .order_by(TrackingRow.created_at)
            )
            result = await session.execute(query)
            return [_to_tracking(row) for row in result.scalars().all()]

    async def update_tracking_progress(
        self,
        tracking_id: str,
        provider_ref: Optional[str] = None,
        last_checkpoint_at: Optional[datetime] = None,
        delivered_at: Optional[datetime] = None,
        last_tag: Optional[str] = None,
        last_checkpoint_summary: Optional[str] = None,
    ) -> None:
        fields = {
            "provider_ref": provider_ref,
            "last_checkpoint_at": last_checkpoint_at,
            "delivered_at": delivered_at,
            "last_tag": last_tag,
            "last_checkpoint_summary": last_checkpoint_summary,
        }
        values = {key: value for key, value in fields.items() if value is not None}
        if not values:
            return

        async with self._session("update_tracking_progress") as session:
            await session.execute(update(TrackingRow).where(TrackingRow.id == tracking_id).values(**values))
            await session.commit()

    async def save_tracking_snapshot(
        self,
        tracking_id: str,
        provider_ref: str,
        last_checkpoint_at: Optional[datetime],
        delivered_at: Optional[datetime],
        last_tag: Optional[str],
        last_checkpoint_summary: Optional[str],
    ) -> None:
        async with self._session("save_tracking_snapshot") as session:
            await session.execute(
                update(TrackingRow)
                .where(TrackingRow.id == tracking_id)
                .values(
                    provider_ref=provider_ref,
                    last_checkpoint_at=last_checkpoint_at,
                    delivered_at=delivered_at,
                    last_tag=last_tag,
                    last_checkpoint_summary=last_checkpoint_summary,
                )
            )
            await session.commit()

    # Guilds

    async def list_notification_targets(self, account: Account) -> List[NotificationTarget]:
        async with self._session("list_notification_targets") as session:
            if account.ebay_user_id and account.ebay_user_id != UNKNOWN_EBAY_USER_ID:
                account_ids = select(EbayAccount.id).where(
                    EbayAccount.environment == account.environment,
                    EbayAccount.ebay_user_id == account.ebay_user_id,
                )
                link_filter = GuildEbayAccount.ebay_account_id.in_(account_ids)
            else:
                link_filter = GuildEbayAccount.ebay_account_id == account.id

            query = (
                select(GuildEbayAccount, GuildSettings)
                .outerjoin(GuildSettings, GuildSettings.guild_id == GuildEbayAccount.guild_id)
                .where(link_filter)
                .order_by(GuildEbayAccount.guild_id, GuildEbayAccount.discord_user_id)
            )
            result = await session.execute(query)

            targets: Dict[Tuple[str, str], NotificationTarget] = {}
            for link, guild in result.all():
                key = (link.guild_id, link.discord_user_id)
                if key in targets:
                    continue
                targets[key] = NotificationTarget(
                    guild_id=link.guild_id,
                    discord_user_id=link.discord_user_id,
                    notify_channel_id=guild.notify_channel_id if guild else None,
                    mention_role_id=guild.mention_role_id if guild else None,
                    send_channel=guild.send_channel if guild else True,
                    send_dm=guild.send_dm if guild else True,
                )
            return list(targets.values())

    async def upsert_guild_settings(
        self,
        guild_id: str,
        notify_channel_id: Optional[str] = None,
        mention_role_id: Optional[str] = None,
        send_channel: bool = True,
        send_dm: bool = True,
    ) -> None:
        async with self._session("upsert_guild_settings") as session:
            row = await session.get(GuildSettings, guild_id)
            if row is None:
                row = GuildSettings(guild_id=guild_id)
                session.add(row)
            row.notify_channel_id = notify_channel_id
            row.mention_role_id = mention_role_id
            row.send_channel = send_channel
            row.send_dm = send_dm
            await session.commit()

    async def link_guild_account(self, guild_id: str, discord_user_id: str, account_id: str) -> None:
        async with self._session("link_guild_account") as session:
            query = select(GuildEbayAccount).where(
                GuildEbayAccount.guild_id == guild_id,
                GuildEbayAccount.discord_user_id == discord_user_id,
            )
            row = (await session.execute(query)).scalar_one_or_none()
            if row is None:
                row = GuildEbayAccount(guild_id=guild_id, discord_user_id=discord_user_id)
                session.add(row)
            row.ebay_account_id = account_id
            await session.commit()

    async def health_check(self) -> bool:
        try:
            async with self.session_factory() as session:
                await session.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"Database health check failed: {e}")
            return False
