"""
Order Synchronizer.

Walks the account's recently modified orders, upserts them and records one
shipment tracking row per fulfillment that carries a tracking number.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Mapping

from ebay_api.api.client import EbayAPIClient, build_orders_filter
from ebay_api.config.constants import INITIAL_ORDER_LOOKBACK_DAYS, ORDER_PAGE_SIZE, SUMMARY_SEPARATOR
from ebay_api.core.errors import ExternalAPIError, PersistenceError
from ebay_api.core.logger import setup_logger
from ebay_api.integrations.tracking_provider import parse_timestamp
from ebay_api.models.ebay import EbayOrder
from ebay_api.models.records import Account
from ebay_worker.repositories.base import SyncRepository

logger = setup_logger(__name__)


@dataclass
class OrderSyncResult:
    """Result of one account's order walk."""

    orders_processed: int = 0
    trackings_upserted: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors


def build_order_summary(order: EbayOrder) -> str:
    """First line item title (or ``Order``), plus the buyer when known."""
    title = next((item.title.strip() for item in order.lineItems if item.title and item.title.strip()), None)
    summary = title or "Order"
    username = order.buyer.username if order.buyer else None
    if username:
        summary += f"{SUMMARY_SEPARATOR}Buyer: {username}"
    return summary


class OrderSynchronizer:
    """Discovers new and changed orders and their tracking numbers."""

    def __init__(
        self,
        repository: SyncRepository,
        api_clients: Mapping[str, EbayAPIClient],
        provider_name: str,
        page_size: int = ORDER_PAGE_SIZE,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.repository = repository
        self.api_clients = api_clients
        self.provider_name = provider_name
        self.page_size = page_size
        self.clock = clock

    async def sync_orders(self, account: Account, access_token: str) -> OrderSyncResult:
        """
        Sync orders modified since the account's last order sync.

        Steps:
        1. Capture start time and compute the lower bound
        2. Page through matching orders until an empty or short page
        3. Upsert each order and its fulfillments' tracking numbers
        4. Stamp the order sync marker when every order succeeded

        Raises:
            ExternalAPIError: Listing a page failed
        """
        started_at = self.clock()
        since = account.last_order_sync_at or started_at - timedelta(days=INITIAL_ORDER_LOOKBACK_DAYS)
        filter_expression = build_orders_filter(since)
        client = self.api_clients[account.environment]
        result = OrderSyncResult()

        logger.info(
            f"Syncing orders modified since {since.isoformat()}",
            extra={"account_id": account.id},
        )

        offset = 0
        while True:
            orders = await client.list_orders(access_token, filter_expression, limit=self.page_size, offset=offset)
            if not orders:
                break

            for order in orders:
                try:
                    result.trackings_upserted += await self._sync_order(account, client, access_token, order)
                    result.orders_processed += 1
                except (ExternalAPIError, PersistenceError) as e:
                    error_msg = f"Error processing order {order.orderId}: {e}"
                    logger.error(error_msg, extra={"account_id": account.id})
                    result.errors.append(error_msg)

            if len(orders) < self.page_size:
                break
            offset += self.page_size

        if result.success:
            await self.repository.update_sync_markers(account.id, last_order_sync_at=started_at)
            account.last_order_sync_at = started_at
        else:
            logger.warning(
                f"Order sync marker not advanced, {len(result.errors)} order(s) failed",
                extra={"account_id": account.id},
            )

        logger.info(
            f"Order sync completed: {result.orders_processed} orders, "
            f"{result.trackings_upserted} trackings, {len(result.errors)} errors",
            extra={"account_id": account.id},
        )
        return result

    async def _sync_order(
        self,
        account: Account,
        client: EbayAPIClient,
        access_token: str,
        order: EbayOrder,
    ) -> int:
        await self.repository.upsert_order(
            account.id,
            order.orderId,
            fulfillment_status=order.orderFulfillmentStatus,
            summary=build_order_summary(order),
            order_created_at=parse_timestamp(order.creationDate),
            last_modified_at=parse_timestamp(order.lastModifiedDate),
            buyer_username=order.buyer.username if order.buyer else None,
        )

        upserted = 0
        fulfillments = await client.list_fulfillments(access_token, order.orderId)
        for fulfillment in fulfillments:
            tracking_number = (fulfillment.shipmentTrackingNumber or "").strip()
            if not tracking_number:
                continue
            await self.repository.upsert_shipment_tracking(
                account.id,
                order.orderId,
                tracking_number,
                provider=self.provider_name,
                fulfillment_id=fulfillment.fulfillmentId,
                carrier_code=fulfillment.shippingCarrierCode,
            )
            upserted += 1
        return upserted
