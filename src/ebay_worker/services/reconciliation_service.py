"""
Reconciliation Service for eBay shipment tracking.

One sweep walks every linked account sequentially: obtain a valid access
token, sync orders, then sync trackings. Failures are contained at the
account boundary so one broken account never stops the sweep.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional

from ebay_api.config.constants import ACCOUNT_DELAY_SECONDS
from ebay_api.core.errors import AuthInvalidError, PersistenceError
from ebay_api.core.logger import setup_logger
from ebay_api.core.monitoring import capture_exception, set_account_context
from ebay_api.models.records import Account
from ebay_worker.repositories.base import SyncRepository
from ebay_worker.services.credential_manager import CredentialManager
from ebay_worker.services.order_sync import OrderSynchronizer, OrderSyncResult
from ebay_worker.services.tracking_sync import TrackingSynchronizer, TrackingSyncResult

logger = setup_logger(__name__)


@dataclass
class AccountSyncResult:
    """Result of one account's pass."""

    account_id: str
    success: bool
    orders: Optional[OrderSyncResult] = None
    trackings: Optional[TrackingSyncResult] = None
    reauthorization_required: bool = False
    error: Optional[str] = None


@dataclass
class SweepResult:
    """Result of one sweep over all accounts."""

    started_at: datetime
    completed_at: Optional[datetime] = None
    accounts_total: int = 0
    accounts_succeeded: int = 0
    accounts_failed: int = 0
    interrupted: bool = False
    errors: List[str] = field(default_factory=list)


class ReconciliationService:
    """Runs account passes for the scheduler."""

    def __init__(
        self,
        repository: SyncRepository,
        credential_manager: CredentialManager,
        order_sync: OrderSynchronizer,
        tracking_sync: Optional[TrackingSynchronizer] = None,
        account_delay_seconds: float = ACCOUNT_DELAY_SECONDS,
    ):
        self.repository = repository
        self.credential_manager = credential_manager
        self.order_sync = order_sync
        self.tracking_sync = tracking_sync
        self.account_delay_seconds = account_delay_seconds

    async def run_sweep(self, should_continue: Callable[[], bool] = lambda: True) -> SweepResult:
        """
        Sync every linked account, one at a time.

        Args:
            should_continue: Checked after each account; False ends the sweep early
        """
        result = SweepResult(started_at=datetime.now(timezone.utc))

        try:
            accounts = await self.repository.list_accounts()
        except PersistenceError as e:
            error_msg = f"Failed to list eBay accounts: {e}"
            logger.warning(error_msg)
            result.errors.append(error_msg)
            result.completed_at = datetime.now(timezone.utc)
            return result

        result.accounts_total = len(accounts)
        logger.info(f"Starting sweep over {len(accounts)} account(s)")

        for index, account in enumerate(accounts):
            account_result = await self.sync_account(account)
            if account_result.success:
                result.accounts_succeeded += 1
            else:
                result.accounts_failed += 1
                if account_result.error:
                    result.errors.append(f"{account.id}: {account_result.error}")

            if not should_continue():
                result.interrupted = index < len(accounts) - 1
                logger.info("Sweep stopping early (shutdown requested)")
                break

            if index < len(accounts) - 1:
                await asyncio.sleep(self.account_delay_seconds)

        result.completed_at = datetime.now(timezone.utc)
        logger.info(
            f"Sweep completed: {result.accounts_succeeded}/{result.accounts_total} accounts succeeded, "
            f"{result.accounts_failed} failed"
        )
        return result

    async def sync_account(self, account: Account) -> AccountSyncResult:
        """Credential refresh, order sync, then tracking sync for one account."""
        set_account_context(account.id, account.environment)
        result = AccountSyncResult(account_id=account.id, success=False)

        try:
            access_token = await self.credential_manager.get_valid_access_token(account)
            result.orders = await self.order_sync.sync_orders(account, access_token)

            if self.tracking_sync is None:
                logger.debug("Skipping tracking sync (no tracking provider configured)", extra={"account_id": account.id})
            else:
                result.trackings = await self.tracking_sync.sync_trackings(account)

            result.success = result.orders.success
        except AuthInvalidError as e:
            result.reauthorization_required = True
            result.error = str(e)
            logger.warning(
                f"Account requires re-authorization: {e}",
                extra={"account_id": account.id, "environment": account.environment},
            )
        except Exception as e:
            result.error = str(e)
            logger.error(f"Account sync failed: {e}", extra={"account_id": account.id}, exc_info=True)
            capture_exception(e, context={"account_id": account.id, "environment": account.environment})

        return result
