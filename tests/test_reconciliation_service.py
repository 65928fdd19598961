import pytest

from ebay_api.core.errors import AuthInvalidError, PersistenceError
from ebay_api.models.records import Account
from ebay_worker.services.order_sync import OrderSyncResult
from ebay_worker.services.reconciliation_service import ReconciliationService
from ebay_worker.services.tracking_sync import TrackingSyncResult


def _account(account_id):
    return Account(
        id=account_id,
        discord_user_id=f"user-{account_id}",
        ebay_user_id="seller",
        environment="production",
        scopes="scope",
        refresh_token_enc="v1:enc",
    )


class AccountsRepository:
    def __init__(self, accounts=None, fail=False):
        self.accounts = accounts or []
        self.fail = fail

    async def list_accounts(self):
        if self.fail:
            raise PersistenceError("connection refused")
        return list(self.accounts)


class FakeCredentials:
    def __init__(self, invalid=()):
        self.invalid = set(invalid)

    async def get_valid_access_token(self, account):
        if account.id in self.invalid:
            raise AuthInvalidError("Refresh token rejected (HTTP 400)")
        return f"token-{account.id}"


class FakeOrderSync:
    def __init__(self, broken=()):
        self.broken = set(broken)
        self.calls = []

    async def sync_orders(self, account, access_token):
        self.calls.append((account.id, access_token))
        if account.id in self.broken:
            raise RuntimeError("unexpected payload")
        return OrderSyncResult(orders_processed=1)


class FakeTrackingSync:
    def __init__(self):
        self.calls = []

    async def sync_trackings(self, account):
        self.calls.append(account.id)
        return TrackingSyncResult()


@pytest.fixture(autouse=True)
def _no_monitoring(monkeypatch):
    captured = []
    monkeypatch.setattr(
        "ebay_worker.services.reconciliation_service.capture_exception",
        lambda error, context=None, level="error": captured.append((error, context)),
    )
    return captured


def _service(accounts, credentials=None, order_sync=None, tracking_sync=None, fail=False):
    return ReconciliationService(
        AccountsRepository(accounts, fail=fail),
        credentials or FakeCredentials(),
        order_sync or FakeOrderSync(),
        tracking_sync,
        account_delay_seconds=0,
    )


@pytest.mark.asyncio
async def test_orders_then_trackings_for_each_account():
    order_sync = FakeOrderSync()
    tracking_sync = FakeTrackingSync()
    service = _service([_account("a"), _account("b")], order_sync=order_sync, tracking_sync=tracking_sync)

    result = await service.run_sweep()

    assert order_sync.calls == [("a", "token-a"), ("b", "token-b")]
    assert tracking_sync.calls == ["a", "b"]
    assert result.accounts_total == 2
    assert result.accounts_succeeded == 2


@pytest.mark.asyncio
async def test_failing_accounts_do_not_abort_sweep(_no_monitoring):
    order_sync = FakeOrderSync(broken={"b"})
    tracking_sync = FakeTrackingSync()
    service = _service(
        [_account("a"), _account("b"), _account("c")],
        credentials=FakeCredentials(invalid={"a"}),
        order_sync=order_sync,
        tracking_sync=tracking_sync,
    )

    result = await service.run_sweep()

    assert tracking_sync.calls == ["c"]
    assert result.accounts_succeeded == 1
    assert result.accounts_failed == 2
    # Only unexpected errors are reported to monitoring
    assert [context["account_id"] for _, context in _no_monitoring] == ["b"]


@pytest.mark.asyncio
async def test_auth_invalid_marks_reauthorization_required():
    service = _service([_account("a")], credentials=FakeCredentials(invalid={"a"}))

    result = await service.sync_account(_account("a"))

    assert not result.success
    assert result.reauthorization_required


@pytest.mark.asyncio
async def test_tracking_sync_skipped_without_provider():
    service = _service([_account("a")], tracking_sync=None)

    result = await service.sync_account(_account("a"))

    assert result.success
    assert result.trackings is None


@pytest.mark.asyncio
async def test_should_continue_stops_between_accounts():
    order_sync = FakeOrderSync()
    service = _service([_account("a"), _account("b")], order_sync=order_sync)

    result = await service.run_sweep(should_continue=lambda: False)

    assert order_sync.calls == [("a", "token-a")]
    assert result.interrupted


@pytest.mark.asyncio
async def test_listing_failure_ends_sweep():
    result = await _service([], fail=True).run_sweep()

    assert result.accounts_total == 0
    assert "Failed to list eBay accounts" in result.errors[0]
