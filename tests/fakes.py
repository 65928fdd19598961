"""Hand-written fakes shared by the worker tests."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ebay_api.core.errors import ExternalAPIError
from ebay_api.integrations.notification_transport import ChannelInfo, NotificationTransport
from ebay_api.integrations.tracking_provider import TrackingProvider
from ebay_api.models.ebay import EbayOrder, ShippingFulfillment, TokenResponse
from ebay_api.models.tracking import TrackingSnapshot

ENCRYPTION_KEY = "test-encryption-key"


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class FakeEbayClient:
    """Serves canned order pages and fulfillments."""

    def __init__(self, orders=None, fulfillments=None, token=None):
        self.orders = [EbayOrder.model_validate(order) for order in (orders or [])]
        self.fulfillments = {
            order_id: [ShippingFulfillment.model_validate(f) for f in items]
            for order_id, items in (fulfillments or {}).items()
        }
        self.failing_orders = set()
        self.token = token
        self.refresh_errors: List[Exception] = []
        self.list_calls: List[Dict[str, Any]] = []
        self.refresh_calls = 0
        self.refresh_scopes = []

    async def list_orders(self, access_token, filter_expression, limit=50, offset=0):
        self.list_calls.append({"filter": filter_expression, "limit": limit, "offset": offset})
        return self.orders[offset:offset + limit]

    async def list_fulfillments(self, access_token, order_id):
        if order_id in self.failing_orders:
            raise ExternalAPIError(f"HTTP 500 for {order_id}", status_code=500)
        return self.fulfillments.get(order_id, [])

    async def refresh_access_token(self, refresh_token, scopes):
        self.refresh_calls += 1
        self.refresh_scopes.append(scopes)
        if self.refresh_errors:
            raise self.refresh_errors.pop(0)
        return TokenResponse.model_validate(
            self.token or {"access_token": "new-access-token", "expires_in": 7200, "token_type": "User Access Token"}
        )


class FakeTrackingProvider(TrackingProvider):
    """Provider whose live state is a TrackingSnapshot keyed by (reference, number)."""

    name = "seventeen-track"

    def __init__(self):
        self.registrations: Dict[str, Optional[str]] = {}
        self.live: Dict[tuple, TrackingSnapshot] = {}
        self.register_calls: List[str] = []
        self.fetch_calls: List[tuple] = []
        self.fetch_errors: Dict[str, Exception] = {}

    def parse_reference(self, value):
        if not value or not str(value).isdigit() or int(value) <= 0:
            return None
        return str(int(value))

    async def register(self, tracking_number, carrier_code=None):
        self.register_calls.append(tracking_number)
        result = self.registrations.get(tracking_number)
        if isinstance(result, Exception):
            raise result
        return result

    async def fetch(self, reference, tracking_number):
        self.fetch_calls.append((reference, tracking_number))
        if tracking_number in self.fetch_errors:
            raise self.fetch_errors[tracking_number]
        return self.live.get((reference, tracking_number))

    def summarize(self, live):
        return live


class FakeTransport(NotificationTransport):
    """Records sends; channels can be missing, non-text, forbidden or broken."""

    def __init__(self):
        self.channels: Dict[str, ChannelInfo] = {}
        self.forbidden = set()
        self.broken_channels = set()
        self.broken_users = set()
        self.channel_messages: List[tuple] = []
        self.direct_messages: List[tuple] = []

    def add_channel(self, channel_id, guild_id="guild-1", is_text=True):
        self.channels[channel_id] = ChannelInfo(id=channel_id, guild_id=guild_id, is_text=is_text)

    async def fetch_channel(self, channel_id):
        return self.channels.get(channel_id)

    async def can_send(self, channel):
        return channel.id not in self.forbidden

    async def send_channel_message(self, channel_id, content, embeds):
        if channel_id in self.broken_channels:
            raise ExternalAPIError("HTTP 500 sending message", status_code=500)
        self.channel_messages.append((channel_id, content, list(embeds)))

    async def send_direct_message(self, user_id, content, embeds):
        if user_id in self.broken_users:
            raise ExternalAPIError("Cannot send messages to this user", status_code=403)
        self.direct_messages.append((user_id, content, list(embeds)))

    def messages_for(self, channel_id):
        return [message for message in self.channel_messages if message[0] == channel_id]


class RecordingFanout:
    def __init__(self):
        self.calls = []

    async def notify(self, targets, notifications):
        self.calls.append((list(targets), list(notifications)))
