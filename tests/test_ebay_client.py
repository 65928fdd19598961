import base64
from urllib.parse import parse_qs

import httpx
import pytest

from ebay_api.api.client import EbayAPIClient, build_orders_filter, get_api_base_url
from fakes import utc


def test_build_orders_filter_formats_lower_bound_and_statuses():
    expression = build_orders_filter(utc(2024, 1, 2, 3, 4, 5, 678000))

    assert expression == (
        "lastmodifieddate:[2024-01-02T03:04:05.678Z..],"
        "orderfulfillmentstatus:{FULFILLED|IN_PROGRESS}"
    )


def test_base_url_per_environment():
    assert get_api_base_url("sandbox") == "https://api.sandbox.ebay.com"
    assert get_api_base_url("production") == "https://api.ebay.com"


@pytest.mark.asyncio
async def test_refresh_access_token_posts_refresh_grant_with_basic_auth():
    captured = {}

    def handler(request):
        captured["url"] = str(request.url)
        captured["auth"] = request.headers["Authorization"]
        captured["body"] = parse_qs(request.content.decode())
        return httpx.Response(
            200,
            json={"access_token": "v^1.1#access", "expires_in": 7200, "token_type": "User Access Token"},
        )

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client = EbayAPIClient("client-id", "client-secret", environment="sandbox", http_client=http_client)

    token = await client.refresh_access_token("v^1.1#refresh", "scope-a scope-b")
    await http_client.aclose()

    assert token.access_token == "v^1.1#access"
    assert token.expires_in == 7200
    assert captured["url"] == "https://api.sandbox.ebay.com/identity/v1/oauth2/token"
    assert captured["auth"] == "Basic " + base64.b64encode(b"client-id:client-secret").decode()
    assert captured["body"] == {
        "grant_type": ["refresh_token"],
        "refresh_token": ["v^1.1#refresh"],
        "scope": ["scope-a scope-b"],
    }


@pytest.mark.asyncio
async def test_list_orders_and_fulfillments():
    def handler(request):
        if request.url.path.endswith("/shipping_fulfillment"):
            return httpx.Response(
                200,
                json={"fulfillments": [{"fulfillmentId": "F1", "shipmentTrackingNumber": "1Z999"}]},
            )
        assert request.headers["Authorization"] == "Bearer access"
        assert request.url.params["limit"] == "50"
        assert request.url.params["offset"] == "100"
        return httpx.Response(
            200,
            json={"orders": [{"orderId": "12-345", "orderFulfillmentStatus": "FULFILLED"}], "total": 101},
        )

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client = EbayAPIClient("id", "secret", http_client=http_client)

    orders = await client.list_orders("access", "lastmodifieddate:[2024-01-01T00:00:00.000Z..]", offset=100)
    fulfillments = await client.list_fulfillments("access", "12-345")
    await http_client.aclose()

    assert [order.orderId for order in orders] == ["12-345"]
    assert fulfillments[0].shipmentTrackingNumber == "1Z999"
