import json
from types import SimpleNamespace

import httpx
import pytest

from ebay_api.core.errors import ConfigurationError, ExternalAPIError
from ebay_api.integrations.aftership import AfterShipClient
from ebay_api.integrations.aftership import get_tracking_last_checkpoint as aftership_checkpoint
from ebay_api.integrations.seventeen_track import SeventeenTrackClient
from ebay_api.integrations.seventeen_track import get_tracking_last_checkpoint as seventeen_checkpoint
from ebay_api.integrations.tracking_provider import create_tracking_provider, parse_timestamp
from ebay_api.models.tracking import AfterShipTracking, SeventeenTrackTrackInfo
from fakes import utc

TRACK_INFO = {
    "latest_status": {"status": "Delivered", "sub_status": "Delivered_Other"},
    "latest_event": {"time_utc": "2024-03-03T18:00:00Z", "description": "Delivered"},
    "tracking": {
        "providers": [
            {
                "provider": {"key": 21051, "name": "USPS"},
                "events": [
                    {"time_utc": "2024-03-01T10:00:00Z", "description": "Accepted", "location": "Austin, TX", "stage": "InfoReceived"},
                    {"time_utc": "2024-03-03T18:00:00Z", "description": "Delivered, Front Door", "location": "Denver, CO", "stage": "Delivered"},
                    {"time_utc": "2024-03-02T08:00:00Z", "description": "In Transit", "location": None, "stage": "InTransit"},
                ],
            }
        ]
    },
}


def _settings(**overrides):
    values = {
        "tracking_provider": "seventeen-track",
        "seventeentrack_api_key": "17-key",
        "aftership_api_key": "as-key",
        "http_timeout_seconds": 5.0,
        "http_retries": 0,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def test_parse_timestamp_normalizes_to_utc():
    assert parse_timestamp("2024-03-01T10:00:00Z") == utc(2024, 3, 1, 10, 0)
    assert parse_timestamp("2024-03-01T05:00:00-05:00") == utc(2024, 3, 1, 10, 0)
    assert parse_timestamp("2024-03-01T10:00:00") == utc(2024, 3, 1, 10, 0)
    assert parse_timestamp("not a date") is None
    assert parse_timestamp(None) is None


def test_seventeen_track_snapshot_picks_newest_event():
    snapshot = seventeen_checkpoint(SeventeenTrackTrackInfo.model_validate(TRACK_INFO))

    assert snapshot.checkpoint_at == utc(2024, 3, 3, 18, 0)
    assert snapshot.tag == "Delivered"
    assert snapshot.summary == "Delivered, Front Door • Denver, CO"
    assert snapshot.delivered_at == utc(2024, 3, 3, 18, 0)
    assert snapshot.carrier_name == "USPS"


def test_seventeen_track_snapshot_without_events():
    snapshot = seventeen_checkpoint(SeventeenTrackTrackInfo.model_validate({"latest_status": {"status": "NotFound"}}))

    assert snapshot.checkpoint_at is None
    assert snapshot.summary is None
    assert snapshot.tag == "NotFound"
    assert snapshot.delivered_at is None


def test_seventeen_track_reference_must_be_positive_integer():
    client = SeventeenTrackClient("key", http_client=httpx.AsyncClient())

    assert client.parse_reference("21051") == "21051"
    assert client.parse_reference("0") is None
    assert client.parse_reference("-3") is None
    assert client.parse_reference("usps") is None
    assert client.parse_reference(None) is None


@pytest.mark.asyncio
async def test_seventeen_track_register_and_fetch():
    requests = []

    def handler(request):
        requests.append((request.url.path, request.headers["17token"], json.loads(request.content)))
        if request.url.path.endswith("/register"):
            return httpx.Response(200, json={
                "code": 0,
                "data": {
                    "accepted": [{"number": "9400100000000000000001", "carrier": 21051}],
                    "rejected": [],
                },
            })
        return httpx.Response(200, json={
            "code": 0,
            "data": {"accepted": [{"number": "9400100000000000000001", "carrier": 21051, "track_info": TRACK_INFO}]},
        })

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client = SeventeenTrackClient("17-key", http_client=http_client, retries=0)

    carrier = await client.register("9400100000000000000001")
    live = await client.fetch(carrier, "9400100000000000000001")
    await http_client.aclose()

    assert carrier == "21051"
    assert client.summarize(live).carrier_name == "USPS"
    assert requests[1] == (
        "/track/v2.4/gettrackinfo",
        "17-key",
        [{"number": "9400100000000000000001", "carrier": 21051}],
    )


@pytest.mark.asyncio
async def test_seventeen_track_rejected_registration_returns_none():
    def handler(request):
        return httpx.Response(200, json={
            "code": 0,
            "data": {
                "accepted": [],
                "rejected": [{"number": "BAD", "error": {"code": -18019902, "message": "Carrier not detected"}}],
            },
        })

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client = SeventeenTrackClient("17-key", http_client=http_client, retries=0)

    assert await client.register("BAD") is None
    await http_client.aclose()


def test_aftership_snapshot_prefers_last_checkpoint():
    tracking = AfterShipTracking.model_validate({
        "slug": "ups",
        "tracking_number": "1Z0001",
        "tag": "Exception",
        "last_checkpoint": {"checkpoint_time": "2024-03-02T08:00:00+00:00", "message": "Weather delay", "location": "Louisville, KY"},
        "checkpoints": [{"checkpoint_time": "2024-03-01T08:00:00+00:00", "message": "Picked up"}],
    })

    snapshot = aftership_checkpoint(tracking)

    assert snapshot.checkpoint_at == utc(2024, 3, 2, 8, 0)
    assert snapshot.tag == "Exception"
    assert snapshot.summary == "Weather delay • Louisville, KY"
    assert snapshot.carrier_name == "ups"
    assert snapshot.delivered_at is None


def test_aftership_snapshot_falls_back_to_checkpoint_list():
    tracking = AfterShipTracking.model_validate({
        "slug": "usps",
        "tracking_number": "94001",
        "delivered_at": "2024-03-04T12:00:00Z",
        "checkpoints": [
            {"checkpoint_time": "2024-03-01T08:00:00Z", "message": "Picked up", "tag": "InTransit"},
            {"checkpoint_time": "2024-03-04T12:00:00Z", "message": "Delivered", "tag": "Delivered"},
        ],
    })

    snapshot = aftership_checkpoint(tracking)

    assert snapshot.tag == "Delivered"
    assert snapshot.summary == "Delivered"
    assert snapshot.delivered_at == utc(2024, 3, 4, 12, 0)


@pytest.mark.asyncio
async def test_aftership_register_returns_detected_slug():
    def handler(request):
        assert request.headers["as-api-key"] == "as-key"
        assert json.loads(request.content) == {"tracking_number": "1Z0001", "slug": "ups"}
        return httpx.Response(201, json={"meta": {"code": 201}, "data": {"slug": "ups", "tracking_number": "1Z0001"}})

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client = AfterShipClient("as-key", http_client=http_client, retries=0)

    assert await client.register("1Z0001", "UPS") == "ups"
    await http_client.aclose()


@pytest.mark.asyncio
async def test_aftership_register_reuses_existing_tracking():
    requests = []

    def handler(request):
        requests.append((request.method, request.url.path, dict(request.url.params)))
        if request.method == "POST":
            return httpx.Response(400, json={
                "meta": {"code": 4003, "message": "Tracking already exists.", "type": "BadRequest"},
                "data": {},
            })
        return httpx.Response(200, json={
            "meta": {"code": 200},
            "data": {"trackings": [{"slug": "usps", "tracking_number": "94001"}]},
        })

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client = AfterShipClient("as-key", http_client=http_client, retries=0)

    assert await client.register("94001") == "usps"
    assert requests[1] == ("GET", "/tracking/2025-07/trackings", {"tracking_numbers": "94001"})
    await http_client.aclose()


@pytest.mark.asyncio
async def test_aftership_register_other_bad_request_still_raises():
    def handler(request):
        return httpx.Response(400, json={"meta": {"code": 4005, "message": "Invalid tracking number."}, "data": {}})

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client = AfterShipClient("as-key", http_client=http_client, retries=0)

    with pytest.raises(ExternalAPIError):
        await client.register("???")
    await http_client.aclose()


def test_provider_is_selected_by_configuration():
    assert isinstance(create_tracking_provider(_settings()), SeventeenTrackClient)
    assert isinstance(create_tracking_provider(_settings(tracking_provider="aftership")), AfterShipClient)
    assert create_tracking_provider(_settings(tracking_provider="none")) is None
    assert create_tracking_provider(_settings(seventeentrack_api_key=None)) is None

    with pytest.raises(ConfigurationError):
        create_tracking_provider(_settings(tracking_provider="fedex-direct"))
