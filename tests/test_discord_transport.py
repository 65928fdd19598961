import json

import httpx
import pytest

from ebay_api.integrations.discord import (
    ADMINISTRATOR,
    EMBED_LINKS,
    REQUIRED_PERMISSIONS,
    SEND_MESSAGES,
    VIEW_CHANNEL,
    DiscordTransport,
    compute_channel_permissions,
)

GUILD = {
    "id": "g1",
    "owner_id": "owner",
    "roles": [
        {"id": "g1", "permissions": str(VIEW_CHANNEL | SEND_MESSAGES | EMBED_LINKS)},
        {"id": "muted", "permissions": "0"},
        {"id": "admin", "permissions": str(ADMINISTRATOR)},
    ],
}


def test_everyone_role_grants_required_permissions():
    permissions = compute_channel_permissions("bot", GUILD, {"roles": []}, [])

    assert permissions & REQUIRED_PERMISSIONS == REQUIRED_PERMISSIONS


def test_channel_overwrites_apply_everyone_then_roles_then_member():
    overwrites = [
        {"id": "g1", "type": 0, "allow": "0", "deny": str(SEND_MESSAGES)},
        {"id": "muted", "type": 0, "allow": str(SEND_MESSAGES), "deny": "0"},
        {"id": "bot", "type": 1, "allow": "0", "deny": str(EMBED_LINKS)},
    ]

    everyone_only = compute_channel_permissions("other", GUILD, {"roles": []}, overwrites)
    with_role = compute_channel_permissions("other", GUILD, {"roles": ["muted"]}, overwrites)
    member_denied = compute_channel_permissions("bot", GUILD, {"roles": ["muted"]}, overwrites)

    assert not everyone_only & SEND_MESSAGES
    assert with_role & REQUIRED_PERMISSIONS == REQUIRED_PERMISSIONS
    assert not member_denied & EMBED_LINKS


def test_administrator_and_owner_bypass_overwrites():
    deny_all = [{"id": "g1", "type": 0, "allow": "0", "deny": str(REQUIRED_PERMISSIONS)}]

    admin = compute_channel_permissions("bot", GUILD, {"roles": ["admin"]}, deny_all)
    owner = compute_channel_permissions("owner", GUILD, {"roles": []}, deny_all)

    assert admin & REQUIRED_PERMISSIONS == REQUIRED_PERMISSIONS
    assert owner & REQUIRED_PERMISSIONS == REQUIRED_PERMISSIONS


def _transport(routes, sent):
    def handler(request):
        if request.method == "POST":
            sent.append((request.url.path, json.loads(request.content)))
            if request.url.path.endswith("/users/@me/channels"):
                return httpx.Response(200, json={"id": "dm-1", "type": 1})
            return httpx.Response(200, json={"id": "msg-1"})
        status, body = routes.get(request.url.path, (404, {"message": "Unknown Channel", "code": 10003}))
        return httpx.Response(status, json=body)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return DiscordTransport("bot-token", http_client=client, retries=0), client


@pytest.mark.asyncio
async def test_fetch_channel_and_permission_check():
    routes = {
        "/api/v10/channels/c1": (200, {
            "id": "c1",
            "type": 0,
            "guild_id": "g1",
            "permission_overwrites": [{"id": "g1", "type": 0, "allow": "0", "deny": str(EMBED_LINKS)}],
        }),
        "/api/v10/channels/c2": (200, {"id": "c2", "type": 0, "guild_id": "g1", "permission_overwrites": []}),
        "/api/v10/channels/v1": (200, {"id": "v1", "type": 4, "guild_id": "g1"}),
        "/api/v10/users/@me": (200, {"id": "bot"}),
        "/api/v10/guilds/g1": (200, GUILD),
        "/api/v10/guilds/g1/members/bot": (200, {"roles": []}),
    }
    transport, client = _transport(routes, [])

    missing = await transport.fetch_channel("nope")
    category = await transport.fetch_channel("v1")
    denied = await transport.fetch_channel("c1")
    allowed = await transport.fetch_channel("c2")

    assert missing is None
    assert category.is_text is False
    assert await transport.can_send(denied) is False
    assert await transport.can_send(allowed) is True
    await client.aclose()


@pytest.mark.asyncio
async def test_messages_carry_content_embeds_and_bot_auth():
    sent = []
    transport, client = _transport({}, sent)
    embeds = [{"title": "Delivered"}]

    await transport.send_channel_message("c1", "<@&role-1>", embeds)
    await transport.send_direct_message("user-1", None, embeds)
    await client.aclose()

    assert sent[0] == (
        "/api/v10/channels/c1/messages",
        {"embeds": embeds, "allowed_mentions": {"parse": ["roles", "users"]}, "content": "<@&role-1>"},
    )
    assert sent[1] == ("/api/v10/users/@me/channels", {"recipient_id": "user-1"})
    assert sent[2][0] == "/api/v10/channels/dm-1/messages"
    assert "content" not in sent[2][1]


@pytest.mark.asyncio
async def test_channel_cache_is_released_after_permission_check():
    routes = {
        "/api/v10/channels/c2": (200, {"id": "c2", "type": 0, "guild_id": "g1", "permission_overwrites": []}),
        "/api/v10/channels/v1": (200, {"id": "v1", "type": 4, "guild_id": "g1"}),
        "/api/v10/users/@me": (200, {"id": "bot"}),
        "/api/v10/guilds/g1": (200, GUILD),
        "/api/v10/guilds/g1/members/bot": (200, {"roles": []}),
    }
    transport, client = _transport(routes, [])

    await transport.fetch_channel("v1")
    channel = await transport.fetch_channel("c2")
    assert list(transport._raw_channels) == ["c2"]

    assert await transport.can_send(channel) is True
    assert transport._raw_channels == {}
    await client.aclose()
