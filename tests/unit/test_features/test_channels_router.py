"""HTTP tests for the channels router."""

from __future__ import annotations

import base64

import pytest
from sqlalchemy import select

from fanout_service.core.exceptions import BadRequestException
from fanout_service.features.channels.router import parse_rfc3339
from fanout_service.features.push.task_names import FANOUT_CHANNEL
from fanout_service.infra.tasks.outbox.models import TaskOutbox

BASE = "/api/v1/channels"


@pytest.mark.unit
class TestParseRfc3339:
    """Test suite for the `from` query parser."""

    def test_offset_converted_to_utc(self):
        parsed = parse_rfc3339("2026-10-17T14:00:00+02:00")
        assert parsed.isoformat() == "2026-10-17T12:00:00+00:00"

    def test_zulu_suffix(self):
        assert parse_rfc3339("2026-10-17T12:00:00Z").hour == 12

    @pytest.mark.parametrize("value", ["yesterday", "2026-10-17T12:00:00", "17/10/2026"])
    def test_invalid(self, value):
        with pytest.raises(BadRequestException) as exc_info:
            parse_rfc3339(value)
        assert exc_info.value.type == "invalid-timestamp"


@pytest.mark.unit
class TestMessagesEndpoints:
    """Test suite for posting and reading messages."""

    async def test_post_then_read(self, client):
        response = await client.post(f"{BASE}/news", content=b"\x00hello")

        assert response.status_code == 201
        body = response.json()
        assert body["channel_id"] == "news"
        assert base64.b64decode(body["payload"]) == b"\x00hello"

        listing = await client.get(f"{BASE}/news")
        assert listing.status_code == 200
        assert [item["id"] for item in listing.json()] == [body["id"]]

    async def test_post_stages_fanout(self, client, session_factory):
        await client.post(f"{BASE}/news", content=b"hello")

        async with session_factory() as session:
            rows = (await session.execute(select(TaskOutbox))).scalars().all()
        assert [(row.task_name, row.args) for row in rows] == [(FANOUT_CHANNEL, ["news"])]

    async def test_empty_body_rejected(self, client):
        response = await client.post(f"{BASE}/news", content=b"")

        assert response.status_code == 400
        assert response.json()["type"] == "empty-message"

    async def test_read_from_filters(self, client):
        await client.post(f"{BASE}/news", content=b"one")

        response = await client.get(f"{BASE}/news", params={"from": "2999-01-01T00:00:00Z"})

        assert response.status_code == 200
        assert response.json() == []

    async def test_read_from_invalid(self, client):
        response = await client.get(f"{BASE}/news", params={"from": "not-a-time"})

        assert response.status_code == 400
        assert response.json()["type"] == "invalid-timestamp"

    async def test_unknown_channel_is_empty(self, client):
        response = await client.get(f"{BASE}/nobody")

        assert response.status_code == 200
        assert response.json() == []


@pytest.mark.unit
class TestSubscriptionEndpoints:
    """Test suite for subscribe, unsubscribe and subscribing."""

    async def test_subscribe_and_lookup(self, client):
        response = await client.post(f"{BASE}/news/subscribe", json={"device_id": "device-1"})

        assert response.status_code == 200
        assert response.json()["device_id"] == "device-1"

        lookup = await client.post(f"{BASE}/news/subscribing", json={"device_id": "device-1"})
        assert [item["device_id"] for item in lookup.json()] == ["device-1"]

    async def test_legacy_iid_field(self, client):
        response = await client.post(f"{BASE}/news/subscribe", json={"IID": "device-1"})

        assert response.status_code == 200
        assert response.json()["device_id"] == "device-1"

    async def test_unsubscribe(self, client):
        await client.post(f"{BASE}/news/subscribe", json={"device_id": "device-1"})

        response = await client.post(f"{BASE}/news/unsubscribe", json={"device_id": "device-1"})

        assert response.status_code == 204
        lookup = await client.post(f"{BASE}/news/subscribing", json={"device_id": "device-1"})
        assert lookup.json() == []

    async def test_missing_device_id(self, client):
        response = await client.post(f"{BASE}/news/subscribe", json={})

        assert response.status_code == 400
        assert response.json()["type"] == "validation-error"

    async def test_cors_allows_any_origin(self, client):
        response = await client.get(f"{BASE}/news", headers={"Origin": "https://example.org"})

        assert response.headers["access-control-allow-origin"] == "*"
