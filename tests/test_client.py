"""Tests for the HTTP Dashboard client."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from credsetup.events.bus import Event
from credsetup.events.types import PROVIDER_CREATED
from credsetup.exceptions import RemoteError
from credsetup.models import Provider
from credsetup.remote.client import DashboardClient

BASE_URL = "https://dash.test/api"


def _client(handler, access_key: str = "key-1") -> DashboardClient:
    return DashboardClient(
        BASE_URL, access_key, transport=httpx.MockTransport(handler),
    )


class TestRequests:
    async def test_get_org(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"orgUid": "uid-1", "orgName": "acme"})

        async with _client(handler) as client:
            payload = await client.get_org("acme")

        assert payload["orgUid"] == "uid-1"
        assert seen[0].url.path == "/api/organizations/acme"
        assert seen[0].headers["authorization"] == "Bearer key-1"

    async def test_get_org_without_uid(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"orgName": "acme"})

        async with _client(handler) as client:
            with pytest.raises(RemoteError, match="no orgUid"):
                await client.get_org("acme")

    async def test_http_error_status(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(403, json={"message": "Access denied"})

        async with _client(handler) as client:
            with pytest.raises(RemoteError) as exc_info:
                await client.get_org("acme")

        assert exc_info.value.status_code == 403
        assert exc_info.value.cause_message == "Access denied"
        assert str(exc_info.value) == "HTTP 403: Access denied"

    async def test_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(RemoteError, match="connection refused"):
                await client.get_org("acme")

    async def test_invalid_json(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"<html>")

        async with _client(handler) as client:
            with pytest.raises(RemoteError, match="Invalid JSON"):
                await client.get_org("acme")

    async def test_get_providers(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/organizations/uid-1/providers"
            return httpx.Response(200, json={"result": [
                {"providerUid": "p1", "alias": "prod", "isDefault": True},
                {"providerUid": "p2", "alias": "dev"},
                "junk",
            ]})

        async with _client(handler) as client:
            providers = await client.get_providers("uid-1")

        assert providers == [
            Provider(uid="p1", alias="prod", is_default=True),
            Provider(uid="p2", alias="dev", is_default=False),
        ]

    async def test_create_provider_link(self):
        bodies: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "POST"
            assert request.url.path == "/api/organizations/uid-1/providers/p1/links"
            bodies.append(json.loads(request.content))
            return httpx.Response(201, json={"linkUid": "appName|a|serviceName|s"})

        async with _client(handler) as client:
            result = await client.create_provider_link(
                "uid-1", "service", "appName|a|serviceName|s", "p1",
            )

        assert bodies == [{"linkType": "service", "linkUid": "appName|a|serviceName|s"}]
        assert result["providerUid"] == "p1"

    async def test_existing_link_is_success(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(409, json={"message": "Link already exists"})

        async with _client(handler) as client:
            result = await client.create_provider_link("uid-1", "service", "l1", "p1")

        assert result["linkUid"] == "l1"


class TestEventStream:
    async def test_connect_delivers_filtered_events(self):
        stream_lines = [
            ": keep-alive",
            "data: " + json.dumps({"event": "provider.deleted", "data": {}}),
            "data: not-json",
            "data: " + json.dumps({
                "event": PROVIDER_CREATED,
                "data": {"object": {"alias": "prod"}},
            }),
        ]
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            body = "\n\n".join(stream_lines) + "\n\n"
            return httpx.Response(
                200,
                headers={"content-type": "text/event-stream"},
                content=body.encode(),
            )

        received: list[Event] = []
        got_event = asyncio.Event()

        def on_event(event: Event) -> None:
            received.append(event)
            got_event.set()

        async with _client(handler) as client:
            subscription = await client.connect("acme", [PROVIDER_CREATED], on_event)
            await asyncio.wait_for(got_event.wait(), timeout=1.0)
            await client.disconnect(subscription)
            await client.disconnect(subscription)

        assert [e.event_type for e in received] == [PROVIDER_CREATED]
        assert received[0].data["object"]["alias"] == "prod"
        assert subscription.closed
        assert requests[0].url.path == "/api/organizations/acme/events"
        assert requests[0].url.params["events"] == PROVIDER_CREATED

    async def test_event_split_across_data_lines(self):
        body = (
            "event: message\n"
            'data:{"event": "provider.created",\n'
            'data: "data": {"object": {"alias": "multi"}}}\n'
            "\n"
        )

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                headers={"content-type": "text/event-stream"},
                content=body.encode(),
            )

        received: list[Event] = []
        got_event = asyncio.Event()

        def on_event(event: Event) -> None:
            received.append(event)
            got_event.set()

        async with _client(handler) as client:
            subscription = await client.connect("acme", [PROVIDER_CREATED], on_event)
            await asyncio.wait_for(got_event.wait(), timeout=1.0)
            await client.disconnect(subscription)

        assert len(received) == 1
        assert received[0].data == {"object": {"alias": "multi"}}

    async def test_connect_rejected(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"error": "Unauthorized"})

        async with _client(handler) as client:
            with pytest.raises(RemoteError) as exc_info:
                await client.connect("acme", [PROVIDER_CREATED], lambda e: None)

        assert exc_info.value.status_code == 401
