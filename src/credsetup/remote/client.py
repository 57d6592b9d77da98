"""Dashboard API client.

``RemoteClient`` is the boundary the setup flow talks to; ``DashboardClient``
implements it over HTTP with an async httpx client. Event subscriptions are
server-sent event streams pumped by a background task and delivered to
the caller through a per-subscription :class:`EventFilter`.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from urllib.parse import quote

import httpx

from credsetup.events.bus import Event, EventFilter, EventHandler
from credsetup.exceptions import RemoteError
from credsetup.models import Provider

logger = logging.getLogger(__name__)


@dataclass
class Subscription:
    """Handle for an open event subscription."""

    org_name: str
    events: tuple[str, ...]
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    closed: bool = False


class RemoteClient(ABC):
    """Abstract Dashboard API used by the setup flow.

    Implementations raise :class:`RemoteError` for transport failures.
    """

    @abstractmethod
    async def get_org(self, org_name: str) -> dict:
        """Return organization details, including ``orgUid``."""
        ...

    @abstractmethod
    async def get_providers(self, org_uid: str) -> list[Provider]:
        """Return the org's providers in display order."""
        ...

    @abstractmethod
    async def connect(
        self,
        org_name: str,
        events: Sequence[str],
        on_event: EventHandler,
    ) -> Subscription:
        """Open an event subscription delivering only *events* kinds."""
        ...

    @abstractmethod
    async def disconnect(self, subscription: Subscription) -> None:
        """Close a subscription. Closing twice is a no-op."""
        ...

    @abstractmethod
    async def create_provider_link(
        self,
        org_uid: str,
        link_type: str,
        link_uid: str,
        provider_uid: str,
    ) -> dict:
        """Link a provider to a resource identified by *link_uid*."""
        ...

    async def close(self) -> None:
        """Release connections and open subscriptions."""


@dataclass
class _Stream:
    response: httpx.Response
    events: EventFilter
    task: asyncio.Task


class DashboardClient(RemoteClient):
    """HTTP implementation of :class:`RemoteClient`."""

    def __init__(
        self,
        base_url: str,
        access_key: str = "",
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._access_key = access_key
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._streams: dict[str, _Stream] = {}

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"accept": "application/json"}
            if self._access_key:
                headers["authorization"] = f"Bearer {self._access_key}"
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers=headers,
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        for stream in list(self._streams.values()):
            await self._close_stream(stream)
        self._streams.clear()
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> DashboardClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # --- Requests ---

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        client = await self._get_client()
        try:
            return await client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise RemoteError(
                f"{method} {path} failed: {e}", cause_message=str(e),
            ) from e

    @staticmethod
    def _check(response: httpx.Response, *, allow: tuple[int, ...] = ()) -> None:
        if response.is_success or response.status_code in allow:
            return
        detail = _error_detail(response)
        raise RemoteError(
            f"HTTP {response.status_code}: {detail}",
            status_code=response.status_code,
            cause_message=detail,
        )

    @staticmethod
    def _json(response: httpx.Response) -> object:
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise RemoteError(
                f"Invalid JSON from {response.request.url.path}: {e}",
                status_code=response.status_code,
            ) from e

    async def get_org(self, org_name: str) -> dict:
        r = await self._request("GET", f"/organizations/{quote(org_name, safe='')}")
        self._check(r)
        payload = self._json(r)
        if not isinstance(payload, dict) or not payload.get("orgUid"):
            raise RemoteError(f"Organization {org_name!r} response has no orgUid")
        return payload

    async def get_providers(self, org_uid: str) -> list[Provider]:
        r = await self._request(
            "GET", f"/organizations/{quote(org_uid, safe='')}/providers",
        )
        self._check(r)
        payload = self._json(r)
        rows = payload.get("result", []) if isinstance(payload, dict) else payload
        if not isinstance(rows, list):
            raise RemoteError("Provider list response is not a list")
        return [Provider.from_payload(row) for row in rows if isinstance(row, dict)]

    async def create_provider_link(
        self,
        org_uid: str,
        link_type: str,
        link_uid: str,
        provider_uid: str,
    ) -> dict:
        r = await self._request(
            "POST",
            f"/organizations/{quote(org_uid, safe='')}"
            f"/providers/{quote(provider_uid, safe='')}/links",
            json={"linkType": link_type, "linkUid": link_uid},
        )
        # 409: the link already exists, which is the state we asked for.
        self._check(r, allow=(409,))
        payload = self._json(r)
        result = payload if isinstance(payload, dict) else {}
        result.setdefault("linkUid", link_uid)
        result.setdefault("providerUid", provider_uid)
        return result

    # --- Event streams ---

    async def connect(
        self,
        org_name: str,
        events: Sequence[str],
        on_event: EventHandler,
    ) -> Subscription:
        subscription = Subscription(org_name=org_name, events=tuple(events))
        events_filter = EventFilter(subscription.events, on_event)

        client = await self._get_client()
        request = client.build_request(
            "GET",
            f"/organizations/{quote(org_name, safe='')}/events",
            params={"events": ",".join(subscription.events)},
            headers={"accept": "text/event-stream"},
            timeout=httpx.Timeout(self._timeout, read=None),
        )
        try:
            response = await client.send(request, stream=True)
        except httpx.HTTPError as e:
            raise RemoteError(
                f"Cannot open event stream for {org_name!r}: {e}",
                cause_message=str(e),
            ) from e
        if not response.is_success:
            await response.aread()
            await response.aclose()
            self._check(response)

        task = asyncio.create_task(self._pump(subscription, response, events_filter))
        self._streams[subscription.id] = _Stream(
            response=response, events=events_filter, task=task,
        )
        logger.debug(
            "Opened event subscription %s for %s (%s)",
            subscription.id, org_name, ", ".join(subscription.events),
        )
        return subscription

    async def disconnect(self, subscription: Subscription) -> None:
        stream = self._streams.pop(subscription.id, None)
        subscription.closed = True
        if stream is None:
            return
        await self._close_stream(stream)
        logger.debug("Closed event subscription %s", subscription.id)

    @staticmethod
    async def _close_stream(stream: _Stream) -> None:
        stream.task.cancel()
        await asyncio.gather(stream.task, return_exceptions=True)
        stream.events.close()
        await stream.response.aclose()

    @staticmethod
    async def _pump(
        subscription: Subscription,
        response: httpx.Response,
        events_filter: EventFilter,
    ) -> None:
        # Server-sent events: "data:" lines accumulate until a blank line
        # ends the event. Other fields and ":" comments are ignored.
        data_lines: list[str] = []
        try:
            async for line in response.aiter_lines():
                if not line:
                    if data_lines:
                        event = _decode_event("\n".join(data_lines))
                        data_lines = []
                        if event is not None:
                            events_filter.dispatch(event)
                    continue
                name, _, value = line.partition(":")
                if name != "data":
                    continue
                data_lines.append(value[1:] if value.startswith(" ") else value)
        except httpx.HTTPError as e:
            logger.warning(
                "Event stream %s for %s ended: %s",
                subscription.id, subscription.org_name, e,
            )


def _decode_event(data: str) -> Event | None:
    try:
        payload = json.loads(data)
    except json.JSONDecodeError:
        logger.debug("Skipping undecodable event data: %.80s", data)
        return None
    if not isinstance(payload, dict):
        return None
    return Event.from_payload(payload)


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text.strip() or response.reason_phrase
    if isinstance(payload, dict):
        for key in ("message", "error", "detail"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
    return response.reason_phrase
