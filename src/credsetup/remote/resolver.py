"""Memoized organization and provider lookups.

Each key is fetched from the Dashboard at most once at a time: concurrent
callers for the same key share one in-flight fetch. Successful results are
kept for the resolver's lifetime; failures are never cached, so the next
call fetches again.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Hashable
from typing import Generic, TypeVar

from credsetup.exceptions import OrgLookupFailed, ProviderListFailed, RemoteError
from credsetup.models import Organization, Provider
from credsetup.remote.client import RemoteClient

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class SingleFlightCache(Generic[K, V]):
    """Per-key cache with one shared in-flight fetch per key.

    The claim (check cache, check pending, register pending) runs without
    an await in between, so on a single event loop two callers can never
    both start a fetch for the same key.
    """

    def __init__(self, name: str = "cache") -> None:
        self._name = name
        self._values: dict[K, V] = {}
        self._pending: dict[K, asyncio.Task[V]] = {}

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def in_flight(self, key: K) -> bool:
        return key in self._pending

    async def get(self, key: K, fetch: Callable[[K], Awaitable[V]]) -> V:
        if key in self._values:
            logger.debug("%s hit for %r", self._name, key)
            return self._values[key]

        pending = self._pending.get(key)
        if pending is None:
            logger.debug("%s fetching %r", self._name, key)
            pending = asyncio.ensure_future(self._load(key, fetch))
            self._pending[key] = pending
            pending.add_done_callback(self._on_done)
        # One caller giving up must not cancel the fetch the others share.
        return await asyncio.shield(pending)

    async def _load(self, key: K, fetch: Callable[[K], Awaitable[V]]) -> V:
        try:
            value = await fetch(key)
            self._values[key] = value
            return value
        finally:
            self._pending.pop(key, None)

    def _on_done(self, task: asyncio.Task[V]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.debug("%s fetch failed: %s", self._name, exc)


class RemoteResolver:
    """Organization and provider lookups backed by a :class:`RemoteClient`.

    Scope one instance to a setup run (or share it process-wide); its
    caches never expire.
    """

    def __init__(self, client: RemoteClient) -> None:
        self._client = client
        self._orgs: SingleFlightCache[str, Organization] = SingleFlightCache("org cache")
        self._providers: SingleFlightCache[str, tuple[Provider, ...]] = (
            SingleFlightCache("provider cache")
        )

    async def resolve_org(self, org_name: str) -> Organization:
        return await self._orgs.get(org_name, self._fetch_org)

    async def resolve_org_uid(self, org_name: str) -> str:
        """Return the org's uid, raising :class:`OrgLookupFailed` on error."""
        return (await self.resolve_org(org_name)).uid

    async def list_providers(self, org_name: str) -> list[Provider]:
        """Return the org's providers, raising :class:`ProviderListFailed` on error.

        An org lookup failure propagates as :class:`OrgLookupFailed`.
        """
        providers = await self._providers.get(org_name, self._fetch_providers)
        return list(providers)

    async def _fetch_org(self, org_name: str) -> Organization:
        try:
            payload = await self._client.get_org(org_name)
        except RemoteError as e:
            raise OrgLookupFailed.from_error(e) from e
        uid = payload.get("orgUid") if isinstance(payload, dict) else None
        if not uid:
            detail = f"no orgUid in details for {org_name!r}"
            raise OrgLookupFailed(
                f"{OrgLookupFailed.summary}: {detail}", cause_message=detail,
            )
        return Organization(name=org_name, uid=str(uid))

    async def _fetch_providers(self, org_name: str) -> tuple[Provider, ...]:
        org_uid = await self.resolve_org_uid(org_name)
        try:
            providers = await self._client.get_providers(org_uid)
        except RemoteError as e:
            raise ProviderListFailed.from_error(e) from e
        return tuple(providers)
