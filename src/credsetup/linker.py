"""Linking an existing provider to a service."""

from __future__ import annotations

import logging

from credsetup.exceptions import LinkError, RemoteError
from credsetup.models import LinkResult, ProviderLink, provider_link_uid
from credsetup.remote.client import RemoteClient
from credsetup.remote.resolver import RemoteResolver

logger = logging.getLogger(__name__)

LINK_TYPE_SERVICE = "service"


class ProviderLinker:
    """Create service-scoped provider links.

    The link identity depends only on (app, service), so repeating a link
    request for the same service and provider is safe.
    """

    def __init__(self, client: RemoteClient, resolver: RemoteResolver) -> None:
        self._client = client
        self._resolver = resolver

    async def link(
        self,
        app: str,
        service: str,
        org_name: str,
        provider_uid: str,
    ) -> LinkResult:
        """Link *provider_uid* to the service.

        Raises :class:`OrgLookupFailed` when the org cannot be resolved and
        :class:`LinkError` when the app or service name is missing or the
        link request is rejected.
        """
        if not app or not service:
            raise LinkError(
                f"{LinkError.summary}: both an app and a service name are required",
                cause_message="missing app or service name",
            )
        link_uid = provider_link_uid(app, service)
        org_uid = await self._resolver.resolve_org_uid(org_name)
        link = ProviderLink(
            app=app,
            service=service,
            org_uid=org_uid,
            provider_uid=provider_uid,
            link_uid=link_uid,
            link_type=LINK_TYPE_SERVICE,
        )
        try:
            payload = await self._client.create_provider_link(
                org_uid, LINK_TYPE_SERVICE, link_uid, provider_uid,
            )
        except RemoteError as e:
            raise LinkError.from_error(e) from e
        logger.debug("Linked provider %s to %s", provider_uid, link_uid)
        return LinkResult(link=link, payload=dict(payload or {}))
