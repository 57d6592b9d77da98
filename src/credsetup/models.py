"""Data model for the credential setup flow.

Organizations, providers, the user's setup choice, and provider links.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Organization:
    """Tenant scope under which providers are registered."""

    name: str
    uid: str


@dataclass(frozen=True)
class Provider:
    """A registered cloud credential (access role) usable by services."""

    uid: str
    alias: str
    is_default: bool = False

    @classmethod
    def from_payload(cls, payload: dict) -> Provider:
        """Build a provider from a Dashboard API row."""
        return cls(
            uid=str(payload.get("providerUid", "")),
            alias=str(payload.get("alias", "")),
            is_default=bool(payload.get("isDefault", False)),
        )


# --- Setup choice ---


@dataclass(frozen=True)
class UseExistingProvider:
    provider_uid: str


@dataclass(frozen=True)
class CreateNewProvider:
    pass


@dataclass(frozen=True)
class UseLocalKeys:
    pass


@dataclass(frozen=True)
class Skip:
    pass


SetupChoice = UseExistingProvider | CreateNewProvider | UseLocalKeys | Skip


@dataclass(frozen=True)
class ChoiceOption:
    """One entry of the setup choice list shown to the user."""

    label: str
    value: SetupChoice


# --- Provider links ---


def provider_link_uid(app: str, service: str) -> str:
    """Return the deterministic link identity for an (app, service) pair."""
    return f"appName|{app}|serviceName|{service}"


@dataclass(frozen=True)
class ProviderLink:
    """Association between a service and a provider."""

    app: str
    service: str
    org_uid: str
    provider_uid: str
    link_uid: str
    link_type: str = "service"


@dataclass(frozen=True)
class LinkResult:
    link: ProviderLink
    payload: dict = field(default_factory=dict)


@dataclass(frozen=True)
class SetupContext:
    """What the setup run is for: the service and where it is deployed."""

    org: str = ""
    app: str = ""
    service: str = ""
    region: str = ""
    cloud_provider: str = "aws"
