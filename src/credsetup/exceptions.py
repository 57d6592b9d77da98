"""Credential setup exception hierarchy.

Every error surfaced by the setup flow carries a stable, machine-readable
``code`` so the CLI (and callers embedding the flow) can branch on the
failure mode without parsing messages.
"""

from __future__ import annotations

CANNOT_GET_ORGANIZATION_DETAILS = "CANNOT_GET_ORGANIZATION_DETAILS"
CANNOT_GET_PROVIDERS_DETAILS = "CANNOT_GET_PROVIDERS_DETAILS"
CANNOT_SETUP_NEW_PROVIDER = "CANNOT_SETUP_NEW_PROVIDER"
CANNOT_LINK_EXISTING_PROVIDER = "CANNOT_LINK_EXISTING_PROVIDER"
REMOTE_REQUEST_FAILED = "REMOTE_REQUEST_FAILED"


class CredSetupError(Exception):
    """Base for all credential setup exceptions."""

    code: str = "CREDSETUP_ERROR"
    summary: str = "Credential setup failed"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        cause_message: str = "",
    ) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code
        self.cause_message = cause_message

    @classmethod
    def from_error(cls, error: BaseException) -> CredSetupError:
        """Wrap *error*, appending its message to this class's summary."""
        cause = str(error)
        wrapped = cls(f"{cls.summary}: {cause}", cause_message=cause)
        wrapped.__cause__ = error
        return wrapped


class RemoteError(CredSetupError):
    """Transport or protocol failure talking to the Dashboard API."""

    code = REMOTE_REQUEST_FAILED
    summary = "Dashboard request failed"

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        code: str | None = None,
        cause_message: str = "",
    ) -> None:
        super().__init__(message, code=code, cause_message=cause_message)
        self.status_code = status_code


class OrgLookupFailed(CredSetupError):
    code = CANNOT_GET_ORGANIZATION_DETAILS
    summary = "Could not access details about your organization in Dashboard"


class ProviderListFailed(CredSetupError):
    code = CANNOT_GET_PROVIDERS_DETAILS
    summary = (
        "Could not access details about your organization's providers in Dashboard"
    )


class ProviderCreationError(CredSetupError):
    code = CANNOT_SETUP_NEW_PROVIDER
    summary = "Could not handle setup of a new provider in Dashboard"


class LinkError(CredSetupError):
    """Linking a provider to a service failed.

    ``cause_code`` keeps the code of a wrapped org lookup failure so it stays
    distinguishable from a rejected link request.
    """

    code = CANNOT_LINK_EXISTING_PROVIDER
    summary = "Could not link the selected provider to your service"
    cause_code: str = CANNOT_LINK_EXISTING_PROVIDER

    @classmethod
    def from_error(cls, error: BaseException) -> LinkError:
        wrapped = super().from_error(error)
        if isinstance(error, CredSetupError) and not isinstance(error, RemoteError):
            wrapped.cause_code = error.code
        return wrapped
