"""Interactive AWS credential setup for a Dashboard-managed service.

The run is a short linear state machine::

    INIT -> AWAITING_CHOICE -> CREATING_PROVIDER | LINKING_EXISTING
                               | USING_LOCAL | SKIPPED -> DONE

``INIT`` lists the org's providers, ``AWAITING_CHOICE`` asks the user what
credentials to use, and the chosen branch runs once. No state is entered
twice and a run never restarts itself; it ends in ``DONE`` or raises a
:class:`CredSetupError` carrying a stable code.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import assert_never

from credsetup.browser import BrowserLauncher
from credsetup.config import Config
from credsetup.events.race import EventWaitOutcome, wait_for_event
from credsetup.events.types import PROVIDER_CREATED
from credsetup.exceptions import LinkError, ProviderCreationError
from credsetup.linker import ProviderLinker
from credsetup.local_keys import (
    AwsAccessKeys,
    CredentialSink,
    LocalCredentialSteps,
    ShellExportSink,
    has_local_credentials,
)
from credsetup.models import (
    ChoiceOption,
    CreateNewProvider,
    LinkResult,
    Provider,
    SetupChoice,
    SetupContext,
    Skip,
    UseExistingProvider,
    UseLocalKeys,
)
from credsetup.prompts import PromptGateway
from credsetup.remote.client import RemoteClient
from credsetup.remote.resolver import RemoteResolver

logger = logging.getLogger(__name__)


class SetupState(enum.Enum):
    INIT = "init"
    AWAITING_CHOICE = "awaiting_choice"
    CREATING_PROVIDER = "creating_provider"
    LINKING_EXISTING = "linking_existing"
    USING_LOCAL = "using_local"
    SKIPPED = "skipped"
    DONE = "done"


_TRANSITIONS: dict[SetupState, frozenset[SetupState]] = {
    SetupState.INIT: frozenset({SetupState.AWAITING_CHOICE}),
    SetupState.AWAITING_CHOICE: frozenset({
        SetupState.CREATING_PROVIDER,
        SetupState.LINKING_EXISTING,
        SetupState.USING_LOCAL,
        SetupState.SKIPPED,
    }),
    SetupState.CREATING_PROVIDER: frozenset({SetupState.DONE}),
    SetupState.LINKING_EXISTING: frozenset({SetupState.DONE}),
    SetupState.USING_LOCAL: frozenset({SetupState.DONE}),
    SetupState.SKIPPED: frozenset({SetupState.DONE}),
    SetupState.DONE: frozenset(),
}


def state_for_choice(choice: SetupChoice) -> SetupState:
    """Map a setup choice to the state that handles it."""
    if isinstance(choice, CreateNewProvider):
        return SetupState.CREATING_PROVIDER
    if isinstance(choice, UseExistingProvider):
        return SetupState.LINKING_EXISTING
    if isinstance(choice, UseLocalKeys):
        return SetupState.USING_LOCAL
    if isinstance(choice, Skip):
        return SetupState.SKIPPED
    assert_never(choice)


def build_choice_prompt(providers: list[Provider]) -> tuple[str, list[ChoiceOption]]:
    """Return the question and options offered for *providers*.

    "Skip" is only offered when the org has no providers yet.
    """
    has_existing = bool(providers)
    if has_existing:
        message = "What credentials do you want to use?"
        create_label = "Create a new AWS Access Role provider"
    else:
        message = "No AWS credentials found, what credentials do you want to use?"
        create_label = "AWS Access Role (most secure)"

    options = [
        ChoiceOption(
            label=f"{provider.alias}({provider.uid})",
            value=UseExistingProvider(provider.uid),
        )
        for provider in providers
    ]
    options.append(ChoiceOption(label=create_label, value=CreateNewProvider()))
    options.append(ChoiceOption(label="Local AWS Access Keys", value=UseLocalKeys()))
    if not has_existing:
        options.append(ChoiceOption(label="Skip", value=Skip()))
    return message, options


@dataclass
class SetupReport:
    """What a setup run did."""

    providers: list[Provider] = field(default_factory=list)
    choice: SetupChoice | None = None
    history: list[SetupState] = field(default_factory=lambda: [SetupState.INIT])
    link: LinkResult | None = None
    provider_event: EventWaitOutcome | None = None
    local_keys: AwsAccessKeys | None = None

    @property
    def state(self) -> SetupState:
        return self.history[-1]


class CredentialSetup:
    """Decide how a service gets AWS credentials and walk the user through it."""

    def __init__(
        self,
        client: RemoteClient,
        prompts: PromptGateway,
        browser: BrowserLauncher,
        *,
        config: Config | None = None,
        resolver: RemoteResolver | None = None,
        sink: CredentialSink | None = None,
    ) -> None:
        self._client = client
        self._prompts = prompts
        self._browser = browser
        self._config = config or Config()
        self._resolver = resolver or RemoteResolver(client)
        self._linker = ProviderLinker(client, self._resolver)
        self._local_steps = LocalCredentialSteps(
            prompts, browser, sink or ShellExportSink(prompts),
        )

    @property
    def resolver(self) -> RemoteResolver:
        return self._resolver

    # --- Pre-run checks ---

    async def is_applicable(
        self,
        context: SetupContext,
        *,
        environ: Mapping[str, str] | None = None,
        credentials_path: Path | None = None,
    ) -> bool:
        """Return True if the service still needs AWS credentials set up.

        Shares the provider cache with :meth:`run`, so checking first does
        not cost a second provider lookup.
        """
        if context.cloud_provider != "aws":
            return False
        if has_local_credentials(environ, credentials_path):
            return False
        if context.org:
            providers = await self._resolver.list_providers(context.org)
            if any(provider.is_default for provider in providers):
                return False
        return True

    async def confirm_setup(self) -> bool:
        if await self._prompts.ask_confirm("Do you want to set them up now?"):
            return True
        self.show_setup_later()
        return False

    def show_setup_later(self) -> None:
        self._prompts.show(
            "\nYou can setup your AWS account later. More details available here:\n\n"
            f"  {self._config.setup.docs_url}\n"
        )

    # --- Run ---

    async def run(self, context: SetupContext) -> SetupReport:
        if not context.org:
            raise ValueError("Credential setup needs an org name")

        report = SetupReport()
        report.providers = await self._resolver.list_providers(context.org)

        self._advance(report, SetupState.AWAITING_CHOICE)
        message, options = build_choice_prompt(report.providers)
        choice = await self._prompts.ask_choice(message, options)
        report.choice = choice

        state = state_for_choice(choice)
        self._advance(report, state)

        if isinstance(choice, CreateNewProvider):
            try:
                report.provider_event = await self.handle_provider_creation(context)
            except Exception as e:
                raise ProviderCreationError.from_error(e) from e
        elif isinstance(choice, UseExistingProvider):
            try:
                report.link = await self._linker.link(
                    context.app, context.service, context.org, choice.provider_uid,
                )
            except LinkError:
                raise
            except Exception as e:
                raise LinkError.from_error(e) from e
        elif isinstance(choice, UseLocalKeys):
            report.local_keys = await self._local_steps.run(
                context.region or self._config.setup.default_region
            )
        elif isinstance(choice, Skip):
            self.show_setup_later()
        else:
            assert_never(choice)

        self._advance(report, SetupState.DONE)
        return report

    async def handle_provider_creation(self, context: SetupContext) -> EventWaitOutcome:
        """Send the user to the Dashboard and wait for the new provider."""
        self._browser.open(self._config.dashboard.providers_url(context.org))
        self._prompts.show("Waiting for creation of provider...")

        outcome = await wait_for_event(
            self._client,
            self._prompts,
            context.org,
            [PROVIDER_CREATED],
            deadline=self._config.setup.provider_wait_seconds,
        )
        if outcome.event is not None:
            alias = _provider_alias(outcome.event.data)
            self._prompts.show(f'\nDetected creation of provider: "{alias}"')
        else:
            self._prompts.show(
                "\nContinuing without a provider. You can create one later in "
                f"Dashboard: {self._config.dashboard.providers_url(context.org)}"
            )
        return outcome

    @staticmethod
    def _advance(report: SetupReport, state: SetupState) -> None:
        current = report.state
        if state not in _TRANSITIONS[current]:
            raise RuntimeError(f"Invalid setup transition {current.value} -> {state.value}")
        logger.debug("Setup state %s -> %s", current.value, state.value)
        report.history.append(state)


def _provider_alias(data: dict) -> str:
    obj = data.get("object")
    if isinstance(obj, dict) and obj.get("alias"):
        return str(obj["alias"])
    return str(data.get("alias", "") or "unnamed")
