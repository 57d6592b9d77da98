"""Wait for a Dashboard event, offering a manual way out after a deadline.

``wait_for_event`` subscribes to an org's event stream and races two waits:
the first event of the requested kinds, and a deadline timer that, once it
fires, asks the user to press Enter to continue without the event. The
first wait to finish decides the outcome and the other is cancelled. An
event arriving while the fallback prompt is on screen retracts the prompt
and wins.

The subscription is held by an async context manager, so it is closed
exactly once on every exit path: event, fallback, error or cancellation.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass

from credsetup.events.bus import Event
from credsetup.prompts import PromptGateway
from credsetup.remote.client import RemoteClient, Subscription

logger = logging.getLogger(__name__)

DEFAULT_DEADLINE_SECONDS = 60.0
FALLBACK_MESSAGE = "\n Press Enter to continue without setting up provider"


class OutcomeKind(enum.Enum):
    EVENT = "event"
    FALLBACK_SKIP = "fallback_skip"


@dataclass(frozen=True)
class EventWaitOutcome:
    kind: OutcomeKind
    event: Event | None = None

    @property
    def skipped(self) -> bool:
        return self.kind is OutcomeKind.FALLBACK_SKIP


@asynccontextmanager
async def subscribed(
    client: RemoteClient,
    org_name: str,
    events: Sequence[str],
    on_event,
) -> AsyncIterator[Subscription]:
    """Hold an event subscription open for the duration of the block.

    Errors opening the subscription propagate. Errors closing it are logged
    and never replace the block's own result or exception.
    """
    subscription = await client.connect(org_name, events, on_event)
    try:
        yield subscription
    finally:
        try:
            await client.disconnect(subscription)
        except Exception as e:
            logger.warning(
                "Failed to close event subscription for %s: %s", org_name, e,
            )


async def wait_for_event(
    client: RemoteClient,
    prompts: PromptGateway,
    org_name: str,
    events: Sequence[str],
    *,
    deadline: float = DEFAULT_DEADLINE_SECONDS,
    fallback_message: str = FALLBACK_MESSAGE,
) -> EventWaitOutcome:
    """Race the first matching event against a deadline-triggered prompt."""
    kinds = frozenset(events)
    loop = asyncio.get_running_loop()
    started = loop.time()
    arrived: asyncio.Future[Event] = loop.create_future()

    def on_event(event: Event) -> None:
        if event.event_type in kinds and not arrived.done():
            arrived.set_result(event)

    async with subscribed(client, org_name, tuple(events), on_event):
        remaining = max(0.0, deadline - (loop.time() - started))
        event_wait = asyncio.ensure_future(_next_event(arrived))
        fallback = asyncio.ensure_future(
            _fallback_after(prompts, remaining, fallback_message)
        )
        try:
            await asyncio.wait(
                {event_wait, fallback}, return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for waiter in (event_wait, fallback):
                if not waiter.done():
                    waiter.cancel()
            await asyncio.gather(event_wait, fallback, return_exceptions=True)

        if event_wait.done() and not event_wait.cancelled():
            event = event_wait.result()
            logger.debug("Received %s for %s", event.event_type, org_name)
            return EventWaitOutcome(kind=OutcomeKind.EVENT, event=event)

        # Re-raises a prompt failure.
        fallback.result()
        logger.debug("No event for %s within %.0fs; user skipped", org_name, deadline)
        return EventWaitOutcome(kind=OutcomeKind.FALLBACK_SKIP)


async def _next_event(arrived: asyncio.Future[Event]) -> Event:
    return await arrived


async def _fallback_after(
    prompts: PromptGateway, delay: float, message: str,
) -> None:
    await asyncio.sleep(delay)
    await prompts.ask_acknowledge(message)
