"""Events received from Dashboard event streams.

A stream subscription parses raw server events into :class:`Event` objects
and passes them through an :class:`EventFilter` to the subscriber.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime

logger = logging.getLogger(__name__)


@dataclass
class Event:
    """A single event received from the Dashboard."""

    event_type: str
    data: dict = field(default_factory=dict)
    timestamp: str = ""

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = datetime.now().isoformat()

    @classmethod
    def from_payload(cls, payload: dict) -> Event:
        """Parse a stream payload of the form ``{"event": kind, "data": {...}}``."""
        data = payload.get("data")
        return cls(
            event_type=str(payload.get("event", "")),
            data=data if isinstance(data, dict) else {},
            timestamp=str(payload.get("timestamp", "") or ""),
        )


EventHandler = Callable[[Event], None]


class EventFilter:
    """Deliver events of the subscribed kinds to a single handler.

    A failing handler is logged and does not stop the stream. Once closed,
    nothing more is delivered.
    """

    def __init__(self, kinds: Iterable[str], handler: EventHandler) -> None:
        self.kinds = frozenset(kinds)
        self._handler = handler
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def dispatch(self, event: Event) -> bool:
        """Hand *event* to the handler; return False if it was filtered out."""
        if self._closed or event.event_type not in self.kinds:
            return False
        try:
            self._handler(event)
        except Exception as e:
            logger.warning("Event handler failed for %s: %s", event.event_type, e)
        return True

    def close(self) -> None:
        self._closed = True
