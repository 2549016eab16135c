"""
Event Bus Infrastructure

Architectural Intent:
- In-process fan-out of deployment events to progress printers, telemetry
  and any other observer wired by the composition root
- A subscription is matched with isinstance, so subscribing to DomainEvent
  receives everything
- Handlers run in subscription order; one broken observer never stops
  delivery to the rest or reaches the deployment itself
"""

import logging
from typing import Awaitable, Callable

from keel.domain.events.event_base import DomainEvent

logger = logging.getLogger(__name__)

Handler = Callable[[DomainEvent], Awaitable[None]]


class EventBus:
    def __init__(self) -> None:
        self._subscriptions: list[tuple[type, Handler]] = []

    def subscribe(self, event_type: type, handler: Handler) -> None:
        self._subscriptions.append((event_type, handler))

    def unsubscribe(self, event_type: type, handler: Handler) -> None:
        self._subscriptions = [
            s for s in self._subscriptions if s != (event_type, handler)
        ]

    async def publish(self, events: list[DomainEvent]) -> None:
        for event in events:
            for event_type, handler in list(self._subscriptions):
                if not isinstance(event, event_type):
                    continue
                try:
                    await handler(event)
                except Exception:
                    logger.exception(
                        "Event handler %r failed on %s",
                        handler,
                        event.event_type,
                        extra={"deployment_id": event.aggregate_id},
                    )
