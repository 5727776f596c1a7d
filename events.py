"""
The service layer publishes events after a change has been committed; the
CLI (or any other front end) subscribes to the ones it wants to surface.
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, DefaultDict

COMPOSITE_ASSEMBLED = "COMPOSITE_ASSEMBLED"
COMPOSITE_UPDATED = "COMPOSITE_UPDATED"
COMPOSITE_SOLD = "COMPOSITE_SOLD"
COMPOSITE_DISMANTLED = "COMPOSITE_DISMANTLED"
RETRO_BUNDLE_CREATED = "RETRO_BUNDLE_CREATED"
ITEM_TRADED = "ITEM_TRADED"
LINK_ISSUES_FOUND = "LINK_ISSUES_FOUND"

Handler = Callable[["Event"], None]


@dataclass(frozen=True)
class Event:
    name: str
    payload: dict[str, Any]


class EventBus:
    """Synchronous pub/sub; handlers run in subscription order."""

    def __init__(self) -> None:
        self._subscribers: DefaultDict[str, list[Handler]] = defaultdict(list)

    def subscribe(self, event_name: str, handler: Handler) -> None:
        if not isinstance(event_name, str) or not event_name.strip():
            raise ValueError("event_name must be a non-empty string.")
        self._subscribers[event_name].append(handler)

    def publish(self, event_name: str, /, **payload: Any) -> Event:
        # Positional-only so a payload may carry its own `name` key.
        event = Event(name=event_name, payload=payload)
        for handler in list(self._subscribers.get(event_name, [])):
            handler(event)
        return event
