"""Domain events and the dispatcher that carries them to the rendering layer."""

import asyncio
import logging
from abc import ABC
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Union

from arbdesk.time_utils import now_utc

log = logging.getLogger(__name__)


Handler = Callable[["DomainEvent"], Union[None, Awaitable[None]]]


def event(cls):
    """Class decorator for concrete events: frozen, slotted dataclass."""
    return dataclass(frozen=True, slots=True)(cls)


@dataclass(frozen=True, slots=True, kw_only=True)
class DomainEvent(ABC):
    """Base for everything published on an EventDispatcher.

    ``timestamp`` is keyword-only so subclasses can declare positional fields.
    """

    timestamp: datetime = field(default_factory=now_utc)


class EventDispatcher:
    """Route events to handlers registered for their exact type.

    Handlers may be plain functions or coroutines and run one after another
    in subscription order. A handler that raises is logged and skipped.
    """

    def __init__(self):
        # Tuples are replaced, never mutated, so a publish in progress keeps
        # the handler set it started with.
        self._handlers: dict[type[DomainEvent], tuple[Handler, ...]] = {}

    def subscribe(self, event_type: type[DomainEvent], handler: Handler) -> None:
        """Call *handler* for every published *event_type* instance."""
        self._handlers[event_type] = self._handlers.get(event_type, ()) + (handler,)

    def unsubscribe(self, event_type: type[DomainEvent], handler: Handler) -> None:
        """Remove *handler*; unknown handlers are ignored."""
        remaining = tuple(h for h in self._handlers.get(event_type, ()) if h != handler)
        if remaining:
            self._handlers[event_type] = remaining
        else:
            self._handlers.pop(event_type, None)

    def has_subscribers(self, event_type: type[DomainEvent]) -> bool:
        return event_type in self._handlers

    async def publish(self, event: DomainEvent) -> None:
        for handler in self._handlers.get(type(event), ()):
            try:
                outcome = handler(event)
                if asyncio.iscoroutine(outcome):
                    await outcome
            except Exception:
                log.error(
                    "%s handler %s raised",
                    type(event).__name__,
                    getattr(handler, "__qualname__", handler),
                    exc_info=True,
                )
