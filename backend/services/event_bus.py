"""
In-process EventBus

Decouples producers of state changes (page sync, backlink extraction) from
consumers that react to them (cache writes, invalidation, re-extraction).

Semantics:
- register(): binds a handler factory to an event name. A handler without an
  event name is a programming error and raises MissingHandlerMetadataError
  at registration time.
- publish(): runs every handler for the event, sequentially, in registration
  order. Each handler runs in its own failure boundary: errors are logged
  with handler + event name and never reach the publisher or sibling handlers.
- publish_all(): publishes events one after another.

Delivery is in-memory, at-most-once. One bus per process, passed explicitly
to every component that publishes or subscribes.
"""
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from models.domain.events import DomainEvent
from services.errors import MissingHandlerMetadataError

logger = logging.getLogger(__name__)


class EventHandler:
    """
    Base class for bus subscribers.

    Subclasses declare the event they handle via `event_name` and implement
    `handle`. One handler = one side effect.
    """

    event_name: Optional[str] = None

    async def handle(self, event: DomainEvent) -> None:
        raise NotImplementedError


HandlerFactory = Callable[[], Any]


def handler_name(factory: HandlerFactory) -> str:
    """Readable name for a handler class, partial or plain callable"""
    target = getattr(factory, 'func', factory)
    return getattr(target, '__name__', repr(target))


class EventBus:
    """
    Event-name-indexed publish/subscribe registry

    Handlers are stored as factories and instantiated per publish, so a
    handler never carries state from one event to the next.
    """

    def __init__(self):
        self._handlers: Dict[str, List[Tuple[str, HandlerFactory]]] = {}

    def register(self, factory: HandlerFactory, event_name: Optional[str] = None) -> str:
        """
        Register a handler factory for an event name.

        Args:
            factory: Handler class, functools.partial over one, or any
                zero-argument callable returning an object with async handle()
            event_name: Event to subscribe to. Defaults to the handler
                class's declared event_name.

        Returns:
            The event name the handler was registered for

        Raises:
            MissingHandlerMetadataError: If no event name is available
        """
        name = handler_name(factory)
        resolved = event_name or getattr(getattr(factory, 'func', factory), 'event_name', None)
        if not resolved:
            raise MissingHandlerMetadataError(name)

        self._handlers.setdefault(resolved, []).append((name, factory))
        logger.debug(f"Registered event handler {name} for event {resolved}")
        return resolved

    def handler_count(self, event_name: str) -> int:
        return len(self._handlers.get(event_name, []))

    def registered_events(self) -> List[str]:
        return list(self._handlers)

    def clear(self):
        """Drop all registrations (process teardown)"""
        self._handlers.clear()

    async def publish(self, event: DomainEvent) -> None:
        """
        Deliver an event to every registered handler.

        Never raises because of a handler failure; returns once every
        handler has been attempted exactly once.
        """
        event_name = event.event_name
        handlers = list(self._handlers.get(event_name, []))

        logger.debug(f"Publishing event {event_name} to {len(handlers)} handlers")

        for name, factory in handlers:
            try:
                handler = factory()
                await handler.handle(event)
            except Exception as e:
                logger.error(
                    f"Error handling event {event_name} in handler {name}: {e}",
                    exc_info=True
                )

    async def publish_all(self, events: Iterable[DomainEvent]) -> None:
        """Publish events in order, each fully processed before the next"""
        for event in events:
            await self.publish(event)
