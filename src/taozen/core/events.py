"""EventBus - per-graph in-process pub/sub."""

from __future__ import annotations

import logging
from collections.abc import Callable

from taozen.core.types import Event

logger = logging.getLogger(__name__)

EventListener = Callable[[Event], None]


class EventBus:
    """Synchronous fan-out of events to registered listeners.

    Listeners are called in registration order on the emitter's call
    stack. A failing listener is logged and does not prevent delivery to
    the others.

    Example:
        >>> bus = EventBus()
        >>> unsubscribe = bus.subscribe(lambda event: print(event.type))
        >>> bus.emit(Event(EventType.TAO_START))
        >>> unsubscribe()
    """

    def __init__(self) -> None:
        self._listeners: list[EventListener] = []

    def subscribe(self, listener: EventListener) -> Callable[[], None]:
        """Register a listener.

        Returns:
            Function that removes the listener again.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: Event) -> None:
        """Deliver an event to every listener."""
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("event listener failed: event=%s", event.type.value)

    def clear(self) -> None:
        """Remove all listeners."""
        self._listeners.clear()

    def __len__(self) -> int:
        return len(self._listeners)
