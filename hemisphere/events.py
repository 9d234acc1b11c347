"""Publish/subscribe hub for generation events."""

import logging
from typing import Callable

from .models.events import GenerationEvent

logger = logging.getLogger(__name__)

Subscriber = Callable[[GenerationEvent], None]


class EventBus:
    """Delivers events synchronously to every subscriber, in subscription order."""

    def __init__(self):
        self._subscribers: list[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> None:
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        try:
            self._subscribers.remove(callback)
        except ValueError:
            pass

    def publish(self, event: GenerationEvent) -> None:
        """Send an event to all subscribers.

        A failing subscriber is logged and does not stop delivery to the others.
        """
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception("Event subscriber %r failed on %s", callback, type(event).__name__)
