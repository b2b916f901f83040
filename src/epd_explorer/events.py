"""Typed messages for resetting search and filter state, and a minimal
synchronous message bus to deliver them."""

import logging
from collections import defaultdict
from typing import Callable, DefaultDict, List, Type

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)


class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: str = "unknown"


class FiltersReset(Message):
    """Reset category and declaration-only filters."""


class SearchCleared(Message):
    """Clear the search query and selection."""


class AllMarkersRequested(Message):
    """Show every marker: reset category, declaration-only and country."""


Handler = Callable[[Message], None]


class MessageBus:
    """Delivers each published message to the handlers registered for its exact type."""

    def __init__(self):
        self._handlers: DefaultDict[Type[Message], List[Handler]] = defaultdict(list)

    def subscribe(self, message_type: Type[Message], handler: Handler) -> None:
        if not (isinstance(message_type, type) and issubclass(message_type, Message)):
            raise TypeError(f"can only subscribe to Message types, got {message_type!r}")
        self._handlers[message_type].append(handler)

    def unsubscribe(self, message_type: Type[Message], handler: Handler) -> None:
        handlers = self._handlers.get(message_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, message: Message) -> int:
        """Deliver ``message``; returns the number of handlers called."""
        handlers = list(self._handlers.get(type(message), []))
        if not handlers:
            logger.debug("No handlers for %s from %s", type(message).__name__, message.source)
        for handler in handlers:
            handler(message)
        return len(handlers)
