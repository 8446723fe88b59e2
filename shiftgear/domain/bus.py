"""In-process bus carrying ledger events to their subscribers."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable, Iterable

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]


class EventBus:
    """Dispatches ledger events to handlers keyed by event class.

    Dispatch is synchronous and in subscription order; handlers run after the
    ledger write they describe has completed and must not await.
    """

    def __init__(self) -> None:
        self._handlers: dict[type, list[Handler]] = defaultdict(list)

    def subscribe(self, event_types: type | Iterable[type], handler: Handler) -> None:
        if isinstance(event_types, type):
            event_types = (event_types,)
        for event_type in event_types:
            self._handlers[event_type].append(handler)

    def handlers_for(self, event_type: type) -> list[Handler]:
        return list(self._handlers.get(event_type, ()))

    def publish(self, event: Any) -> None:
        handlers = self.handlers_for(type(event))
        logger.debug(
            "dispatching ledger event",
            extra={"event_type": type(event).__name__, "handlers": len(handlers)},
        )
        for handler in handlers:
            handler(event)
