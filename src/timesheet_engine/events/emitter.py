"""Event emitter for publishing domain events.

The emitter provides:
- Handler registration by event type, or for every event
- Error isolation (handler failures don't break other handlers)
- Outbox batches: events collected during a command are dispatched only
  when the command's context exits cleanly
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar, Union

from timesheet_engine.events.types import DomainEvent

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=DomainEvent)

EventHandler = Callable[[DomainEvent], Union[None, Awaitable[None]]]


@dataclass
class HandlerRegistration:
    """Registration of an event handler."""

    handler: EventHandler
    event_types: set[str] | None  # None = all events

    def matches(self, event: DomainEvent) -> bool:
        return not self.event_types or event.event_type in self.event_types


class AsyncEventEmitter:
    """Asynchronous event emitter.

    Accepts both coroutine and plain handlers.

    Usage:
        emitter = AsyncEventEmitter()

        async def notify_admin(event: ChangeRequestSubmitted) -> None:
            await mailer.send(...)

        emitter.on(ChangeRequestSubmitted, notify_admin)

        async with emitter.batch() as outbox:
            await repository.save_entry(entry)
            outbox.add(ChangeRequestSubmitted(...))
        # Dispatched here, only if the block did not raise
        warnings = outbox.errors
    """

    def __init__(self) -> None:
        self._handlers: list[HandlerRegistration] = []

    def on(
        self,
        event_type: type[T] | list[type[T]],
        handler: EventHandler,
    ) -> None:
        """Register handler for specific event type(s)."""
        if isinstance(event_type, list):
            types = {t.__name__ for t in event_type}
        else:
            types = {event_type.__name__}
        self._handlers.append(
            HandlerRegistration(handler=handler, event_types=types)
        )

    def on_all(self, handler: EventHandler) -> None:
        """Register handler for all events."""
        self._handlers.append(
            HandlerRegistration(handler=handler, event_types=None)
        )

    async def emit(self, event: DomainEvent) -> list[Exception]:
        """Emit an event to all matching handlers.

        Handlers run one after another; a failing handler is logged and
        skipped. Returns list of any exceptions raised by handlers.
        """
        errors: list[Exception] = []
        for reg in self._handlers:
            if not reg.matches(event):
                continue
            try:
                result = reg.handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.exception(
                    "Handler %s failed for event %s",
                    reg.handler,
                    event.event_type,
                )
                errors.append(e)
        return errors

    def batch(self) -> AsyncEventBatch:
        """Create an outbox collecting events until the context exits."""
        return AsyncEventBatch(self)


class AsyncEventBatch:
    """Async context manager holding events for post-commit dispatch."""

    def __init__(self, emitter: AsyncEventEmitter) -> None:
        self._emitter = emitter
        self._events: list[DomainEvent] = []
        self._errors: list[Exception] = []

    async def __aenter__(self) -> AsyncEventBatch:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        events, self._events = self._events, []
        if exc_type is not None:
            # Command failed - nothing happened, so nothing to announce
            return
        for event in events:
            self._errors.extend(await self._emitter.emit(event))

    def add(self, event: DomainEvent) -> None:
        """Queue an event for dispatch on clean exit."""
        self._events.append(event)

    @property
    def errors(self) -> list[Exception]:
        """Errors from handler execution (available after context exits)."""
        return self._errors
