"""Hook manager - sequential, failure-isolated publish/subscribe over the lifecycle events."""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Union

from ..errors import HookError
from .events import PAYLOAD_TYPES, HookEvent, HookPayload

HookHandler = Callable[[Any], Union[Awaitable[None], None]]
Unregister = Callable[[], None]


@dataclass
class HookRegistration:
    event: HookEvent
    handler: HookHandler


class HookManager:
    """
    Registry of lifecycle handlers keyed by event.

    Handlers run one at a time in registration order. A failing handler is
    logged and skipped; ``emit`` itself never raises for handler faults.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or logging.getLogger(__name__)
        # dict keys double as an insertion-ordered set
        self._registry: dict[HookEvent, dict[HookHandler, None]] = {}
        # once() wrappers, keyed by (event, original handler)
        self._once: dict[tuple[HookEvent, HookHandler], HookHandler] = {}

    def on(self, event: HookEvent | str, handler: HookHandler) -> Unregister:
        event = HookEvent(event)
        self._registry.setdefault(event, {})[handler] = None

        def unregister() -> None:
            self.off(event, handler)

        return unregister

    def once(self, event: HookEvent | str, handler: HookHandler) -> Unregister:
        event = HookEvent(event)
        fired = False

        async def disposable(payload: Any) -> None:
            nonlocal fired
            # Overlapping emits may both hold this wrapper in their snapshot.
            if fired:
                return
            fired = True
            if self._once.get((event, handler)) is disposable:
                del self._once[(event, handler)]
            self._discard(event, disposable)
            result = handler(payload)
            if inspect.isawaitable(result):
                await result

        previous = self._once.pop((event, handler), None)
        if previous is not None:
            self._discard(event, previous)
        self._once[(event, handler)] = disposable
        self._registry.setdefault(event, {})[disposable] = None

        def unregister() -> None:
            if self._once.get((event, handler)) is disposable:
                del self._once[(event, handler)]
            self._discard(event, disposable)

        return unregister

    def off(self, event: HookEvent | str, handler: HookHandler) -> None:
        """Remove ``handler`` whether it was registered with ``on`` or ``once``."""
        event = HookEvent(event)
        wrapper = self._once.pop((event, handler), None)
        if wrapper is not None:
            self._discard(event, wrapper)
        self._discard(event, handler)

    def _discard(self, event: HookEvent, listener: HookHandler) -> None:
        listeners = self._registry.get(event)
        if not listeners:
            return
        listeners.pop(listener, None)
        if not listeners:
            del self._registry[event]

    def clear(self) -> None:
        self._registry.clear()
        self._once.clear()

    def listener_count(self, event: HookEvent | str | None = None) -> int:
        if event is not None:
            return len(self._registry.get(HookEvent(event), {}))
        return sum(len(listeners) for listeners in self._registry.values())

    def register_many(self, registrations: Iterable[HookRegistration]) -> Unregister:
        cleanups = [self.on(r.event, r.handler) for r in registrations]

        def unregister() -> None:
            for cleanup in cleanups:
                cleanup()

        return unregister

    async def emit(self, event: HookEvent | str, payload: HookPayload) -> None:
        event = HookEvent(event)
        expected = PAYLOAD_TYPES[event]
        if not isinstance(payload, expected):
            raise TypeError(
                f"Payload for {event.value!r} must be {expected.__name__}, "
                f"got {type(payload).__name__}"
            )

        listeners = list(self._registry.get(event, ()))
        if not listeners:
            return

        for index, listener in enumerate(listeners):
            try:
                result = listener(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                fault = HookError(event.value, index, e)
                self.logger.warning(
                    "%s: %s",
                    fault.message,
                    e,
                    extra={"event": fault.event, "handler_index": fault.handler_index},
                )

    async def publish(self, payload: HookPayload) -> None:
        """Emit ``payload`` under the event its type is bound to."""
        await self.emit(payload.event, payload)
