from __future__ import annotations

import threading
from typing import Any, Callable

Handler = Callable[..., Any]


class EventBus:
    """Publish/subscribe hub for analysis, viewport and edit events.

    Event names are dotted, e.g. ``"viewport.scrolled"``.  Subscribing to
    a wildcard such as ``"viewport.*"`` receives every event below that
    prefix; wildcard handlers get the concrete name as the ``event``
    keyword in addition to the payload.

    Analysis completions may be published from the runner thread while the
    host subscribes, so the handler table is guarded by a lock.  Handlers
    run outside it, on the emitting thread.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = {}
        self._lock = threading.Lock()

    def subscribe(self, event_type: str, handler: Handler) -> Callable[[], None]:
        """Register *handler*; returns a callable that removes it again."""
        with self._lock:
            self._handlers.setdefault(event_type, []).append(handler)
        return lambda: self.unsubscribe(event_type, handler)

    def unsubscribe(self, event_type: str, handler: Handler) -> None:
        with self._lock:
            handlers = self._handlers.get(event_type)
            if handlers and handler in handlers:
                handlers.remove(handler)
                if not handlers:
                    del self._handlers[event_type]

    def has_subscribers(self, event_type: str) -> bool:
        exact, wildcard = self._lookup(event_type)
        return bool(exact or wildcard)

    def _lookup(self, event_type: str) -> tuple[list[Handler], list[Handler]]:
        parts = event_type.split(".")
        with self._lock:
            exact = list(self._handlers.get(event_type, ()))
            wildcard: list[Handler] = []
            # most specific prefix first
            for i in range(len(parts) - 1, -1, -1):
                key = ".".join(parts[:i] + ["*"])
                wildcard.extend(self._handlers.get(key, ()))
        return exact, wildcard

    def emit(self, event_type: str, **data: Any) -> None:
        exact, wildcard = self._lookup(event_type)
        for handler in exact:
            handler(**data)
        for handler in wildcard:
            handler(event=event_type, **data)
