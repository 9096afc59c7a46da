"""
Event Emitter

Named, synchronous listeners for model types and model instances.

Every model type owns one :class:`Emitter` and every model instance owns
another. Handlers run in registration order on the caller's stack, so an
exception raised by a handler propagates out of ``emit`` and out of the
lifecycle method that emitted it.
"""

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

Handler = Callable[..., Any]


class Emitter:
    """
    Listener-name to handler-list registry.

    Unlike the async event buses, ``emit`` does not schedule anything:
    handlers are plain callables invoked immediately with the event
    arguments.
    """

    def __init__(self):
        self._handlers: Dict[str, List[Handler]] = defaultdict(list)

    def on(self, name: str, handler: Handler) -> "Emitter":
        """
        Subscribe a handler to an event.

        Args:
            name: Event name, e.g. ``"change"`` or ``"before save"``
            handler: Callable receiving the event arguments
        """
        self._handlers[name].append(handler)
        return self

    def once(self, name: str, handler: Handler) -> "Emitter":
        """Subscribe a handler that is removed after its first call."""

        def wrapper(*args):
            self.off(name, wrapper)
            return handler(*args)

        wrapper.handler = handler
        return self.on(name, wrapper)

    def off(self, name: Optional[str] = None, handler: Optional[Handler] = None) -> "Emitter":
        """
        Unsubscribe handlers.

        With no arguments every handler is removed; with only ``name`` all
        handlers of that event are removed.
        """
        if name is None:
            self._handlers.clear()
            return self

        if handler is None:
            self._handlers.pop(name, None)
            return self

        handlers = self._handlers.get(name, [])
        for registered in list(handlers):
            # == so that bound methods match
            if registered == handler or getattr(registered, "handler", None) == handler:
                handlers.remove(registered)
                break
        return self

    def emit(self, name: str, *args: Any) -> bool:
        """
        Call every handler subscribed to ``name``.

        Returns:
            True if at least one handler was called
        """
        handlers = self._handlers.get(name)
        if not handlers:
            return False

        # Copy so that once() handlers can unsubscribe while iterating
        for handler in list(handlers):
            handler(*args)
        return True

    def listeners(self, name: str) -> List[Handler]:
        """Get the handlers currently subscribed to ``name``."""
        return list(self._handlers.get(name, []))

    def has_listeners(self, name: str) -> bool:
        return bool(self._handlers.get(name))


__all__ = ["Emitter", "Handler"]
