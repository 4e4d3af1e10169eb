"""
Minimal `.on(event, handler)` subscription, the same shape AgentSession-style
SDKs expose. Handlers run synchronously on the event loop thread.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List

from logging_setup import get_logger, Component

logger = get_logger(Component.ENGINE)

Handler = Callable[..., Any]


class Observable:
    """Named-event handler registry."""

    def __init__(self) -> None:
        self._handlers: Dict[str, List[Handler]] = {}

    def on(self, event: str, handler: Handler) -> Callable[[], None]:
        """Register handler for event; returns a function that unregisters it."""
        self._handlers.setdefault(event, []).append(handler)

        def _off() -> None:
            self.off(event, handler)

        return _off

    def off(self, event: str, handler: Handler) -> None:
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def _notify(self, event: str, *args: Any) -> None:
        # Snapshot: handlers may unsubscribe themselves while running
        for handler in list(self._handlers.get(event, [])):
            try:
                handler(*args)
            except Exception as e:
                # A broken subscriber must not stop the others or the controller
                logger.exception(
                    "Event handler failed",
                    event=event,
                    error=str(e),
                    error_type=type(e).__name__,
                )
