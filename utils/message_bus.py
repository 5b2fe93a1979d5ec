"""
In-process publish/subscribe bus.

Events are plain message objects (see utils.messages). Subscribers register
a handler per message type; published events are queued and delivered in
publish order, either by a background dispatch thread (start/stop) or
synchronously on the caller's thread via dispatch_pending().

Example:
    bus = MessageBus()
    bus.subscribe(Temperature, lambda msg: print(msg.value))
    bus.start()
    bus.publish(Temperature(21.5))
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Any, Callable

logger = logging.getLogger(__name__)

EventHandler = Callable[[Any], None]


class MessageBus:
    """Typed publish/subscribe bus with a bounded delivery queue."""

    def __init__(self, max_size: int = 1024):
        """
        Initialize the bus.

        Args:
            max_size: Maximum number of undelivered events before publish fails
        """
        self._handlers: dict[type, list[EventHandler]] = {}
        self._handlers_lock = threading.Lock()
        self._queue: queue.Queue[Any] = queue.Queue(maxsize=max_size)
        self._running = False
        self._dispatch_thread: threading.Thread | None = None

    def subscribe(self, event_type: type, handler: EventHandler) -> None:
        """Register a handler for every published event of event_type."""
        with self._handlers_lock:
            self._handlers.setdefault(event_type, []).append(handler)
        logger.debug(f"Subscribed handler to {event_type.__name__}")

    def unsubscribe(self, event_type: type, handler: EventHandler) -> bool:
        """
        Remove a previously registered handler.

        Returns:
            True if the handler was found and removed, False otherwise
        """
        with self._handlers_lock:
            handlers = self._handlers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)
                return True
        return False

    def publish(self, event: Any) -> bool:
        """
        Queue an event for delivery. Returns immediately.

        Returns:
            True if queued, False if the delivery queue is full
        """
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            logger.warning(f"Bus queue full, dropped {type(event).__name__}")
            return False
        return True

    def dispatch_pending(self) -> int:
        """
        Deliver all queued events on the calling thread.

        Returns:
            Number of events delivered
        """
        count = 0
        while True:
            try:
                event = self._queue.get_nowait()
            except queue.Empty:
                return count
            if event is None:
                continue
            self._deliver(event)
            count += 1

    def start(self) -> None:
        """Start the background dispatch thread."""
        if self._running:
            return
        self._running = True
        self._dispatch_thread = threading.Thread(
            target=self._dispatch_loop, daemon=True, name="BusDispatcher"
        )
        self._dispatch_thread.start()
        logger.info("Bus dispatch thread started")

    def stop(self) -> None:
        """Stop the background dispatch thread gracefully."""
        if not self._running:
            return
        self._running = False
        # Sentinel to unblock the queue
        try:
            self._queue.put_nowait(None)
        except queue.Full:
            pass
        if self._dispatch_thread and self._dispatch_thread.is_alive():
            self._dispatch_thread.join(timeout=2.0)
        self._dispatch_thread = None
        logger.info("Bus dispatch thread stopped")

    def _dispatch_loop(self) -> None:
        while self._running:
            try:
                event = self._queue.get(timeout=1.0)
            except queue.Empty:
                continue
            if event is None:
                break
            self._deliver(event)

    def _deliver(self, event: Any) -> None:
        with self._handlers_lock:
            handlers = list(self._handlers.get(type(event), []))

        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Bus handler error for {type(event).__name__}: {e}")
