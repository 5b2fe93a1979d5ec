"""
Single-threaded readiness polling over the listening socket and all clients.
"""

from __future__ import annotations

import logging
import selectors
import socket

logger = logging.getLogger(__name__)


class ReadinessMultiplexer:
    """
    Watches any number of sockets for read readiness.

    Registration failures only affect the socket concerned: they are logged
    and reported through the return value, never raised.
    """

    def __init__(self, selector: selectors.BaseSelector | None = None):
        self._selector = selector or selectors.DefaultSelector()
        self.closed = False

    def register(self, sock: socket.socket) -> bool:
        """Start watching sock. Returns False if it could not be registered."""
        try:
            self._selector.register(sock, selectors.EVENT_READ)
        except (KeyError, ValueError, OSError) as e:
            logger.error(f"Failed to register socket for polling: {e}")
            return False
        return True

    def unregister(self, sock: socket.socket) -> bool:
        """Stop watching sock. Unknown sockets are ignored (returns False)."""
        try:
            self._selector.unregister(sock)
        except KeyError:
            return False
        except (ValueError, OSError) as e:
            logger.warning(f"Failed to unregister socket: {e}")
            return False
        return True

    def poll(self, timeout: float) -> set[socket.socket]:
        """
        Wait up to timeout seconds for registered sockets to become readable.

        Returns:
            The set of ready sockets; empty on timeout
        """
        return {key.fileobj for key, _ in self._selector.select(timeout)}

    def __len__(self) -> int:
        return len(self._selector.get_map())

    def close(self) -> None:
        self._selector.close()
        self.closed = True
