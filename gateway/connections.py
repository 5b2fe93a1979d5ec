"""
Connection registry for TCP clients.

Each Connection pairs a client socket with its own LineFramer. The registry
is owned by the gateway loop thread: all mutation and iteration happen
there, so it needs no lock.
"""

from __future__ import annotations

import itertools
import logging
import socket
from typing import Callable, Iterator

from gateway.framer import LineFramer
from gateway.multiplexer import ReadinessMultiplexer
from utils.protocol import DELIMITER, encode_line

logger = logging.getLogger(__name__)

_conn_ids = itertools.count(1)


class Connection:
    """A live TCP client session and its partial-line state."""

    def __init__(self, sock: socket.socket, framer: LineFramer, address: str = "unknown"):
        self.sock = sock
        self.framer = framer
        self.address = address
        self.conn_id = next(_conn_ids)
        self.alive = True

    def send_line(self, line: str) -> None:
        """
        Write one protocol line.

        Raises:
            OSError: If the write fails or the connection is already closed
        """
        if not self.alive:
            raise ConnectionError(f"connection {self.conn_id} is closed")
        self.sock.sendall(encode_line(line))

    def close(self) -> None:
        self.alive = False
        try:
            self.sock.close()
        except OSError as e:
            logger.debug(f"Error closing client {self.address}: {e}")

    def __repr__(self) -> str:
        return f"Connection(id={self.conn_id}, address={self.address}, alive={self.alive})"


def _format_peer(sock: socket.socket) -> str:
    try:
        host, port = sock.getpeername()[:2]
    except (OSError, TypeError, ValueError):
        return "unknown"
    return f"{host}:{port}"


class ConnectionRegistry:
    """
    Owns the set of active client connections, in insertion order.

    Example:
        registry = ConnectionRegistry(multiplexer)
        conn = registry.accept(client_sock)
        registry.broadcast("+TPH,21.50,101.30,40.00")
        registry.remove(conn)
    """

    def __init__(
        self,
        multiplexer: ReadinessMultiplexer,
        delimiter: bytes = DELIMITER,
        max_buffer_size: int | None = None,
    ):
        self._multiplexer = multiplexer
        self._delimiter = delimiter
        self._max_buffer_size = max_buffer_size
        self._connections: dict[socket.socket, Connection] = {}

    def accept(self, sock: socket.socket, address: str | None = None) -> Connection | None:
        """
        Wrap an accepted socket into a Connection and start polling it.

        Returns:
            The new Connection, or None if the socket could not be registered
            for polling (the socket is closed in that case)
        """
        conn = Connection(
            sock,
            LineFramer(self._delimiter, self._max_buffer_size),
            address or _format_peer(sock),
        )
        if not self._multiplexer.register(sock):
            logger.warning(f"Dropping client {conn.address}: cannot poll socket")
            conn.close()
            return None
        self._connections[sock] = conn
        logger.info(f"Client {conn.address} connected ({len(self._connections)} active)")
        return conn

    def for_each_ready(
        self, ready: set[socket.socket], fn: Callable[[Connection], None]
    ) -> None:
        """Call fn for every registered connection whose socket is in ready."""
        for conn in list(self._connections.values()):
            if conn.sock in ready and conn.alive:
                fn(conn)

    def remove(self, conn: Connection) -> None:
        """Unregister and close a connection. Removing twice is a no-op."""
        if self._connections.get(conn.sock) is not conn:
            return
        del self._connections[conn.sock]
        self._multiplexer.unregister(conn.sock)
        conn.close()
        logger.info(f"Client {conn.address} disconnected ({len(self._connections)} active)")

    def broadcast(self, line: str) -> int:
        """
        Write line to every connection. A connection whose write fails is
        removed and delivery continues with the next one.

        Returns:
            Number of connections the line was delivered to
        """
        delivered = 0
        for conn in list(self._connections.values()):
            try:
                conn.send_line(line)
                delivered += 1
            except OSError as e:
                logger.error(f"Write to {conn.address} failed: {e}")
                self.remove(conn)
        return delivered

    def close_all(self) -> None:
        for conn in list(self._connections.values()):
            self.remove(conn)

    def __len__(self) -> int:
        return len(self._connections)

    def __iter__(self) -> Iterator[Connection]:
        return iter(list(self._connections.values()))

    def __contains__(self, conn: object) -> bool:
        return isinstance(conn, Connection) and self._connections.get(conn.sock) is conn
