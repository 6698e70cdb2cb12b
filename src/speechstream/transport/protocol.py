"""Protocol defining the interface for the socket connection.

This is the boundary that isolates the WebSocket library from the session
state machine, allowing real and fake transports to be swapped for testing.
"""

from typing import Protocol


class Transport(Protocol):
    """One open, bidirectional, text-framed connection.

    All methods raise ``TransportError`` on failure, including when the peer
    has closed the connection.
    """

    async def send(self, message: str) -> None:
        """Write one text frame."""
        ...

    async def recv(self) -> str | bytes:
        """Wait for the next inbound frame."""
        ...

    async def close(self) -> None:
        """Close the connection. Closing twice is a no-op."""
        ...


class Connector(Protocol):
    """Opens transports to a fixed endpoint."""

    async def connect(self) -> Transport:
        """Open a new connection.

        Raises:
            TransportError: If the connection cannot be established.
        """
        ...
