"""Fake transport for network-free testing.

``FakeTransport`` records every outbound message and lets the test inject
inbound messages or an unexpected close. ``FakeConnector`` counts open
connections so tests can assert two sockets never coexist.
"""

import asyncio
import json

from speechstream.errors import TransportError
from speechstream.protocol import message_kind

_CLOSED = object()


class FakeTransport:
    """In-memory connection that records outbound traffic."""

    def __init__(self, connector: "FakeConnector | None" = None):
        self._connector = connector
        self._inbound: asyncio.Queue = asyncio.Queue()
        self.sent: list[str] = []
        self.closed = False
        self.close_error: str | None = None
        self.fail_writes: TransportError | None = None
        self.write_delay: float = 0.0

    async def send(self, message: str) -> None:
        if self.write_delay:
            await asyncio.sleep(self.write_delay)
        if self.closed:
            raise TransportError(self.close_error or "connection closed")
        if self.fail_writes is not None:
            raise self.fail_writes
        self.sent.append(message)

    async def recv(self) -> str | bytes:
        if self.closed and self._inbound.empty():
            raise TransportError(self.close_error or "connection closed")
        item = await self._inbound.get()
        if item is _CLOSED:
            raise TransportError(self.close_error or "connection closed")
        return item

    async def close(self) -> None:
        self._mark_closed()
        self._inbound.put_nowait(_CLOSED)

    def push(self, message: str | bytes | dict) -> None:
        """Queue an inbound message; dicts are JSON encoded."""
        if isinstance(message, dict):
            message = json.dumps(message, ensure_ascii=False)
        self._inbound.put_nowait(message)

    def drop(self, reason: str = "connection closed by server (code 1006: abnormal closure)") -> None:
        """Simulate the server going away mid-stream."""
        self.close_error = reason
        self._mark_closed()
        self._inbound.put_nowait(_CLOSED)

    def _mark_closed(self) -> None:
        if not self.closed:
            self.closed = True
            if self._connector is not None:
                self._connector._released(self)

    def messages(self, kind: str) -> list[str]:
        """Outbound messages of one kind: config, frame, terminate or unknown."""
        return [message for message in self.sent if message_kind(message) == kind]

    @property
    def kinds(self) -> list[str]:
        """Kind of every outbound message, in send order."""
        return [message_kind(message) for message in self.sent]


class FakeConnector:
    """Connector producing FakeTransports.

    Args:
        fail_with: Raise this from every connect.
        connect_delay: Seconds each connect takes.
    """

    def __init__(self, fail_with: TransportError | None = None, connect_delay: float = 0.0):
        self.fail_with = fail_with
        self.connect_delay = connect_delay
        self.transports: list[FakeTransport] = []
        self.attempts = 0
        self.active = 0
        self.max_active = 0

    async def connect(self) -> FakeTransport:
        self.attempts += 1
        if self.connect_delay:
            await asyncio.sleep(self.connect_delay)
        if self.fail_with is not None:
            raise self.fail_with
        transport = FakeTransport(self)
        self.transports.append(transport)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        return transport

    @property
    def current(self) -> FakeTransport | None:
        """Most recently opened transport, if any."""
        return self.transports[-1] if self.transports else None

    def _released(self, transport: FakeTransport) -> None:
        self.active -= 1
