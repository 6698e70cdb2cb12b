"""WebSocket transport built on the ``websockets`` client."""

import asyncio
import logging

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from speechstream.constants import CLOSE_TIMEOUT_S, CONNECT_TIMEOUT_S, PING_INTERVAL_S, PING_TIMEOUT_S
from speechstream.errors import TransportError

logger = logging.getLogger(__name__)


def _describe_close(error: ConnectionClosed) -> str:
    if error.rcvd is not None:
        return f"connection closed by server (code {error.rcvd.code}: {error.rcvd.reason or 'no reason'})"
    return f"connection lost: {error}"


class WebSocketTransport:
    """Transport over an open ``websockets`` client connection."""

    def __init__(self, ws):
        self._ws = ws

    async def send(self, message: str) -> None:
        try:
            await self._ws.send(message)
        except ConnectionClosed as e:
            raise TransportError(_describe_close(e)) from e
        except OSError as e:
            raise TransportError(f"write failed: {e}") from e

    async def recv(self) -> str | bytes:
        try:
            return await self._ws.recv()
        except ConnectionClosed as e:
            raise TransportError(_describe_close(e)) from e
        except OSError as e:
            raise TransportError(f"read failed: {e}") from e

    async def close(self) -> None:
        try:
            await self._ws.close()
        except (WebSocketException, OSError) as e:
            raise TransportError(f"close failed: {e}") from e


class WebSocketConnector:
    """Connects to the transcription endpoint.

    The API key travels in the handshake headers as well as in the config
    message sent after connect.
    """

    def __init__(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        open_timeout: float = CONNECT_TIMEOUT_S,
        close_timeout: float = CLOSE_TIMEOUT_S,
    ):
        self.url = url
        self.headers = headers
        self.open_timeout = open_timeout
        self.close_timeout = close_timeout

    async def connect(self) -> WebSocketTransport:
        logger.info(f"Connecting to {self.url}")
        try:
            ws = await websockets.connect(
                self.url,
                additional_headers=self.headers,
                open_timeout=self.open_timeout,
                close_timeout=self.close_timeout,
                ping_interval=PING_INTERVAL_S,
                ping_timeout=PING_TIMEOUT_S,
            )
        except asyncio.TimeoutError as e:
            raise TransportError(f"connect to {self.url} timed out") from e
        except (WebSocketException, OSError) as e:
            raise TransportError(f"connect to {self.url} failed: {e}") from e
        logger.info("Connected")
        return WebSocketTransport(ws)
