"""
KernelConnection: WebSocket channel to a running Jupyter kernel.

Messages are exchanged as JSON text frames. Building and interpreting
kernel protocol messages is left to the caller.
"""

import asyncio
import json
import logging
from typing import Any

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import WebSocketException

from jute.errors import ConnectError

logger = logging.getLogger(__name__)


class KernelConnection:
    """An open channel to one kernel session."""

    def __init__(self, url: str, websocket: ClientConnection):
        self.url = url
        self._websocket = websocket

    async def send(self, message: dict[str, Any]):
        """Send one JSON message to the kernel."""
        await self._websocket.send(json.dumps(message))

    async def recv(self) -> dict[str, Any]:
        """Wait for the next JSON message from the kernel."""
        return json.loads(await self._websocket.recv())

    async def close(self):
        """Close the channel. Safe to call more than once."""
        logger.debug("closing kernel channel %s", self.url)
        await self._websocket.close()


async def create_websocket_connection(url: str, token: str) -> KernelConnection:
    """
    Open a kernel channel at ``url``.

    Args:
        url: ``ws://`` or ``wss://`` channel URL
        token: Server token, sent as ``Authorization: token <token>``

    Returns:
        The open connection

    Raises:
        ConnectError: If the handshake or the network connection fails
    """
    logger.debug("opening kernel channel %s", url)
    try:
        websocket = await connect(url, additional_headers={"Authorization": f"token {token}"})
    except (OSError, asyncio.TimeoutError, WebSocketException) as e:
        raise ConnectError(f"could not connect to {url}: {e}") from e
    return KernelConnection(url, websocket)
