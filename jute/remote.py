"""
Connections to remote Jupyter servers over HTTP and WebSocket.
"""

import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional
from urllib.parse import quote

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from jute.connection import KernelConnection, create_websocket_connection
from jute.errors import ConfigError, ConnectError, RemoteError

logger = logging.getLogger(__name__)

# Seconds allowed for establishing the TCP connection to the server.
CONNECT_TIMEOUT = 1.0

Connector = Callable[[str, str], Awaitable[KernelConnection]]


class KernelInfo(BaseModel):
    """Information about a remote Jupyter kernel."""
    id: str
    name: str  # kernel type, e.g. python3
    last_activity: datetime  # ISO timestamp, typically UTC
    execution_state: str  # starting, idle, busy, ...
    connections: int


class _ApiVersion(BaseModel):
    version: str


_API_VERSION = TypeAdapter(_ApiVersion)
_KERNEL_INFO = TypeAdapter(KernelInfo)
_KERNEL_LIST = TypeAdapter(list[KernelInfo])


def _parse_server_url(server_url: str) -> httpx.URL:
    try:
        url = httpx.URL(server_url)
    except httpx.InvalidURL as e:
        raise ConfigError(f"invalid server URL {server_url!r}: {e}") from e
    if url.scheme not in ("http", "https") or not url.host:
        raise ConfigError(f"invalid server URL {server_url!r}: expected an absolute http or https URL")
    return url


def _check_status(response: httpx.Response):
    if response.is_success:
        return
    request = response.request
    raise RemoteError(
        f"{request.method} {request.url} returned {response.status_code}",
        status_code=response.status_code,
        body=response.text,
    )


def _decode(response: httpx.Response, adapter: TypeAdapter) -> Any:
    try:
        return adapter.validate_json(response.content)
    except ValidationError as e:
        raise RemoteError(
            f"unexpected response body from {response.request.url}: {e}",
            status_code=response.status_code,
            body=response.text,
        ) from e


def _kernel_path(kernel_id: str) -> str:
    return "/api/kernels/" + quote(kernel_id, safe="")


def channels_url(server_url: httpx.URL, kernel_id: str) -> str:
    """
    Build the WebSocket URL of a kernel's channels endpoint.

    The scheme mirrors the server URL: https becomes wss, http becomes ws.
    """
    url = str(server_url.join(_kernel_path(kernel_id) + "/channels"))
    if url.startswith("https://"):
        return url.replace("https://", "wss://", 1)
    return url.replace("http://", "ws://", 1)


class JupyterClient:
    """
    HTTP client for a remote Jupyter server.

    This client can make REST API requests and hands its token to new
    kernel channels. It holds no per-request state, so one instance can be
    shared freely between tasks. Call ``aclose()`` (or use ``async with``)
    when done to release the connection pool.
    """

    def __init__(
        self,
        server_url: str,
        token: str,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Create a client without connecting.

        Args:
            server_url: Base URL of the server, e.g. http://localhost:8888
            token: Server token, sent as ``Authorization: token <token>``
            transport: Optional httpx transport, mainly for tests

        Raises:
            ConfigError: If the URL or the token cannot be used
        """
        if any(ch in token for ch in "\r\n\0"):
            raise ConfigError("server token contains control characters")
        self._server_url = _parse_server_url(server_url)
        self._token = token
        self._http = httpx.AsyncClient(
            headers={"Authorization": f"token {token}"},
            timeout=httpx.Timeout(None, connect=CONNECT_TIMEOUT),
            transport=transport,
        )

    @property
    def server_url(self) -> httpx.URL:
        return self._server_url

    @property
    def token(self) -> str:
        return self._token

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        url = self._server_url.join(path)
        try:
            return await self._http.request(method, url, **kwargs)
        except httpx.RequestError as e:
            logger.debug("%s %s failed: %s", method, url, e)
            raise RemoteError(f"{method} {url} failed: {e}") from e

    async def get_api_version(self) -> str:
        """Get the API version of the Jupyter server."""
        response = await self._request("GET", "/api")
        _check_status(response)
        return _decode(response, _API_VERSION).version

    async def list_kernels(self) -> list[KernelInfo]:
        """List the active kernels on the Jupyter server."""
        response = await self._request("GET", "/api/kernels")
        _check_status(response)
        return _decode(response, _KERNEL_LIST)

    async def get_kernel_by_id(self, kernel_id: str) -> Optional[KernelInfo]:
        """
        Get information about a specific kernel.

        Returns:
            The kernel, or None if the server does not know the ID
        """
        response = await self._request("GET", _kernel_path(kernel_id))
        if response.status_code == httpx.codes.NOT_FOUND:
            return None
        _check_status(response)
        return _decode(response, _KERNEL_INFO)

    async def create_kernel(self, spec_name: str) -> KernelInfo:
        """Create a new kernel from the spec with the given name."""
        response = await self._request("POST", "/api/kernels", json={"name": spec_name})
        _check_status(response)
        info = _decode(response, _KERNEL_INFO)
        logger.info("created kernel %s from spec %s", info.id, spec_name)
        return info

    async def kill_kernel(self, kernel_id: str):
        """Kill a kernel and delete its kernel ID."""
        response = await self._request("DELETE", _kernel_path(kernel_id))
        _check_status(response)
        logger.info("killed kernel %s", kernel_id)

    async def aclose(self):
        await self._http.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()


class RemoteKernel:
    """A running Jupyter kernel connected over the WebSocket channel."""

    def __init__(self, client: JupyterClient, kernel_id: str, conn: KernelConnection):
        self._client = client
        self._kernel_id = kernel_id
        self._conn = conn

    @classmethod
    async def start(
        cls,
        client: JupyterClient,
        spec_name: str,
        *,
        connect: Connector = create_websocket_connection,
    ) -> "RemoteKernel":
        """
        Start a new kernel on the server and open its channel.

        If the channel cannot be opened, the freshly created kernel is
        deleted again before the ConnectError is re-raised.

        Args:
            client: Client for the server to start the kernel on
            spec_name: Name of the kernel spec, e.g. python3
            connect: Opens the channel given a URL and a token

        Raises:
            RemoteError: If the server refuses to create the kernel
            ConnectError: If the channel cannot be opened
        """
        info = await client.create_kernel(spec_name)
        ws_url = channels_url(client.server_url, info.id)
        try:
            conn = await connect(ws_url, client.token)
        except ConnectError:
            await _discard_kernel(client, info.id)
            raise
        return cls(client, info.id, conn)

    @property
    def id(self) -> str:
        return self._kernel_id

    @property
    def client(self) -> JupyterClient:
        return self._client

    def conn(self) -> KernelConnection:
        """Get the connection to this kernel."""
        return self._conn

    async def kill(self):
        """Kill the kernel and delete its kernel ID on the server."""
        await self._client.kill_kernel(self._kernel_id)

    async def close(self):
        """Close the channel, leaving the kernel running on the server."""
        await self._conn.close()


async def _discard_kernel(client: JupyterClient, kernel_id: str):
    try:
        await client.kill_kernel(kernel_id)
    except RemoteError as e:
        logger.warning("kernel %s was left running after a failed connect: %s", kernel_id, e)
