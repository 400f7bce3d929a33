# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
MCP Transports

One transport instance per live connection:
- StdioTransport launches the server process and talks over its stdio
  using the MCP Python SDK.
- HTTPTransport speaks JSON-RPC over streamable HTTP with aiohttp.

Transports raise freely; the ConnectionManager wraps failures into the
Waypoint error taxonomy. No retries happen at this layer.
"""

import asyncio
import json
import logging
import os
from datetime import datetime
from typing import Dict, Any, Optional, Callable, List

import aiohttp
from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client
from mcp.types import Implementation

from waypoint.core.errors import MCPProtocolError
from waypoint.mcp.jsonrpc import (
    build_initialize_request,
    build_initialized_notification,
    build_list_tools_request,
    build_call_tool_request,
    extract_error_message,
    is_response,
)
from waypoint.mcp.registry import ServerDescriptor, TRANSPORT_HTTP, TRANSPORT_STDIO
from waypoint.mcp.session import HTTPSession, ToolInfo

logger = logging.getLogger(__name__)


class ToolTransport:
    """Interface every transport implements"""

    async def connect(self) -> None:
        raise NotImplementedError

    async def list_tools(self) -> List[ToolInfo]:
        raise NotImplementedError

    async def call_tool(self, tool_name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    async def close(self) -> None:
        raise NotImplementedError


class StdioTransport(ToolTransport):
    """
    Launches the server as a child process and talks MCP over its stdio.

    The SDK's stdio client and session are anyio contexts that must be
    exited by the task that entered them. A single owner task holds both
    for the life of the connection; close() signals it and waits, so any
    task may close the transport.
    """

    def __init__(self, descriptor: ServerDescriptor, client_name: str, client_version: str):
        self.descriptor = descriptor
        self.client_info = Implementation(name=f"{client_name}-{descriptor.name}", version=client_version)
        self._session: Optional[ClientSession] = None
        self._owner: Optional[asyncio.Task] = None
        self._closing: Optional[asyncio.Event] = None

    def _server_parameters(self) -> StdioServerParameters:
        env = None
        if self.descriptor.env:
            env = {**os.environ, **self.descriptor.env}

        return StdioServerParameters(
            command=self.descriptor.command,
            args=list(self.descriptor.args),
            env=env,
        )

    async def connect(self) -> None:
        ready = asyncio.get_running_loop().create_future()
        self._closing = asyncio.Event()
        self._owner = asyncio.create_task(
            self._hold_session(self._server_parameters(), ready),
            name=f"mcp-stdio-{self.descriptor.name}"
        )

        try:
            await asyncio.wait({ready, self._owner}, return_when=asyncio.FIRST_COMPLETED)
        except BaseException:
            owner, self._owner = self._owner, None
            owner.cancel()
            await asyncio.gather(owner, return_exceptions=True)
            raise

        if not ready.done():
            owner, self._owner = self._owner, None
            await owner
            raise MCPProtocolError("Server exited during startup", server_name=self.descriptor.name)

    async def _hold_session(self, params: StdioServerParameters, ready: asyncio.Future) -> None:
        try:
            async with stdio_client(params) as (read_stream, write_stream):
                async with ClientSession(read_stream, write_stream, client_info=self.client_info) as session:
                    await session.initialize()
                    self._session = session
                    ready.set_result(None)
                    await self._closing.wait()
        finally:
            self._session = None

    def _require_session(self) -> ClientSession:
        if self._session is None:
            raise MCPProtocolError("Transport is not connected", server_name=self.descriptor.name)
        return self._session

    async def list_tools(self) -> List[ToolInfo]:
        response = await self._require_session().list_tools()
        return [
            ToolInfo(name=tool.name, description=tool.description, input_schema=tool.inputSchema or {})
            for tool in response.tools
        ]

    async def call_tool(self, tool_name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        result = await self._require_session().call_tool(tool_name, arguments)
        return result.model_dump(by_alias=True, exclude_none=True)

    async def close(self) -> None:
        owner, self._owner = self._owner, None
        if owner is None:
            return

        self._closing.set()
        if not owner.done():
            await owner
        elif not owner.cancelled():
            # Surfaces a crash of the session task after connect
            owner.result()


class HTTPTransport(ToolTransport):
    """Streamable-HTTP JSON-RPC client for one endpoint"""

    def __init__(
        self,
        descriptor: ServerDescriptor,
        client_name: str,
        client_version: str,
        protocol_version: str = "2025-06-18",
        timeout_init: float = 30.0,
        timeout_list: float = 10.0,
        timeout_call: float = 300.0,
        notification_handler: Optional[Callable[[Dict], None]] = None
    ):
        self.descriptor = descriptor
        self.endpoint = descriptor.url
        self.protocol_version = protocol_version
        self.client_info = {"name": f"{client_name}-{descriptor.name}", "version": client_version}
        self.timeout_init = timeout_init
        self.timeout_list = timeout_list
        self.timeout_call = timeout_call
        self.request_id_counter = 0
        self.session: Optional[HTTPSession] = None
        self._http_session: Optional[aiohttp.ClientSession] = None
        self.notification_handler = notification_handler or self._default_notification_handler

    def _default_notification_handler(self, notification: Dict) -> None:
        """Default handler for server notifications"""
        method = notification.get("method", "unknown")
        logger.debug(f"Server notification from {self.descriptor.name}: {method}")

    def _next_request_id(self) -> int:
        self.request_id_counter += 1
        return self.request_id_counter

    async def _get_http_session(self) -> aiohttp.ClientSession:
        """Get or create persistent HTTP session"""
        if self._http_session is None or self._http_session.closed:
            self._http_session = aiohttp.ClientSession()
        return self._http_session

    def _build_headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/json, text/event-stream",
            "Content-Type": "application/json",
        }
        if self.session:
            headers["MCP-Protocol-Version"] = self.session.protocol_version
            if self.session.session_id:
                headers["MCP-Session-Id"] = self.session.session_id
        return headers

    async def connect(self) -> None:
        """Perform the initialize / initialized handshake"""
        init_request = build_initialize_request(self._next_request_id(), self.protocol_version, self.client_info)
        http_session = await self._get_http_session()

        async with http_session.post(
            self.endpoint,
            json=init_request,
            headers=self._build_headers(),
            timeout=aiohttp.ClientTimeout(total=self.timeout_init)
        ) as response:
            if response.status != 200:
                raise MCPProtocolError(
                    f"Initialize failed with status {response.status}",
                    server_name=self.descriptor.name
                )

            result = await self._handle_response(response)
            if "error" in result:
                raise MCPProtocolError(
                    f"Initialize error: {extract_error_message(result)}",
                    server_name=self.descriptor.name
                )

            init_result = result.get("result", {})
            self.session = HTTPSession(
                endpoint=self.endpoint,
                protocol_version=init_result.get("protocolVersion") or self.protocol_version,
                session_id=response.headers.get("MCP-Session-Id"),
                server_capabilities=init_result.get("capabilities", {}),
                initialized_at=datetime.now()
            )

        async with http_session.post(
            self.endpoint,
            json=build_initialized_notification(),
            headers=self._build_headers(),
            timeout=aiohttp.ClientTimeout(total=self.timeout_init)
        ) as notif_response:
            if notif_response.status != 202:
                logger.warning(f"Initialized notification returned {notif_response.status}")

    async def _request(self, payload: Dict, timeout: float) -> Dict[str, Any]:
        http_session = await self._get_http_session()
        async with http_session.post(
            self.endpoint,
            json=payload,
            headers=self._build_headers(),
            timeout=aiohttp.ClientTimeout(total=timeout)
        ) as response:
            if response.status == 404:
                raise MCPProtocolError("Session expired", server_name=self.descriptor.name)
            if response.status >= 400:
                raise MCPProtocolError(
                    f"{payload['method']} failed with status {response.status}",
                    server_name=self.descriptor.name
                )

            result = await self._handle_response(response)
            if "error" in result:
                raise MCPProtocolError(
                    f"{payload['method']} error: {extract_error_message(result)}",
                    server_name=self.descriptor.name
                )
            return result.get("result", {})

    async def list_tools(self) -> List[ToolInfo]:
        result = await self._request(build_list_tools_request(self._next_request_id()), self.timeout_list)
        return [
            ToolInfo(
                name=tool["name"],
                description=tool.get("description"),
                input_schema=tool.get("inputSchema", {})
            )
            for tool in result.get("tools", [])
        ]

    async def call_tool(self, tool_name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        request = build_call_tool_request(self._next_request_id(), tool_name, arguments)
        return await self._request(request, self.timeout_call)

    async def close(self) -> None:
        if self._http_session and not self._http_session.closed:
            await self._http_session.close()
        self._http_session = None
        self.session = None

    async def _handle_response(self, response: aiohttp.ClientResponse) -> Dict:
        """Handle both JSON and SSE responses"""
        content_type = response.headers.get("Content-Type", "")

        if "text/event-stream" in content_type:
            return parse_sse_response(await response.text(), self.notification_handler)
        return await response.json()


def parse_sse_response(text: str, notification_handler: Callable[[Dict], None]) -> Dict:
    """
    Read an SSE body until the first JSON-RPC response.

    Server notifications seen before it are handed to notification_handler.
    """
    data_buffer = []

    # Trailing "" dispatches a final event without a blank line
    for line in text.split('\n') + [""]:
        line = line.rstrip('\r')

        if not line:
            if data_buffer:
                data = '\n'.join(data_buffer)
                data_buffer = []
                try:
                    parsed = json.loads(data)
                except json.JSONDecodeError as e:
                    logger.warning(f"Failed to parse SSE data: {e}")
                    continue

                if is_response(parsed):
                    return parsed
                if "method" in parsed:
                    notification_handler(parsed)
            continue

        if line.startswith('data:'):
            data_buffer.append(line[5:].strip())
        # id:, retry:, event: and comments carry nothing we act on

    raise MCPProtocolError("SSE stream ended without JSON-RPC response")


def default_transport_factory(
    descriptor: ServerDescriptor,
    client_name: str = "waypoint-client",
    client_version: str = "1.0.0",
    protocol_version: str = "2025-06-18",
    timeout_init: float = 30.0,
    timeout_list: float = 10.0,
    timeout_call: float = 300.0
) -> ToolTransport:
    """Pick the transport implementation for a descriptor"""
    if descriptor.transport == TRANSPORT_STDIO:
        return StdioTransport(descriptor, client_name, client_version)
    if descriptor.transport == TRANSPORT_HTTP:
        return HTTPTransport(
            descriptor,
            client_name,
            client_version,
            protocol_version=protocol_version,
            timeout_init=timeout_init,
            timeout_list=timeout_list,
            timeout_call=timeout_call,
        )
    raise ValueError(f"Unsupported transport: {descriptor.transport}")
