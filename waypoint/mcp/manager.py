# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Connection Manager
Owns at most one live connection per external tool server, established lazily.
"""

import asyncio
import functools
import logging
from dataclasses import dataclass, asdict
from typing import Dict, Any, Optional, Callable, List

from waypoint.core.config import Config
from waypoint.core.errors import ConfigurationError, MCPConnectionError, ToolCallError
from waypoint.mcp.registry import ServerRegistry, ServerDescriptor
from waypoint.mcp.session import ToolConnection, ToolInfo
from waypoint.mcp.transports import ToolTransport, default_transport_factory

logger = logging.getLogger(__name__)

TransportFactory = Callable[[ServerDescriptor], ToolTransport]


@dataclass
class ServerHealth:
    """Diagnostic snapshot for one configured server"""
    name: str
    connected: bool
    tool_count: Optional[int] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


class ConnectionManager:
    """Manages lazy connections to external tool servers"""

    def __init__(
        self,
        registry: ServerRegistry,
        transport_factory: Optional[TransportFactory] = None,
        config: Optional[Config] = None
    ):
        self.registry = registry
        self.connections: Dict[str, ToolConnection] = {}
        self.connect_locks: Dict[str, asyncio.Lock] = {}
        self.last_errors: Dict[str, str] = {}

        if transport_factory is None:
            config = config or Config()
            transport_factory = functools.partial(
                default_transport_factory,
                client_name=config.client_name,
                client_version=config.client_version,
                protocol_version=config.protocol_version,
                timeout_init=config.timeout_init,
                timeout_list=config.timeout_list,
                timeout_call=config.timeout_call,
            )
        self.transport_factory = transport_factory

    def get_configured_servers(self) -> List[str]:
        return self.registry.names()

    def has_server(self, server_name: str) -> bool:
        return self.registry.has(server_name)

    def _live(self, server_name: str) -> Optional[ToolConnection]:
        connection = self.connections.get(server_name)
        if connection is not None and connection.connected:
            return connection
        return None

    async def connect(self, server_name: str) -> ToolTransport:
        """Return the live transport for a server, connecting on first use"""
        # Fast path
        connection = self._live(server_name)
        if connection:
            return connection.transport

        # Slow path with lock so concurrent first callers share one process
        if server_name not in self.connect_locks:
            self.connect_locks[server_name] = asyncio.Lock()

        async with self.connect_locks[server_name]:
            # Double-check
            connection = self._live(server_name)
            if connection:
                return connection.transport

            descriptor = self.registry.get(server_name)
            if descriptor is None:
                raise ConfigurationError(
                    f"No configuration found for MCP server: {server_name}",
                    server_name=server_name
                )

            logger.info(f"Connecting to MCP server: {server_name}")
            transport = self.transport_factory(descriptor)
            try:
                await transport.connect()
            except Exception as e:
                self.last_errors[server_name] = str(e) or type(e).__name__
                await self._close_quietly(server_name, transport)
                raise MCPConnectionError(server_name, cause=e) from e

            self.connections[server_name] = ToolConnection(descriptor=descriptor, transport=transport)
            self.last_errors.pop(server_name, None)
            logger.info(f"Successfully connected to MCP server: {server_name}")
            return transport

    async def list_tools(self, server_name: str) -> List[ToolInfo]:
        """Query the server's tool catalog and cache it on the connection"""
        transport = await self.connect(server_name)

        try:
            tools = await transport.list_tools()
        except Exception as e:
            self.last_errors[server_name] = str(e) or type(e).__name__
            raise MCPConnectionError(
                server_name,
                cause=e,
                message=f"Failed to list tools for MCP server: {server_name}"
            ) from e

        connection = self.connections.get(server_name)
        if connection:
            connection.tools = tools
        return tools

    async def call_tool(self, server_name: str, tool_name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """
        Call a tool and return its raw result.

        Raises ToolCallError on transport failures and on results flagged
        ``isError`` by the server. ConfigurationError propagates unchanged.
        """
        try:
            transport = await self.connect(server_name)
        except MCPConnectionError as e:
            raise ToolCallError(server_name, tool_name, cause=e) from e

        logger.debug(f"Calling tool {tool_name} on {server_name}", extra={"arguments": list(arguments)})
        try:
            result = await transport.call_tool(tool_name, arguments)
        except Exception as e:
            raise ToolCallError(server_name, tool_name, cause=e) from e

        if isinstance(result, dict) and result.get("isError"):
            raise ToolCallError(server_name, tool_name, cause=RuntimeError(_error_text(result)))

        logger.debug(f"Tool {tool_name} completed successfully")
        return result

    async def disconnect(self, server_name: str) -> None:
        """Best-effort close; failures are logged, never raised"""
        connection = self.connections.get(server_name)
        if not connection or not connection.connected:
            return

        connection.connected = False
        await self._close_quietly(server_name, connection.transport)
        logger.info(f"Disconnected from MCP server: {server_name}")

    async def disconnect_all(self) -> None:
        await asyncio.gather(*(self.disconnect(name) for name in list(self.connections)))

    async def _close_quietly(self, server_name: str, transport: ToolTransport) -> None:
        try:
            await transport.close()
        except Exception as e:
            logger.warning(f"Error disconnecting from {server_name}: {e}")

    def get_health_status(self) -> List[ServerHealth]:
        """Snapshot of every configured server; never connects, never raises"""
        health = []
        for name in self.registry.names():
            connection = self._live(name)
            if connection:
                tool_count = len(connection.tools) if connection.tools is not None else None
                health.append(ServerHealth(name=name, connected=True, tool_count=tool_count))
            else:
                health.append(ServerHealth(
                    name=name,
                    connected=False,
                    error=self.last_errors.get(name, "Not connected")
                ))
        return health


def _error_text(result: Dict[str, Any]) -> str:
    for item in result.get("content") or []:
        if isinstance(item, dict) and item.get("type") == "text" and item.get("text"):
            return item["text"]
    return "Tool reported an error"
