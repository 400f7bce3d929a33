# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""Unit tests for ConnectionManager"""

import asyncio
import logging
import sys
from pathlib import Path

import pytest

from waypoint.core.errors import ConfigurationError, MCPConnectionError, ToolCallError
from waypoint.mcp.manager import ConnectionManager
from waypoint.mcp.registry import ServerDescriptor, ServerRegistry
from waypoint.mcp.transports import HTTPTransport, StdioTransport, default_transport_factory

from conftest import FakeTransportFactory, stdio_descriptor


@pytest.mark.asyncio
async def test_connect_is_lazy_and_reused(connections, transport_factory):
    """Test first use connects, later uses reuse the live transport"""
    assert transport_factory.created == []

    first = await connections.connect("atlassian")
    second = await connections.connect("atlassian")

    assert first is second
    assert len(transport_factory.created) == 1
    assert first.connect_calls == 1
    assert connections.connections["atlassian"].connected


@pytest.mark.asyncio
async def test_concurrent_first_connect_shares_one_transport(server_registry):
    """Test concurrent first callers do not spawn duplicate servers"""
    factory = FakeTransportFactory({"atlassian": {"connect_delay": 0.01}})
    manager = ConnectionManager(server_registry, transport_factory=factory)

    results = await asyncio.gather(*(manager.connect("atlassian") for _ in range(5)))

    assert len(factory.created) == 1
    assert all(r is results[0] for r in results)
    await manager.disconnect_all()


@pytest.mark.asyncio
async def test_connect_unknown_server_raises_configuration_error(connections):
    """Test a name with no descriptor is a configuration problem"""
    with pytest.raises(ConfigurationError) as exc_info:
        await connections.connect("jira")

    assert exc_info.value.server_name == "jira"


@pytest.mark.asyncio
async def test_connect_failure_closes_transport_and_records_error(server_registry):
    """Test handshake failures raise MCPConnectionError and leave no connection"""
    factory = FakeTransportFactory({"atlassian": {"connect_error": OSError("spawn failed")}})
    manager = ConnectionManager(server_registry, transport_factory=factory)

    with pytest.raises(MCPConnectionError) as exc_info:
        await manager.connect("atlassian")

    assert exc_info.value.server_name == "atlassian"
    assert isinstance(exc_info.value.cause, OSError)
    assert "atlassian" not in manager.connections
    assert factory.created[0].closed
    assert manager.last_errors["atlassian"] == "spawn failed"


@pytest.mark.asyncio
async def test_list_tools_caches_catalog(connections):
    """Test the catalog is cached on the connection"""
    tools = await connections.list_tools("atlassian")

    assert [t.name for t in tools] == ["create_issue", "generate_prompt"]
    assert connections.connections["atlassian"].tools == tools
    assert tools[0].to_dict()["inputSchema"] == {}


@pytest.mark.asyncio
async def test_list_tools_failure_raises_connection_error(server_registry):
    """Test catalog failures are wrapped with the server name"""
    factory = FakeTransportFactory({"atlassian": {"list_error": RuntimeError("catalog down")}})
    manager = ConnectionManager(server_registry, transport_factory=factory)

    with pytest.raises(MCPConnectionError) as exc_info:
        await manager.list_tools("atlassian")

    assert exc_info.value.server_name == "atlassian"
    assert "Failed to list tools" in exc_info.value.message


@pytest.mark.asyncio
async def test_call_tool_returns_raw_result(server_registry):
    """Test results are returned unmodified"""
    raw = {"content": [{"type": "text", "text": '{"key": "PROJ-1"}'}]}
    factory = FakeTransportFactory({"atlassian": {"responses": {"create_issue": raw}}})
    manager = ConnectionManager(server_registry, transport_factory=factory)

    result = await manager.call_tool("atlassian", "create_issue", {"summary": "s"})

    assert result == raw
    assert factory.created[0].calls == [{"tool": "create_issue", "arguments": {"summary": "s"}}]


@pytest.mark.asyncio
async def test_call_tool_wraps_transport_failure(server_registry):
    """Test transport errors become ToolCallError with server, tool and cause"""
    cause = TimeoutError("no answer")
    factory = FakeTransportFactory({"atlassian": {"responses": {"create_issue": cause}}})
    manager = ConnectionManager(server_registry, transport_factory=factory)

    with pytest.raises(ToolCallError) as exc_info:
        await manager.call_tool("atlassian", "create_issue", {})

    error = exc_info.value
    assert error.server_name == "atlassian"
    assert error.tool_name == "create_issue"
    assert error.cause is cause


@pytest.mark.asyncio
async def test_call_tool_wraps_remote_error_result(server_registry):
    """Test results flagged isError by the server are failures"""
    raw = {"isError": True, "content": [{"type": "text", "text": "Project not found"}]}
    factory = FakeTransportFactory({"atlassian": {"responses": {"create_issue": raw}}})
    manager = ConnectionManager(server_registry, transport_factory=factory)

    with pytest.raises(ToolCallError) as exc_info:
        await manager.call_tool("atlassian", "create_issue", {})

    assert "Project not found" in str(exc_info.value)


@pytest.mark.asyncio
async def test_call_tool_wraps_connect_failure(server_registry):
    """Test a failed lazy connect inside call_tool surfaces as ToolCallError"""
    factory = FakeTransportFactory({"atlassian": {"connect_error": OSError("nope")}})
    manager = ConnectionManager(server_registry, transport_factory=factory)

    with pytest.raises(ToolCallError) as exc_info:
        await manager.call_tool("atlassian", "create_issue", {})

    assert isinstance(exc_info.value.cause, MCPConnectionError)


@pytest.mark.asyncio
async def test_disconnect_is_best_effort(server_registry):
    """Test close failures are logged, not raised"""
    factory = FakeTransportFactory({"atlassian": {"close_error": RuntimeError("already dead")}})
    manager = ConnectionManager(server_registry, transport_factory=factory)
    await manager.connect("atlassian")
    await manager.connect("elevenlabs")

    await manager.disconnect_all()

    assert all(t.closed for t in factory.created)
    assert not any(c.connected for c in manager.connections.values())


@pytest.mark.asyncio
async def test_reconnect_after_disconnect(connections, transport_factory):
    """Test a disconnected server connects again on next use"""
    await connections.connect("atlassian")
    await connections.disconnect("atlassian")
    await connections.connect("atlassian")

    assert len(transport_factory.for_server("atlassian")) == 2


@pytest.mark.asyncio
async def test_health_status_snapshot(server_registry):
    """Test health reports tool counts and errors without connecting"""
    factory = FakeTransportFactory({
        "atlassian": {"tools": ["a", "b"]},
        "elevenlabs": {"connect_error": OSError("missing binary")},
    })
    manager = ConnectionManager(server_registry, transport_factory=factory)
    await manager.list_tools("atlassian")
    with pytest.raises(MCPConnectionError):
        await manager.connect("elevenlabs")

    health = {h.name: h.to_dict() for h in manager.get_health_status()}

    assert health["atlassian"] == {"name": "atlassian", "connected": True, "tool_count": 2}
    assert health["elevenlabs"] == {"name": "elevenlabs", "connected": False, "error": "missing binary"}


def test_health_status_before_any_connection(server_registry):
    """Test unconnected servers report 'Not connected'"""
    factory = FakeTransportFactory()
    manager = ConnectionManager(server_registry, transport_factory=factory)

    health = manager.get_health_status()

    assert [h.error for h in health] == ["Not connected", "Not connected"]
    assert factory.created == []


def test_configured_servers(server_registry):
    """Test configured server introspection"""
    manager = ConnectionManager(server_registry, transport_factory=FakeTransportFactory())

    assert manager.get_configured_servers() == ["atlassian", "elevenlabs"]
    assert manager.has_server("atlassian")
    assert not manager.has_server("jira")


def test_default_transport_factory_picks_transport():
    """Test descriptors map to the matching transport class"""
    http = ServerDescriptor(name="search", transport="http", url="http://localhost:7000/mcp")

    assert isinstance(default_transport_factory(stdio_descriptor("atlassian")), StdioTransport)
    transport = default_transport_factory(http, timeout_call=5.0)
    assert isinstance(transport, HTTPTransport)
    assert transport.timeout_call == 5.0
    assert transport.client_info["name"] == "waypoint-client-search"


def test_default_factory_uses_registry_from_env():
    """Test a manager built without a factory wires the default transports"""
    registry = ServerRegistry.from_env({"SEARCH_MCP_TRANSPORT": "http", "SEARCH_MCP_URL": "http://x/mcp"})
    manager = ConnectionManager(registry)

    assert isinstance(manager.transport_factory(registry.get("search")), HTTPTransport)


# ============================================================================
# Stdio transport against a real server process
# ============================================================================

ECHO_SERVER = Path(__file__).parent / "echo_server.py"


@pytest.fixture
def echo_registry():
    descriptor = ServerDescriptor(name="echo", transport="stdio", command=sys.executable, args=(str(ECHO_SERVER),))
    return ServerRegistry([descriptor])


@pytest.mark.asyncio
async def test_stdio_disconnect_from_another_task(echo_registry, caplog):
    """Test a stdio connection opened in one task closes cleanly from another"""
    manager = ConnectionManager(echo_registry)

    tools = await asyncio.create_task(manager.list_tools("echo"))
    result = await asyncio.create_task(manager.call_tool("echo", "echo", {"text": "hello"}))

    with caplog.at_level(logging.WARNING, logger="waypoint.mcp.manager"):
        await manager.disconnect_all()

    assert [t.name for t in tools] == ["echo"]
    assert result["content"][0]["text"] == "hello"
    assert "Error disconnecting" not in caplog.text
    assert not manager.connections["echo"].connected

