# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Test Fixtures and Utilities

Remote servers are replaced by FakeTransport, an in-process transport
injected into the ConnectionManager through its transport_factory.
"""

import asyncio
from typing import Any, Dict, List, Optional

import pytest

from waypoint.mcp.manager import ConnectionManager
from waypoint.mcp.registry import ServerDescriptor, ServerRegistry
from waypoint.mcp.session import ToolInfo
from waypoint.mcp.transports import ToolTransport
from waypoint.workflow.definition import WorkflowRegistry
from waypoint.workflow.engine import WorkflowEngine
from waypoint.workflow.requirements import RequirementValidator
from waypoint.workflow.store import ResumeTokenStore


# ============================================================================
# Fake transport
# ============================================================================

class FakeTransport(ToolTransport):
    """
    Scriptable transport.

    ``responses`` maps tool name to a result dict or to an exception
    instance that call_tool should raise.
    """

    def __init__(
        self,
        descriptor: ServerDescriptor,
        tools: Optional[List[str]] = None,
        responses: Optional[Dict[str, Any]] = None,
        connect_error: Optional[BaseException] = None,
        list_error: Optional[BaseException] = None,
        close_error: Optional[BaseException] = None,
        connect_delay: float = 0.0
    ):
        self.descriptor = descriptor
        self.tools = tools or []
        self.responses = responses or {}
        self.connect_error = connect_error
        self.list_error = list_error
        self.close_error = close_error
        self.connect_delay = connect_delay
        self.connect_calls = 0
        self.closed = False
        self.calls: List[Dict[str, Any]] = []

    async def connect(self) -> None:
        self.connect_calls += 1
        if self.connect_delay:
            await asyncio.sleep(self.connect_delay)
        if self.connect_error is not None:
            raise self.connect_error

    async def list_tools(self) -> List[ToolInfo]:
        if self.list_error is not None:
            raise self.list_error
        return [ToolInfo(name=name, description=f"{name} tool") for name in self.tools]

    async def call_tool(self, tool_name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append({"tool": tool_name, "arguments": arguments})
        response = self.responses.get(tool_name, {"content": [{"type": "text", "text": "ok"}]})
        if isinstance(response, BaseException):
            raise response
        return response

    async def close(self) -> None:
        self.closed = True
        if self.close_error is not None:
            raise self.close_error


class FakeTransportFactory:
    """Creates FakeTransports from per-server settings and remembers them"""

    def __init__(self, servers: Optional[Dict[str, Dict[str, Any]]] = None):
        self.servers = servers or {}
        self.created: List[FakeTransport] = []

    def __call__(self, descriptor: ServerDescriptor) -> FakeTransport:
        transport = FakeTransport(descriptor, **self.servers.get(descriptor.name, {}))
        self.created.append(transport)
        return transport

    def for_server(self, name: str) -> List[FakeTransport]:
        return [t for t in self.created if t.descriptor.name == name]


def stdio_descriptor(name: str) -> ServerDescriptor:
    return ServerDescriptor(name=name, transport="stdio", command="npx", args=("-y", f"{name}-server"))


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def server_registry():
    """Registry with two stdio servers: atlassian and elevenlabs"""
    return ServerRegistry([stdio_descriptor("atlassian"), stdio_descriptor("elevenlabs")])


@pytest.fixture
def transport_factory():
    return FakeTransportFactory({
        "atlassian": {"tools": ["create_issue", "generate_prompt"]},
        "elevenlabs": {"tools": ["create_audio"]},
    })


@pytest.fixture
async def connections(server_registry, transport_factory):
    manager = ConnectionManager(server_registry, transport_factory=transport_factory)
    yield manager
    await manager.disconnect_all()


@pytest.fixture
def token_store():
    return ResumeTokenStore()


@pytest.fixture
def engine_factory(connections, token_store):
    """Build a WorkflowEngine around the shared fakes"""
    def build(workflows, environ=None, max_steps=None):
        return WorkflowEngine(
            connections=connections,
            workflows=WorkflowRegistry(workflows),
            store=token_store,
            validator=RequirementValidator(connections, environ=environ or {}),
            max_steps=max_steps,
        )
    return build
