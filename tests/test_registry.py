# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""Unit tests for the external tool server registry"""

import pytest

from waypoint.core.errors import ConfigurationError
from waypoint.mcp.registry import (
    ServerRegistry,
    normalize_server_name,
    parse_descriptor,
)


def test_normalize_server_name():
    """Test names are lower-cased with underscores turned into hyphens"""
    assert normalize_server_name("FILE_TOOLS") == "file-tools"
    assert normalize_server_name("ATLASSIAN") == "atlassian"


def test_from_env_parses_stdio_descriptor():
    """Test a complete stdio triple becomes a descriptor"""
    environ = {
        "ATLASSIAN_MCP_TRANSPORT": "stdio",
        "ATLASSIAN_MCP_COMMAND": "npx",
        "ATLASSIAN_MCP_ARGS": '["-y", "@atlassian/mcp"]',
        "UNRELATED": "value",
    }

    registry = ServerRegistry.from_env(environ)

    assert registry.names() == ["atlassian"]
    descriptor = registry.get("atlassian")
    assert descriptor.transport == "stdio"
    assert descriptor.command == "npx"
    assert descriptor.args == ("-y", "@atlassian/mcp")
    assert descriptor.env == {}


def test_from_env_normalizes_lookup_key():
    """Test multi-word server prefixes are looked up hyphenated"""
    environ = {
        "FILE_TOOLS_MCP_TRANSPORT": "stdio",
        "FILE_TOOLS_MCP_COMMAND": "file-tools",
        "FILE_TOOLS_MCP_ARGS": "[]",
    }

    registry = ServerRegistry.from_env(environ)

    assert "file-tools" in registry
    assert registry.get("file-tools").args == ()


def test_from_env_skips_malformed_args(caplog):
    """Test invalid JSON in _ARGS skips the server without failing"""
    environ = {
        "BROKEN_MCP_TRANSPORT": "stdio",
        "BROKEN_MCP_COMMAND": "broken",
        "BROKEN_MCP_ARGS": "[not json",
        "GOOD_MCP_TRANSPORT": "stdio",
        "GOOD_MCP_COMMAND": "good",
        "GOOD_MCP_ARGS": "[\"--verbose\"]",
    }

    registry = ServerRegistry.from_env(environ)

    assert registry.names() == ["good"]
    assert "Skipping MCP server config BROKEN" in caplog.text


def test_from_env_skips_unknown_transport():
    """Test unsupported transports are skipped"""
    environ = {"WEIRD_MCP_TRANSPORT": "carrier-pigeon", "WEIRD_MCP_COMMAND": "x"}

    assert len(ServerRegistry.from_env(environ)) == 0


def test_from_env_custom_suffix():
    """Test the variable suffix is configurable"""
    environ = {"JIRA_TOOL_TRANSPORT": "stdio", "JIRA_TOOL_COMMAND": "jira", "JIRA_TOOL_ARGS": "[]"}

    assert ServerRegistry.from_env(environ, suffix="_TOOL").has("jira")
    assert not ServerRegistry.from_env(environ).has("jira")


def test_parse_http_descriptor_requires_url():
    """Test http transport needs _URL but no command"""
    with pytest.raises(ConfigurationError):
        parse_descriptor("SEARCH", "SEARCH_MCP", {"SEARCH_MCP_TRANSPORT": "http"})

    descriptor = parse_descriptor(
        "SEARCH",
        "SEARCH_MCP",
        {"SEARCH_MCP_TRANSPORT": "http", "SEARCH_MCP_URL": "http://localhost:7000/mcp"}
    )
    assert descriptor.transport == "http"
    assert descriptor.url == "http://localhost:7000/mcp"
    assert descriptor.command is None


def test_parse_stdio_descriptor_requires_command():
    """Test stdio transport without a command is rejected"""
    with pytest.raises(ConfigurationError) as exc_info:
        parse_descriptor("X", "X_MCP", {"X_MCP_TRANSPORT": "stdio"})

    assert exc_info.value.server_name == "x"


def test_parse_descriptor_rejects_non_string_args():
    """Test _ARGS must be an array of strings"""
    environ = {"X_MCP_TRANSPORT": "stdio", "X_MCP_COMMAND": "x", "X_MCP_ARGS": '{"a": 1}'}

    with pytest.raises(ConfigurationError):
        parse_descriptor("X", "X_MCP", environ)


def test_parse_descriptor_reads_env_object():
    """Test _ENV passes extra environment to the child process"""
    environ = {
        "X_MCP_TRANSPORT": "stdio",
        "X_MCP_COMMAND": "x",
        "X_MCP_ARGS": "[]",
        "X_MCP_ENV": '{"API_KEY": "secret", "RETRIES": 3}',
    }

    descriptor = parse_descriptor("X", "X_MCP", environ)

    assert descriptor.env == {"API_KEY": "secret", "RETRIES": "3"}


def test_from_env_skips_stdio_without_args(caplog):
    """Test a stdio server needs the full transport, command and args triple"""
    environ = {
        "PARTIAL_MCP_TRANSPORT": "stdio",
        "PARTIAL_MCP_COMMAND": "partial",
        "FULL_MCP_TRANSPORT": "stdio",
        "FULL_MCP_COMMAND": "full",
        "FULL_MCP_ARGS": "[]",
    }

    registry = ServerRegistry.from_env(environ)

    assert registry.names() == ["full"]
    assert "PARTIAL_MCP_ARGS is required" in caplog.text
