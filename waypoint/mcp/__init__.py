# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
External tool server layer: descriptors, transports and the connection pool.
"""

from waypoint.mcp.registry import ServerDescriptor, ServerRegistry
from waypoint.mcp.session import ToolConnection, ToolInfo
from waypoint.mcp.transports import ToolTransport, StdioTransport, HTTPTransport
from waypoint.mcp.manager import ConnectionManager, ServerHealth

__all__ = [
    "ServerDescriptor",
    "ServerRegistry",
    "ToolConnection",
    "ToolInfo",
    "ToolTransport",
    "StdioTransport",
    "HTTPTransport",
    "ConnectionManager",
    "ServerHealth",
]
