# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Waypoint - workflow orchestration over external MCP tool servers.
"""

__version__ = "0.1.0"

from waypoint.core.config import Config, load_config
from waypoint.mcp.manager import ConnectionManager
from waypoint.mcp.registry import ServerRegistry
from waypoint.workflow.engine import WorkflowEngine

__all__ = [
    "Config",
    "load_config",
    "ConnectionManager",
    "ServerRegistry",
    "WorkflowEngine",
]
