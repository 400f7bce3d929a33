# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Core utilities and shared modules for Waypoint.

This package contains:
- config: Configuration management
- errors: Custom exceptions
- logging: Structured logging
"""

from waypoint.core.config import get_config, load_config, Config
from waypoint.core.errors import (
    WaypointError,
    ConfigurationError,
    MCPError,
    MCPConnectionError,
    ToolCallError,
    WorkflowError,
    RequirementError,
    ResumeTokenError,
    NodeError,
    WorkflowNotFoundError,
    GraphValidationError,
    GraphExecutionError,
)
from waypoint.core.logging import get_logger, configure_logging

__all__ = [
    "get_config",
    "load_config",
    "Config",
    "WaypointError",
    "ConfigurationError",
    "MCPError",
    "MCPConnectionError",
    "ToolCallError",
    "WorkflowError",
    "RequirementError",
    "ResumeTokenError",
    "NodeError",
    "WorkflowNotFoundError",
    "GraphValidationError",
    "GraphExecutionError",
    "get_logger",
    "configure_logging",
]
