# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Custom exceptions for the Waypoint engine.

All exceptions inherit from WaypointError for consistent error handling.
Only RequirementError and ResumeTokenError are expected to reach the
invoke/resume boundary; node failures are folded into workflow state.
"""

from typing import Optional, List, Any


class WaypointError(Exception):
    """Base exception for all Waypoint errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        """
        Initialize Waypoint error.

        Args:
            message: Human-readable error message
            details: Additional error details
        """
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert error to dictionary for a response payload."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details
        }


class ConfigurationError(WaypointError):
    """External server descriptor missing or malformed."""

    def __init__(self, message: str, server_name: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message, details=details)
        self.server_name = server_name


# =============================================================================
# Remote tool server errors
# =============================================================================

class MCPError(WaypointError):
    """External tool server error."""

    def __init__(self, message: str, server_name: Optional[str] = None, details: Optional[dict] = None):
        """
        Initialize MCP error.

        Args:
            message: MCP error message
            server_name: External server name
            details: Additional error details
        """
        super().__init__(message, details=details)
        self.server_name = server_name


class MCPConnectionError(MCPError):
    """Transport, handshake or catalog query failed."""

    def __init__(self, server_name: str, cause: Optional[BaseException] = None, message: Optional[str] = None):
        message = message or f"Failed to connect to MCP server: {server_name}"
        if cause is not None:
            message = f"{message} ({cause})"
        super().__init__(message, server_name=server_name, details={"cause": repr(cause) if cause else None})
        self.cause = cause


class MCPProtocolError(MCPError):
    """Remote server answered with a JSON-RPC error or a malformed response."""
    pass


class ToolCallError(MCPError):
    """A remote tool call failed on the transport or the server side."""

    def __init__(self, server_name: str, tool_name: str, cause: Optional[BaseException] = None):
        message = f"Failed to call tool {tool_name} on {server_name}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(
            message,
            server_name=server_name,
            details={"tool": tool_name, "cause": repr(cause) if cause else None}
        )
        self.tool_name = tool_name
        self.cause = cause


# =============================================================================
# Workflow errors
# =============================================================================

class WorkflowError(WaypointError):
    """Base class for workflow engine errors."""

    def __init__(
        self,
        message: str,
        workflow_id: Optional[str] = None,
        step: Optional[str] = None,
        details: Optional[dict] = None
    ):
        super().__init__(message, details=details)
        self.workflow_id = workflow_id
        self.step = step


class RequirementError(WorkflowError):
    """Pre-flight validation failed; no node was executed."""

    def __init__(
        self,
        message: str,
        missing_requirements: List[str],
        workflow_id: Optional[str] = None,
        report: Any = None
    ):
        super().__init__(
            message,
            workflow_id=workflow_id,
            details={"missing_requirements": list(missing_requirements)}
        )
        self.missing_requirements = list(missing_requirements)
        self.report = report


class ResumeTokenError(WorkflowError):
    """Resume token unknown, consumed or expired."""

    def __init__(self, token: str, message: Optional[str] = None):
        super().__init__(message or f"Invalid or expired resume token: {token}", details={"token": token})
        self.token = token


class NodeError(WorkflowError):
    """
    A node-level failure.

    Nodes never let this escape: it is converted into the
    ``error``/``errors`` fields of the workflow state.
    """

    def __init__(self, step: str, message: str, cause: Optional[BaseException] = None, workflow_id: Optional[str] = None):
        super().__init__(message, workflow_id=workflow_id, step=step)
        self.cause = cause


class WorkflowNotFoundError(WorkflowError):
    """No workflow registered under the requested id."""

    def __init__(self, workflow_id: str, available: Optional[List[str]] = None):
        available = available or []
        message = f"Workflow not found: {workflow_id}"
        if available:
            message += f". Available workflows: {', '.join(available)}"
        super().__init__(message, workflow_id=workflow_id, details={"available": available})


class GraphValidationError(WorkflowError):
    """Graph definition rejected at compile time."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, details={"field": field} if field else None)
        self.field = field


class GraphExecutionError(WorkflowError):
    """Graph misbehaved at run time (bad route, undeclared field, step limit)."""
    pass


# Error Message Utilities

def sanitize_error_for_user(error: BaseException, include_type: bool = True) -> str:
    """
    Sanitize error messages for user display.

    Args:
        error: The exception to sanitize
        include_type: Whether to include exception type

    Returns:
        User-friendly error message without stack trace
    """
    error_msg = str(error).strip()

    # Limit message length
    if len(error_msg) > 500:
        error_msg = error_msg[:500] + "..."

    if include_type:
        return f"{error.__class__.__name__}: {error_msg}"

    return error_msg
