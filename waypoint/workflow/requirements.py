# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Workflow Requirement Validation

Pre-flight check of the external servers, tools and environment
variables a workflow declares. Runs before any graph node executes.
"""

import logging
import os
from typing import List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from waypoint.mcp.manager import ConnectionManager

logger = logging.getLogger(__name__)


class ServerRequirement(BaseModel):
    """One declared server dependency"""
    model_config = ConfigDict(frozen=True)

    name: str
    tools: List[str] = Field(default_factory=list)
    optional: bool = False


class WorkflowRequirements(BaseModel):
    """Everything a workflow needs before it may run"""
    model_config = ConfigDict(frozen=True)

    servers: List[ServerRequirement] = Field(default_factory=list)
    environment: List[str] = Field(default_factory=list)


class MissingTool(BaseModel):
    server: str
    tool: str


class ValidationReport(BaseModel):
    """Result of one validation pass; never persisted"""
    valid: bool = True
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    available_servers: List[str] = Field(default_factory=list)
    missing_servers: List[str] = Field(default_factory=list)
    missing_tools: List[MissingTool] = Field(default_factory=list)

    def fail(self, message: str) -> None:
        self.valid = False
        self.errors.append(message)


class RequirementValidator:
    """
    Checks a WorkflowRequirements against the configured servers.

    Every problem is reported, not just the first, so configuration can be
    fixed in one pass.
    """

    def __init__(self, connections: ConnectionManager, environ: Optional[Mapping[str, str]] = None):
        self.connections = connections
        self.environ = environ

    async def validate(self, requirements: WorkflowRequirements) -> ValidationReport:
        report = ValidationReport()

        for requirement in requirements.servers:
            await self._check_server(requirement, report)

        environ = os.environ if self.environ is None else self.environ
        for env_var in requirements.environment:
            if not environ.get(env_var):
                report.fail(f"Required environment variable not set: {env_var}")

        return report

    async def _check_server(self, requirement: ServerRequirement, report: ValidationReport) -> None:
        name = requirement.name

        if not self.connections.has_server(name):
            if requirement.optional:
                report.warnings.append(f"Optional MCP server not configured: {name}")
            else:
                report.fail(f"Required MCP server not configured: {name}")
                report.missing_servers.append(name)
            return

        # An unreachable server is treated exactly like an unconfigured one
        try:
            catalog = await self.connections.list_tools(name)
        except Exception as e:
            logger.debug(f"Listing tools on {name} failed during validation: {e}")
            if requirement.optional:
                report.warnings.append(f"Failed to connect to optional MCP server: {name}")
            else:
                report.fail(f"Failed to connect to required MCP server: {name}")
                report.missing_servers.append(name)
            return

        report.available_servers.append(name)
        available = {tool.name for tool in catalog}

        for tool in requirement.tools:
            if tool in available:
                continue
            if requirement.optional:
                report.warnings.append(f"Optional tool {tool} not found on {name}")
            else:
                report.fail(f"Required tool {tool} not found on {name}")
                report.missing_tools.append(MissingTool(server=name, tool=tool))


def format_validation_report(report: ValidationReport) -> str:
    """Format a validation report as a human-readable message"""
    lines: List[str] = []

    if report.valid:
        lines.append("✓ All requirements validated successfully")
    else:
        lines.append("✗ Validation failed\n")
        lines.append("Errors:")
        lines.extend(f"  ✗ {error}" for error in report.errors)

    if report.warnings:
        lines.append("\nWarnings:")
        lines.extend(f"  ⚠ {warning}" for warning in report.warnings)

    if report.available_servers:
        lines.append(f"\nAvailable MCP servers: {', '.join(report.available_servers)}")

    if report.missing_servers:
        lines.append(f"\nMissing MCP servers: {', '.join(report.missing_servers)}")

    if report.missing_tools:
        lines.append("\nMissing tools:")
        lines.extend(f"  - {missing.tool} on {missing.server}" for missing in report.missing_tools)

    return "\n".join(lines)
