# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Workflow layer: requirements, state channels, graphs, resume tokens and
the engine that ties them together.
"""

from waypoint.workflow.state import AWAITING_ACTION, Channel, StateSchema, adopt_list, replace
from waypoint.workflow.graph import END, START, CompiledGraph, StateGraph
from waypoint.workflow.requirements import (
    RequirementValidator,
    ServerRequirement,
    ValidationReport,
    WorkflowRequirements,
    format_validation_report,
)
from waypoint.workflow.store import ResumeTokenStore
from waypoint.workflow.definition import WorkflowDefinition, WorkflowRegistry
from waypoint.workflow.results import ActionDescriptor, CompletedResult, PausedResult, format_result
from waypoint.workflow.engine import WorkflowEngine

__all__ = [
    "AWAITING_ACTION",
    "Channel",
    "StateSchema",
    "adopt_list",
    "replace",
    "END",
    "START",
    "CompiledGraph",
    "StateGraph",
    "RequirementValidator",
    "ServerRequirement",
    "ValidationReport",
    "WorkflowRequirements",
    "format_validation_report",
    "ResumeTokenStore",
    "WorkflowDefinition",
    "WorkflowRegistry",
    "ActionDescriptor",
    "CompletedResult",
    "PausedResult",
    "format_result",
    "WorkflowEngine",
]
