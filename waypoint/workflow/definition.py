# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Workflow definitions and the registry that holds them.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from waypoint.mcp.manager import ConnectionManager
from waypoint.workflow.graph import CompiledGraph
from waypoint.workflow.requirements import WorkflowRequirements

logger = logging.getLogger(__name__)

GraphBuilder = Callable[[ConnectionManager], CompiledGraph]


@dataclass(frozen=True)
class WorkflowDefinition:
    """
    A registered workflow.

    ``graph_builder`` receives the ConnectionManager the nodes should use
    and returns a compiled graph.
    """
    id: str
    name: str
    graph_builder: GraphBuilder
    description: str = ""
    version: str = "1.0.0"
    requirements: WorkflowRequirements = field(default_factory=WorkflowRequirements)
    input_schema: Dict[str, Any] = field(default_factory=lambda: {"type": "object", "properties": {}})
    output_schema: Optional[Dict[str, Any]] = None

    def build(self, connections: ConnectionManager) -> CompiledGraph:
        return self.graph_builder(connections)


class WorkflowRegistry:
    """Manages registration and discovery of workflows"""

    def __init__(self, workflows: Optional[List[WorkflowDefinition]] = None):
        self._workflows: Dict[str, WorkflowDefinition] = {}
        self.register_many(workflows or [])

    def register(self, workflow: WorkflowDefinition) -> None:
        if workflow.id in self._workflows:
            logger.warning(f"Workflow {workflow.id} is already registered, overwriting")

        self._workflows[workflow.id] = workflow
        logger.info(f"Registered workflow: {workflow.id} ({workflow.name})")

    def register_many(self, workflows: List[WorkflowDefinition]) -> None:
        for workflow in workflows:
            self.register(workflow)

    def get(self, workflow_id: str) -> Optional[WorkflowDefinition]:
        return self._workflows.get(workflow_id)

    def has(self, workflow_id: str) -> bool:
        return workflow_id in self._workflows

    def list(self) -> List[WorkflowDefinition]:
        return list(self._workflows.values())

    def ids(self) -> List[str]:
        return list(self._workflows.keys())

    def unregister(self, workflow_id: str) -> bool:
        deleted = self._workflows.pop(workflow_id, None) is not None
        if deleted:
            logger.info(f"Unregistered workflow: {workflow_id}")
        return deleted

    def clear(self) -> None:
        self._workflows.clear()
        logger.info("Cleared all workflows from registry")

    def count(self) -> int:
        return len(self._workflows)

    def to_tool_definitions(self) -> List[Dict[str, Any]]:
        """Workflows described as callable tools for a tool-listing surface"""
        return [
            {
                "name": workflow.id,
                "description": f"{workflow.name} - {workflow.description}" if workflow.description else workflow.name,
                "inputSchema": workflow.input_schema,
            }
            for workflow in self.list()
        ]
