# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Workflow Engine

Entry point for running registered workflows: pre-flight validation, graph
execution, pause/resume through the token store, and diagnostics.
"""

import logging
import time
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError

from waypoint.core.config import Config
from waypoint.core.errors import (
    GraphExecutionError,
    RequirementError,
    ResumeTokenError,
    WorkflowNotFoundError,
)
from waypoint.core.logging import log_event
from waypoint.mcp.manager import ConnectionManager, ServerHealth
from waypoint.mcp.registry import ServerRegistry
from waypoint.workflow.definition import WorkflowDefinition, WorkflowRegistry
from waypoint.workflow.graph import CompiledGraph
from waypoint.workflow.requirements import (
    RequirementValidator,
    ValidationReport,
    WorkflowRequirements,
    format_validation_report,
)
from waypoint.workflow.results import (
    ActionDescriptor,
    CompletedResult,
    PausedResult,
    WorkflowResult,
)
from waypoint.workflow.state import data_fields, errors_of, steps_of
from waypoint.workflow.store import ResumeTokenStore

logger = logging.getLogger(__name__)


class WorkflowEngine:
    """
    Runs workflows against injected collaborators.

    Only RequirementError, ResumeTokenError and WorkflowNotFoundError are
    raised for expected conditions; node failures come back as a completed
    result with ``success=False``.
    """

    def __init__(
        self,
        connections: ConnectionManager,
        workflows: WorkflowRegistry,
        store: ResumeTokenStore,
        validator: Optional[RequirementValidator] = None,
        max_steps: Optional[int] = None
    ):
        self.connections = connections
        self.workflows = workflows
        self.store = store
        self.validator = validator or RequirementValidator(connections)
        self.max_steps = max_steps

    @classmethod
    def from_config(
        cls,
        config: Optional[Config] = None,
        environ: Optional[Mapping[str, str]] = None,
        workflows: Optional[List[WorkflowDefinition]] = None
    ) -> "WorkflowEngine":
        """Wire default collaborators from a Config and the process environment"""
        config = config or Config()
        registry = ServerRegistry.from_env(environ, suffix=config.env_suffix)
        connections = ConnectionManager(registry, config=config)

        return cls(
            connections=connections,
            workflows=WorkflowRegistry(workflows),
            store=ResumeTokenStore(default_ttl=config.resume_ttl_seconds),
            validator=RequirementValidator(connections, environ=environ),
            max_steps=config.max_steps,
        )

    def get_workflow(self, workflow_id: str) -> WorkflowDefinition:
        workflow = self.workflows.get(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(workflow_id, available=self.workflows.ids())
        return workflow

    # ========================================================================
    # Validation
    # ========================================================================

    async def validate(self, target: Union[str, WorkflowRequirements]) -> ValidationReport:
        """Dry-run requirement check for a workflow id or a requirement set"""
        if isinstance(target, str):
            target = self.get_workflow(target).requirements
        return await self.validator.validate(target)

    async def _ensure_requirements(self, workflow: WorkflowDefinition) -> None:
        report = await self.validator.validate(workflow.requirements)

        if not report.valid:
            log_event(
                logger, "Workflow requirements validation failed", level="ERROR",
                workflow_id=workflow.id, errors=report.errors
            )
            raise RequirementError(
                f"Workflow {workflow.id} requirements not met:\n{format_validation_report(report)}",
                missing_requirements=report.errors,
                workflow_id=workflow.id,
                report=report
            )

        if report.warnings:
            log_event(
                logger, "Workflow has warnings", level="WARNING",
                workflow_id=workflow.id, warnings=report.warnings
            )

    # ========================================================================
    # Invoke / resume
    # ========================================================================

    async def invoke(self, workflow_id: str, input: Optional[Mapping[str, Any]] = None) -> WorkflowResult:
        """
        Validate requirements, then run the workflow from its entry point.

        Raises:
            WorkflowNotFoundError: Unknown workflow id
            RequirementError: Requirements not met; no node has run
        """
        workflow = self.get_workflow(workflow_id)
        log_event(logger, "Executing workflow", workflow_id=workflow.id, workflow_name=workflow.name)

        await self._ensure_requirements(workflow)

        graph = workflow.build(self.connections)
        state = graph.schema.initial_state(input)
        return await self._run(workflow, graph, state)

    async def resume(self, token: str, results: Optional[Mapping[str, Any]] = None) -> WorkflowResult:
        """
        Continue a paused workflow with the outputs the caller produced.

        The graph restarts from its entry point with ``resuming`` set; nodes
        that already ran skip themselves. The token is consumed once the run
        returns a result, whether it completed or paused again under a new
        token. If the run raises, the token stays valid for a retry.

        Raises:
            ResumeTokenError: Token unknown, consumed or expired
        """
        state = self.store.load(token)
        workflow_id = self.store.get_workflow_id(token)
        if state is None or workflow_id is None:
            raise ResumeTokenError(token)

        workflow = self.get_workflow(workflow_id)
        graph = workflow.build(self.connections)

        log_event(
            logger, "Resuming workflow",
            workflow_id=workflow.id, paused_at=state.get("paused_at"), results=sorted(results or {})
        )

        state = graph.schema.merge(state, graph.schema.declared_only(results or {}, "resume results"))
        state.update(resuming=True, status=None, action=None)

        result = await self._run(workflow, graph, state)
        self.store.delete(token)
        return result

    async def _run(self, workflow: WorkflowDefinition, graph: CompiledGraph, state: Dict[str, Any]) -> WorkflowResult:
        started = time.monotonic()
        run = await graph.invoke(state, max_steps=self.max_steps)
        duration_ms = round((time.monotonic() - started) * 1000, 1)

        if run.interrupted:
            action = run.state.get("action")
            if not isinstance(action, Mapping):
                raise GraphExecutionError(
                    f"Node {run.interrupted_at} paused without an action descriptor",
                    workflow_id=workflow.id,
                    step=run.interrupted_at
                )

            try:
                descriptor = ActionDescriptor(**action)
            except ValidationError as e:
                raise GraphExecutionError(
                    f"Node {run.interrupted_at} paused with an invalid action descriptor: {e}",
                    workflow_id=workflow.id,
                    step=run.interrupted_at
                ) from e

            snapshot = dict(run.state, paused_at=run.interrupted_at)
            token = self.store.save(workflow.id, snapshot)

            log_event(
                logger, "Workflow paused",
                workflow_id=workflow.id, paused_at=run.interrupted_at, resume_token=token, duration_ms=duration_ms
            )
            return PausedResult(
                workflow_id=workflow.id,
                token=token,
                completed_steps=steps_of(run.state),
                action=descriptor,
            )

        result = build_completed_result(workflow.id, run.state)
        log_event(
            logger, "Workflow completed",
            level="INFO" if result.success else "WARNING",
            workflow_id=workflow.id, success=result.success, steps=run.visited, duration_ms=duration_ms
        )
        return result

    # ========================================================================
    # Diagnostics / lifecycle
    # ========================================================================

    def get_health_status(self) -> List[ServerHealth]:
        return self.connections.get_health_status()

    async def shutdown(self) -> None:
        """Close every server connection"""
        logger.info("Shutting down workflow engine")
        await self.connections.disconnect_all()


def build_completed_result(workflow_id: str, state: Mapping[str, Any]) -> CompletedResult:
    """Terminal result for a run that reached the end of its graph"""
    errors = errors_of(state)
    error = state.get("error")

    return CompletedResult(
        workflow_id=workflow_id,
        success=not error,
        completed_steps=steps_of(state),
        failed_step=errors[-1]["step"] if error and errors else None,
        data=data_fields(state),
        error=error or None,
        errors=errors or None,
    )
